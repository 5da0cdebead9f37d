from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.packages.schemas import (
    PackageCreate, PackageStatusUpdate, PackageResponse,
    BuyPackageRequest, BuyPackageResponse, UserPackageResponse, PackageWithdrawalResponse
)
from app.modules.packages.service import PackageService, UserPackageService
from app.core.dependencies import require_permission
from supabase import Client
from typing import List, Optional, Dict

router = APIRouter(tags=["packages"])


def get_package_service(supabase: Client = Depends(get_service_supabase)) -> PackageService:
    return PackageService(supabase)


def get_user_package_service(supabase: Client = Depends(get_service_supabase)) -> UserPackageService:
    return UserPackageService(supabase)


@router.get("/packages", response_model=List[PackageResponse])
async def list_active_packages(
    profile: Dict = Depends(require_permission("packages:read")),
    service: PackageService = Depends(get_package_service)
):
    """Packages available for purchase"""
    return service.list_packages(active_only=True)


# Admin catalogue
@router.get("/admin/packages", response_model=List[PackageResponse])
async def admin_list_packages(
    profile: Dict = Depends(require_permission("packages:manage")),
    service: PackageService = Depends(get_package_service)
):
    """Every package, including inactive ones"""
    return service.list_packages(active_only=False)


@router.post("/admin/packages", response_model=PackageResponse, status_code=201)
async def admin_create_package(
    package_data: PackageCreate,
    profile: Dict = Depends(require_permission("packages:manage")),
    service: PackageService = Depends(get_package_service)
):
    return service.create_package(package_data)


@router.patch("/admin/packages/{package_id}")
async def admin_set_package_active(
    package_id: str,
    body: PackageStatusUpdate,
    profile: Dict = Depends(require_permission("packages:manage")),
    service: PackageService = Depends(get_package_service)
):
    """Activate or deactivate a package"""
    service.set_active(package_id, body.is_active)
    return {"ok": True}


@router.delete("/admin/packages/{package_id}", status_code=204)
async def admin_delete_package(
    package_id: str,
    profile: Dict = Depends(require_permission("packages:manage")),
    service: PackageService = Depends(get_package_service)
):
    service.delete_package(package_id)
    return None


# Own packages
@router.get("/user-packages", response_model=List[UserPackageResponse])
async def list_my_packages(
    status: Optional[str] = None,
    profile: Dict = Depends(require_permission("packages:read")),
    service: UserPackageService = Depends(get_user_package_service)
):
    return service.list_user_packages(profile["id"], status=status)


@router.post("/user-packages", response_model=BuyPackageResponse, status_code=201)
async def buy_package(
    request: BuyPackageRequest,
    profile: Dict = Depends(require_permission("packages:buy")),
    service: UserPackageService = Depends(get_user_package_service)
):
    """Buy a package with the account balance"""
    return service.buy_package(profile["id"], request)


@router.post("/user-packages/withdraw-matured", response_model=PackageWithdrawalResponse)
async def withdraw_matured_packages(
    profile: Dict = Depends(require_permission("packages:withdraw")),
    service: UserPackageService = Depends(get_user_package_service)
):
    """Release every matured package into the withdrawable balance"""
    return service.withdraw_matured(profile["id"])


@router.post("/user-packages/{user_package_id}/cancel", response_model=UserPackageResponse)
async def cancel_package(
    user_package_id: str,
    profile: Dict = Depends(require_permission("packages:buy")),
    service: UserPackageService = Depends(get_user_package_service)
):
    return service.cancel_package(profile["id"], user_package_id)


@router.post("/user-packages/{user_package_id}/withdraw", response_model=PackageWithdrawalResponse)
async def withdraw_package(
    user_package_id: str,
    profile: Dict = Depends(require_permission("packages:withdraw")),
    service: UserPackageService = Depends(get_user_package_service)
):
    """Release one matured package into the withdrawable balance"""
    return service.withdraw_package(profile["id"], user_package_id)
