from fastapi import APIRouter, Depends
from app.database.supabase_client import get_service_supabase
from app.modules.commissions.schemas import CommissionResponse, AdminCommissionResponse, ReferralResponse
from app.modules.commissions.service import CommissionService
from app.core.dependencies import require_permission
from supabase import Client
from typing import List, Optional, Dict

router = APIRouter(tags=["commissions"])


def get_commission_service(supabase: Client = Depends(get_service_supabase)) -> CommissionService:
    return CommissionService(supabase)


@router.get("/commissions", response_model=List[CommissionResponse])
async def list_my_commissions(
    profile: Dict = Depends(require_permission("commissions:read")),
    service: CommissionService = Depends(get_commission_service)
):
    return service.list_user_commissions(profile["id"])


@router.get("/referrals", response_model=List[ReferralResponse])
async def list_my_referrals(
    profile: Dict = Depends(require_permission("commissions:read")),
    service: CommissionService = Depends(get_commission_service)
):
    """Users I referred"""
    return service.list_referrals(profile["id"])


@router.get("/admin/commissions", response_model=List[AdminCommissionResponse])
async def admin_list_commissions(
    status: Optional[str] = None,
    profile: Dict = Depends(require_permission("commissions:manage")),
    service: CommissionService = Depends(get_commission_service)
):
    return service.list_all_commissions(status)
