from fastapi import APIRouter, Depends, HTTPException, Request, status
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.profiles.schemas import (
    ProfileUpdate, ProfileResponse, AdminUserResponse,
    RoleUpdateRequest, ImpersonateRequest, ImpersonateResponse
)
from app.modules.profiles.service import ProfileService
from app.modules.auth.service import AuthService
from app.core.dependencies import require_permission
from app.config.settings import settings
from supabase import Client
from typing import List, Dict

router = APIRouter(tags=["profiles"])


def get_profile_service(supabase: Client = Depends(get_service_supabase)) -> ProfileService:
    return ProfileService(supabase)


@router.get("/profiles/me", response_model=ProfileResponse)
async def get_my_profile(
    profile: Dict = Depends(require_permission("profile:read")),
    service: ProfileService = Depends(get_profile_service)
):
    """Own profile with balances"""
    return service.get_profile(profile["id"])


@router.put("/profiles/me", response_model=ProfileResponse)
async def update_my_profile(
    profile_data: ProfileUpdate,
    profile: Dict = Depends(require_permission("profile:update")),
    service: ProfileService = Depends(get_profile_service)
):
    """Update own first/last name"""
    return service.update_profile(profile["id"], profile_data)


@router.get("/admin/users", response_model=List[AdminUserResponse])
async def list_users(
    profile: Dict = Depends(require_permission("users:read")),
    service: ProfileService = Depends(get_profile_service)
):
    """All profiles with total earnings (admin)"""
    return service.list_users()


@router.post("/admin/users", status_code=200)
async def set_user_role(
    body: RoleUpdateRequest,
    profile: Dict = Depends(require_permission("users:update")),
    service: ProfileService = Depends(get_profile_service)
):
    """Change a user's role (admin)"""
    service.set_role(body.user_id, body.role)
    return {"ok": True}


@router.post("/admin/impersonate", response_model=ImpersonateResponse)
async def impersonate(
    body: ImpersonateRequest,
    request: Request,
    profile: Dict = Depends(require_permission("users:impersonate")),
    supabase: Client = Depends(get_supabase),
    service_client: Client = Depends(get_service_supabase)
):
    """Magic link to sign in as another user (admin)"""
    if body.user_id == profile["id"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already using this account")
    origin = request.headers.get("origin") or settings.site_url
    link = AuthService(supabase, service_client).generate_impersonation_link(body.user_id, origin)
    return ImpersonateResponse(action_link=link)
