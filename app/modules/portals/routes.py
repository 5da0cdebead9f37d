import logging
from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.responses import RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.portals.schemas import PortalLoginResponse, PortalResponse
from app.modules.portals.service import (
    is_portal, can_enter, portal_home, login_redirect_url, navigation_for
)
from app.modules.auth.service import AuthService, safe_next_path
from app.core.dependencies import security, fetch_profile
from supabase import Client
from typing import Optional

logger = logging.getLogger(__name__)

# Mounted at the root, next to the API
router = APIRouter(tags=["portals"])


def get_portal_name(portal: str) -> str:
    if not is_portal(portal):
        raise HTTPException(status_code=404, detail="Not Found")
    return portal


@router.get("/{portal}/login", response_model=PortalLoginResponse)
async def portal_login(
    next: Optional[str] = None,
    reason: Optional[str] = None,
    portal: str = Depends(get_portal_name)
):
    """Where a portal's sign-in starts and where it continues afterwards"""
    return PortalLoginResponse(
        portal=portal,
        next=safe_next_path(next, default=portal_home(portal)),
        reason=reason,
        login_endpoint="/api/v1/auth/login"
    )


@router.get("/{portal}/portal", response_model=PortalResponse)
async def portal_entry(
    portal: str = Depends(get_portal_name),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    supabase: Client = Depends(get_supabase),
    service_client: Client = Depends(get_service_supabase)
):
    """Role-gated navigation for a portal; anything else is sent back to its login"""
    if credentials is None or not credentials.credentials:
        return RedirectResponse(url=login_redirect_url(portal, portal_home(portal)), status_code=307)

    try:
        user = AuthService(supabase).get_current_user(credentials.credentials)
    except HTTPException:
        return RedirectResponse(url=login_redirect_url(portal, portal_home(portal)), status_code=307)

    profile = fetch_profile(user["id"], service_client)
    role = str((profile or {}).get("role") or "")
    if not can_enter(portal, role):
        logger.info(f"User {user['id']} with role '{role}' turned away from the {portal} portal")
        return RedirectResponse(
            url=login_redirect_url(portal, portal_home(portal), reason=f"{portal}_only"),
            status_code=307
        )

    return PortalResponse(
        portal=portal,
        user_id=user["id"],
        username=profile.get("username"),
        role=role,
        navigation=navigation_for(portal, role)
    )
