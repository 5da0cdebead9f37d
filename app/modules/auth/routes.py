from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, MeResponse
)
from app.modules.auth.service import AuthService, safe_next_path
from app.core.dependencies import get_bearer_token, get_current_profile
from app.core.limiter import limiter
from app.config.permissions_config import get_role_permissions
from app.config.settings import settings
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/auth", tags=["auth"])

# Mounted at the root: the hosted auth service redirects browsers here
callback_router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_registration_service(
    supabase: Client = Depends(get_supabase),
    service_client: Client = Depends(get_service_supabase)
) -> AuthService:
    return AuthService(supabase, service_client)


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
async def register(
    request: Request,
    register_data: RegisterRequest,
    service: AuthService = Depends(get_registration_service)
):
    """Register a new user, optionally under a referrer"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.auth_rate_limit)
async def login(
    request: Request,
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login with username (or e-mail) and get an access token"""
    return service.login(login_data)


@router.post("/logout", status_code=200)
async def logout(
    token: str = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and forget the cached token"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
async def get_me(profile: Dict = Depends(get_current_profile)):
    """Current user, role and permissions (for role-gated navigation)."""
    return MeResponse(
        id=profile["id"],
        email=profile.get("email"),
        username=profile.get("username"),
        role=profile["role"],
        permissions=get_role_permissions(profile["role"])
    )


@callback_router.get("/callback")
async def auth_callback(next: Optional[str] = None):
    """Redirect after sign-in; only same-site paths are honoured"""
    return RedirectResponse(url=safe_next_path(next), status_code=307)
