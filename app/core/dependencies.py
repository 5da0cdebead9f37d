"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.service import AuthService
from app.config.permissions_config import get_role_permissions
from supabase import Client
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

PROFILE_ACCESS_COLUMNS = "id, role, username, first_name, last_name"


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> str:
    """Extract the bearer token; anything else is 401"""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(token)


def fetch_profile(user_id: str, service_client: Client) -> Optional[Dict[str, Any]]:
    result = service_client.table("profiles")\
        .select(PROFILE_ACCESS_COLUMNS)\
        .eq("id", user_id)\
        .limit(1)\
        .execute()
    return result.data[0] if result.data else None


def get_current_profile(
    request: Request,
    user_data: dict = Depends(get_current_user),
    service_client: Client = Depends(get_service_supabase)
) -> dict:
    """Profile (with role) of the token's user. Cached on the request."""
    cached = getattr(request.state, "profile", None)
    if cached is not None and cached.get("id") == user_data["id"]:
        return cached
    try:
        profile = fetch_profile(user_data["id"], service_client)
    except Exception as e:
        logger.error(f"Error getting profile for {user_data['id']}: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if not profile:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    profile = {**profile, "email": user_data.get("email"), "role": str(profile.get("role") or "user")}
    request.state.profile = profile
    return profile


def has_permission(profile: dict, permission: str) -> bool:
    return permission in get_role_permissions(profile.get("role", ""))


def require_permission(required_permission: str):
    """Factory function to create permission check dependency"""
    def check_permission(profile: dict = Depends(get_current_profile)) -> dict:
        """Dependency to check if the profile's role grants the permission"""
        if not has_permission(profile, required_permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {required_permission}"
            )
        return profile
    return check_permission
