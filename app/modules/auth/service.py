import hashlib
import logging
import re
import time
from datetime import datetime, timezone
from supabase import Client
from app.modules.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, RegisterResponse
from app.config.settings import settings
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500

USERNAME_PATTERN = re.compile(r"^[a-z0-9_.]{3,32}$")


def clear_auth_cache():
    _AUTH_USER_CACHE.clear()


def normalize_username(username: str) -> str:
    normalized = (username or "").strip().lower()
    if not USERNAME_PATTERN.match(normalized):
        raise HTTPException(
            status_code=400,
            detail="Username must be 3-32 characters of letters, digits, '_' or '.'"
        )
    return normalized


def system_email_for(username: str) -> str:
    return f"{username}@{settings.system_email_domain}"


class AuthService:
    def __init__(self, supabase: Client, service_client: Optional[Client] = None):
        self.supabase = supabase
        self.service_client = service_client

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new user with a system e-mail, create the profile and record the referral"""
        if self.service_client is None:
            raise HTTPException(status_code=500, detail="Server misconfigured: missing SUPABASE_SERVICE_ROLE_KEY")
        username = normalize_username(register_data.username)
        email = system_email_for(username)
        try:
            auth_response = self.supabase.auth.sign_up({
                "email": email,
                "password": register_data.password,
                "options": {
                    "data": {
                        "username": username,
                        "first_name": register_data.first_name,
                        "last_name": register_data.last_name
                    }
                }
            })
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise HTTPException(status_code=400, detail="This username is already taken")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error_message}")

        if not auth_response.user:
            raise HTTPException(status_code=400, detail="Failed to register user")
        user_id = auth_response.user.id

        now = datetime.now(timezone.utc).isoformat()
        try:
            self.service_client.table("profiles").upsert({
                "id": user_id,
                "username": username,
                "first_name": register_data.first_name,
                "last_name": register_data.last_name,
                "role": "user",
                "created_at": now,
                "updated_at": now
            }).execute()
        except Exception as e:
            if getattr(e, "code", None) == "23505":
                raise HTTPException(status_code=400, detail="This username is already taken")
            raise HTTPException(status_code=500, detail=f"Registration failed: {e}")

        referred_by = None
        if register_data.referral_code:
            referred_by = self._record_referral(register_data.referral_code.strip(), user_id)

        logger.info("Registered user %s (%s)", username, user_id)
        return RegisterResponse(
            user_id=user_id,
            username=username,
            email=auth_response.user.email or email,
            referred_by=referred_by,
            message="User registered successfully"
        )

    def _record_referral(self, referral_code: str, referred_id: str) -> Optional[str]:
        """Link the new account to its referrer. Failures are logged, never fatal for signup."""
        try:
            result = self.service_client.rpc("get_referrer_id_by_code", {"code": referral_code}).execute()
            referrer_id = result.data
            if not referrer_id or referrer_id == referred_id:
                logger.warning("Unknown referral code %s", referral_code)
                return None
            self.service_client.table("referrals").insert({
                "referrer_id": referrer_id,
                "referred_id": referred_id,
                "status": "active"
            }).execute()
            return referrer_id
        except Exception as e:
            logger.error(f"Referral insert error: {e}")
            return None

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate by username (mapped to its system e-mail) or by e-mail"""
        identifier = login_data.username.strip()
        email = identifier if "@" in identifier else system_email_for(identifier.lower())
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": email,
                "password": login_data.password
            })
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise HTTPException(status_code=401, detail="Invalid username or password")
            raise HTTPException(status_code=500, detail=f"Login failed: {error_message}")

        if not auth_response.user or not auth_response.session:
            raise HTTPException(status_code=401, detail="Invalid credentials")

        return TokenResponse(
            access_token=auth_response.session.access_token,
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or email
        )

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "app_metadata": user.app_metadata or {},
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Unauthorized")

    def logout(self, token: str) -> bool:
        """Drop the cached identity; Supabase tokens are stateless JWTs and expire on their own"""
        _AUTH_USER_CACHE.pop(hashlib.sha256(token.encode()).hexdigest(), None)
        try:
            self.supabase.auth.sign_out()
            return True
        except Exception:
            logger.debug("sign_out failed", exc_info=True)
            return False

    def generate_impersonation_link(self, target_user_id: str, origin: str) -> str:
        """Magic link that signs the caller in as target_user_id (admin only, checked by the route)"""
        if self.service_client is None:
            raise HTTPException(status_code=500, detail="Server misconfigured: missing SUPABASE_SERVICE_ROLE_KEY")
        try:
            target = self.service_client.auth.admin.get_user_by_id(target_user_id)
        except Exception as e:
            raise HTTPException(status_code=404, detail=str(e) or "Target user not found")
        if not target or not target.user or not target.user.email:
            raise HTTPException(status_code=404, detail="Target user not found")

        redirect_to = f"{origin.rstrip('/')}/auth/impersonate-callback"
        try:
            link = self.service_client.auth.admin.generate_link({
                "type": "magiclink",
                "email": target.user.email,
                "options": {"redirect_to": redirect_to}
            })
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e) or "Failed to generate impersonation link")

        action_link = getattr(getattr(link, "properties", None), "action_link", None)
        if not action_link:
            raise HTTPException(status_code=500, detail="Failed to generate impersonation link")
        logger.info("Impersonation link generated for %s", target_user_id)
        return action_link


def safe_next_path(raw_next: Optional[str], default: str = "/dashboard") -> str:
    """Only same-site absolute paths are accepted as redirect targets"""
    if raw_next and raw_next.startswith("/") and raw_next[1:2] not in ("/", "\\"):
        return raw_next
    return default
