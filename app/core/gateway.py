"""
Request interceptor in front of every route: host based portal routing, the portal root
redirect and the fixed-window limit on API calls.
"""

import logging
from typing import Optional

from starlette.responses import JSONResponse, RedirectResponse

from app.config.settings import settings
from app.config.permissions_config import PORTAL_ROLES
from app.core.rate_limit import FixedWindowRateLimiter, build_gateway_limiter
from app.modules.portals.service import login_redirect_url, portal_home

logger = logging.getLogger(__name__)

# Never rewritten onto a portal
SHARED_PREFIXES = ("/api/", "/auth/", "/docs", "/redoc", "/openapi.json")
PROBE_PATHS = ("/health", "/ready")


def header_value(scope, name: bytes) -> Optional[str]:
    for key, value in scope.get("headers") or []:
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def client_ip(scope) -> str:
    """
    Peer address of the connection. X-Forwarded-For is only read when the peer is a trusted
    proxy, and then the rightmost hop that is not itself a trusted proxy wins.
    """
    client = scope.get("client")
    peer = client[0] if client else "unknown"
    trusted = settings.get_trusted_proxies()
    if peer not in trusted:
        return peer
    forwarded = header_value(scope, b"x-forwarded-for")
    hops = [hop.strip() for hop in (forwarded or "").split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


def resolve_portal(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    hostname = host.split(":", 1)[0].strip().lower()
    portal = settings.get_portal_hosts().get(hostname)
    return portal if portal in PORTAL_ROLES else None


def rewrite_path(path: str, portal: Optional[str]) -> str:
    """/login on the merchant host is /merchant/login"""
    if not portal or path in PROBE_PATHS or path.startswith(SHARED_PREFIXES):
        return path
    if path == f"/{portal}" or path.startswith(f"/{portal}/"):
        return path
    if path == "/":
        return f"/{portal}"
    return f"/{portal}{path}"


class PortalGatewayMiddleware:
    def __init__(self, app, limiter: Optional[FixedWindowRateLimiter] = None):
        self.app = app
        self.limiter = limiter or build_gateway_limiter()

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        portal = resolve_portal(header_value(scope, b"host"))
        path = rewrite_path(scope["path"], portal)
        if path != scope["path"]:
            scope = {**scope, "path": path, "raw_path": path.encode("utf-8")}

        root_portal = path.strip("/")
        if path == f"/{root_portal}" and root_portal in PORTAL_ROLES:
            response = RedirectResponse(
                url=login_redirect_url(root_portal, portal_home(root_portal)),
                status_code=307
            )
            await response(scope, receive, send)
            return

        if not path.startswith("/api/") or not self.limiter.enabled:
            await self.app(scope, receive, send)
            return

        ip = client_ip(scope)
        result = await self.limiter.hit(ip)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {ip} on {path}")
            response = JSONResponse(
                status_code=429,
                content={"detail": "Too many requests"},
                headers={**result.headers(), "Retry-After": str(result.retry_after)}
            )
            await response(scope, receive, send)
            return

        rate_headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in result.headers().items()]

        async def send_with_rate_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"] = list(message["headers"]) + rate_headers
            await send(message)

        await self.app(scope, receive, send_with_rate_headers)
