from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config.settings import settings

# Per-endpoint limits for credential and money endpoints; the gateway applies the global window.
limiter = Limiter(
    key_func=get_remote_address,
    strategy="fixed-window",
    enabled=settings.rate_limit_enabled,
)
