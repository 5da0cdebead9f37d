"""
Fixed-window request counter shared by every instance of the API.

Counters live in a Redis-compatible key-value store reached over its REST API
(Upstash style ``/pipeline`` endpoint), so the limit holds across processes without a
Redis driver. Without a configured URL an in-process store is used instead.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import httpx

from app.config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # epoch seconds at which the window closes

    @property
    def retry_after(self) -> int:
        return max(1, self.reset_at - int(time.time()))

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class MemoryStore:
    """Per-process counters; only meant for development and tests"""

    def __init__(self):
        self._counters: Dict[str, Tuple[int, float]] = {}

    async def incr(self, key: str, ttl_seconds: int) -> int:
        now = time.time()
        count, expires_at = self._counters.get(key, (0, 0.0))
        if expires_at <= now:
            count, expires_at = 0, now + ttl_seconds
        count += 1
        self._counters[key] = (count, expires_at)
        if len(self._counters) > 10000:
            self._counters = {k: v for k, v in self._counters.items() if v[1] > now}
        return count


class KVRestStore:
    """INCR + EXPIRE NX in one pipeline call against the REST API"""

    def __init__(self, base_url: str, token: Optional[str], timeout: float = 2.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    async def incr(self, key: str, ttl_seconds: int) -> int:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/pipeline",
                headers=headers,
                json=[["INCR", key], ["EXPIRE", key, str(ttl_seconds), "NX"]],
            )
            response.raise_for_status()
            results = response.json()
        first = results[0] if isinstance(results, list) and results else {}
        if not isinstance(first, dict) or first.get("error"):
            raise RuntimeError(f"KV pipeline error: {first}")
        return int(first.get("result"))


class FixedWindowRateLimiter:
    """
    At most ``limit`` hits per identifier per ``window_seconds``. Windows are aligned to
    the epoch, so every instance agrees on when a window starts and ends.
    """

    def __init__(self, store, limit: int, window_seconds: int, key_prefix: str = "ratelimit"):
        self.store = store
        self.limit = limit
        self.window_seconds = max(1, window_seconds)
        self.key_prefix = key_prefix

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    async def hit(self, identifier: str) -> RateLimitResult:
        now = int(time.time())
        window = now // self.window_seconds
        reset_at = (window + 1) * self.window_seconds
        key = f"{self.key_prefix}:{identifier}:{window}"

        try:
            count = await self.store.incr(key, self.window_seconds)
        except Exception as e:
            # fail open
            logger.warning(f"Rate limit store unavailable, allowing request: {e}")
            return RateLimitResult(allowed=True, limit=self.limit, remaining=self.limit, reset_at=reset_at)

        return RateLimitResult(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_at=reset_at,
        )


def build_gateway_limiter() -> FixedWindowRateLimiter:
    if settings.kv_rest_url:
        store = KVRestStore(settings.kv_rest_url, settings.kv_rest_token, settings.kv_timeout_seconds)
        logger.info("Gateway rate limiter using the KV REST store")
    else:
        store = MemoryStore()
        logger.info("Gateway rate limiter using the in-process store")
    return FixedWindowRateLimiter(
        store,
        limit=settings.gateway_rate_limit,
        window_seconds=settings.gateway_rate_window_seconds,
        key_prefix=settings.kv_key_prefix,
    )
