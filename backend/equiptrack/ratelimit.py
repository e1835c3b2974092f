"""Rate limiting utilities."""

from datetime import datetime, timedelta

import redis.asyncio as redis

from backend.equiptrack.config import Settings
from backend.equiptrack.db.inmemory import InMemoryRateLimitStore
from backend.equiptrack.db.repositories import RateLimitDecision, RateLimitStore

UNKNOWN_ORIGIN = "unknown"

# INCR and arm the expiry on the first hit in one round trip, so concurrent
# processes never lose an update or leave a counter without a TTL.
_INCR_WITH_TTL = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('PTTL', KEYS[1])
return {count, ttl}
"""


def make_rate_limit_key(user_id: str | None, origin: str | None) -> str:
    """Create rate limit key from the caller's identity or origin.

    Args:
        user_id: Identity id when the credential carries one
        origin: Client network address

    Returns:
        Rate limit key
    """
    if user_id:
        return f"user:{user_id}"
    if origin:
        return f"ip:{origin}"
    return UNKNOWN_ORIGIN


class RedisRateLimitStore:
    """Redis-based rate limit store for multi-instance deployments.

    The window starts at a key's first request and the key expires with
    it, matching the in-process store's semantics.
    """

    def __init__(
        self, redis_client: redis.Redis, max_requests: int, window_seconds: int = 15 * 60
    ) -> None:
        """Initialize rate limit store.

        Args:
            redis_client: Async Redis client
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 15 minutes)
        """
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._script = redis_client.register_script(_INCR_WITH_TTL)

    async def check_and_increment(self, key: str, now: datetime) -> RateLimitDecision:
        """Count one request for key and decide whether it is allowed."""
        count, ttl_ms = await self._script(keys=[f"ratelimit:{key}"], args=[self._window_ms])
        count = int(count)
        ttl_ms = int(ttl_ms)

        if ttl_ms < 0:
            # Key vanished between INCR and PTTL; treat as a fresh window
            ttl_ms = self._window_ms

        return RateLimitDecision(
            allowed=count <= self._max_requests,
            count=count,
            limit=self._max_requests,
            reset_at=now + timedelta(milliseconds=ttl_ms),
        )


def build_rate_limit_store(settings: Settings) -> RateLimitStore:
    """Select the rate limit store from deployment configuration.

    Raises:
        ValueError: If the redis backend is selected without REDIS_URL.
    """
    if settings.rate_limit_backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL must be set when RATE_LIMIT_BACKEND=redis")
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return RedisRateLimitStore(
            client,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )

    return InMemoryRateLimitStore(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
