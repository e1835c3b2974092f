"""Tests for rate limit keying, the pipeline stage and response headers."""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.datastructures import Headers

from backend.equiptrack.api.auth import TokenAuthority
from backend.equiptrack.config import Settings
from backend.equiptrack.db.context import Identity, Role
from backend.equiptrack.db.inmemory import InMemoryRateLimitStore
from backend.equiptrack.db.repositories import RateLimitDecision
from backend.equiptrack.errors import RateLimited
from backend.equiptrack.middleware.pipeline import PipelineContext
from backend.equiptrack.middleware.ratelimit import (
    RateLimitStage,
    rate_limit_headers,
    retry_after_seconds,
)
from backend.equiptrack.ratelimit import (
    RedisRateLimitStore,
    build_rate_limit_store,
    make_rate_limit_key,
)

SECRET = "unit-test-secret-with-at-least-32-bytes"


def _ctx(authorization: str | None = None, client_host: str | None = "10.1.2.3") -> PipelineContext:
    raw = {"authorization": authorization} if authorization else {}
    return PipelineContext(
        method="GET",
        path="/equipment",
        headers=Headers(raw),
        client_host=client_host,
        started_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def _token(authority: TokenAuthority, user_id: uuid.UUID) -> str:
    return authority.issue(
        Identity(user_id=user_id, company_id=uuid.uuid4(), role=Role.staff, email="s@acme.io")
    )


def test_make_rate_limit_key() -> None:
    """Test identity wins over origin, origin over the unknown bucket."""
    assert make_rate_limit_key("abc", "10.0.0.1") == "user:abc"
    assert make_rate_limit_key(None, "10.0.0.1") == "ip:10.0.0.1"
    assert make_rate_limit_key(None, None) == "unknown"


def test_stage_keys_by_verified_user_id() -> None:
    """Test a valid bearer credential keys the limiter by user id."""
    authority = TokenAuthority(SECRET)
    stage = RateLimitStage(InMemoryRateLimitStore(max_requests=10), authority)
    user_id = uuid.uuid4()

    key = stage.key_for(_ctx(f"Bearer {_token(authority, user_id)}"))

    assert key == f"user:{user_id}"


def test_stage_falls_back_to_origin_for_untrusted_credential() -> None:
    """Test a forged credential cannot choose its own bucket."""
    authority = TokenAuthority(SECRET)
    forger = TokenAuthority("another-secret-with-at-least-32-bytes!!")
    stage = RateLimitStage(InMemoryRateLimitStore(max_requests=10), authority)

    key = stage.key_for(_ctx(f"Bearer {_token(forger, uuid.uuid4())}"))

    assert key == "ip:10.1.2.3"


def test_stage_uses_unknown_bucket_without_origin() -> None:
    stage = RateLimitStage(InMemoryRateLimitStore(max_requests=10), TokenAuthority(SECRET))

    assert stage.key_for(_ctx(client_host=None)) == "unknown"


@pytest.mark.asyncio
async def test_stage_records_decision_and_rejects_over_quota() -> None:
    """Test the stage stores its decision on the context and fails over quota."""
    stage = RateLimitStage(InMemoryRateLimitStore(max_requests=1), TokenAuthority(SECRET))

    ctx = _ctx()
    assert await stage.run(ctx) is None
    assert ctx.rate_limit is not None
    assert ctx.rate_limit.remaining == 0

    ctx = _ctx()
    failure = await stage.run(ctx)

    assert isinstance(failure, RateLimited)
    assert failure.status_code == 429
    assert failure.reset_at == ctx.rate_limit.reset_at


def test_rate_limit_headers() -> None:
    """Test limit/remaining/reset headers are rendered from the decision."""
    reset_at = datetime(2026, 1, 1, 0, 15, 0, 500000, tzinfo=timezone.utc)
    decision = RateLimitDecision(allowed=True, count=3, limit=100, reset_at=reset_at)

    headers = rate_limit_headers(decision)

    assert headers["X-RateLimit-Limit"] == "100"
    assert headers["X-RateLimit-Remaining"] == "97"
    # Epoch seconds, rounded up
    assert headers["X-RateLimit-Reset"] == str(int(reset_at.timestamp()) + 1)


def test_retry_after_is_at_least_one_second() -> None:
    ctx = _ctx()
    decision = RateLimitDecision(
        allowed=False, count=5, limit=4, reset_at=ctx.started_at + timedelta(seconds=42.2)
    )
    assert retry_after_seconds(decision, ctx) == 43

    expired = RateLimitDecision(allowed=False, count=5, limit=4, reset_at=ctx.started_at)
    assert retry_after_seconds(expired, ctx) == 1


@pytest.mark.asyncio
async def test_redis_store_maps_script_result() -> None:
    """Test the Redis store turns (count, ttl) into a decision."""
    script = AsyncMock(return_value=[3, 60_000])
    client = MagicMock()
    client.register_script.return_value = script
    store = RedisRateLimitStore(client, max_requests=2, window_seconds=900)
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    decision = await store.check_and_increment("user:a", now)

    script.assert_awaited_once_with(keys=["ratelimit:user:a"], args=[900_000])
    assert decision.allowed is False
    assert decision.count == 3
    assert decision.reset_at == now + timedelta(seconds=60)


def test_build_store_selects_backend() -> None:
    memory = build_rate_limit_store(Settings(jwt_secret=SECRET, rate_limit_backend="memory"))
    assert isinstance(memory, InMemoryRateLimitStore)

    with pytest.raises(ValueError, match="REDIS_URL"):
        build_rate_limit_store(
            Settings(jwt_secret=SECRET, rate_limit_backend="redis", redis_url=None)
        )
