"""Health check endpoints.

- /health is a liveness probe
- /healthz checks DB and Redis connectivity and reports per-component status
"""

from typing import Any

import redis.asyncio as redis
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.equiptrack.config import Settings

router = APIRouter(tags=["health"])


async def check_db(session_factory: async_sessionmaker[AsyncSession]) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(request: Request) -> dict[str, Any] | JSONResponse:
    """Health check endpoint.

    Returns:
        200 with component status if core systems ok
        503 if a configured component fails
    """
    settings: Settings = request.app.state.settings

    db_ok, db_status = await check_db(request.app.state.session_factory)
    redis_ok, redis_status = await check_redis(settings)

    core_ok = db_ok and redis_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "rate_limit_backend": settings.rate_limit_backend,
        },
    }

    if not core_ok:
        return JSONResponse(response_body, status_code=503)

    return response_body
