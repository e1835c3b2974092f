"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backend.equiptrack.config import Settings
from backend.equiptrack.db.engine import create_session_factory
from backend.equiptrack.db.inmemory import InMemoryAuditLogRepository, InMemoryRateLimitStore
from backend.equiptrack.db.models import Base
from backend.equiptrack.main import create_app
from tests.helpers import TEST_JWT_SECRET


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    # Ensure it's a postgres URL
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    # Convert to async driver if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite file database per test (an in-memory one would not survive NullPool)."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'equiptrack.db'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def settings() -> Settings:
    """Fast settings: cheap bcrypt, in-process rate limiting."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        rate_limit_backend="memory",
        rate_limit_max_requests=100,
        rate_limit_window_seconds=900,
    )


@pytest.fixture
def audit_log() -> InMemoryAuditLogRepository:
    return InMemoryAuditLogRepository()


@pytest.fixture
def rate_limit_store(settings: Settings) -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


@pytest_asyncio.fixture
async def app(
    engine: AsyncEngine,
    settings: Settings,
    rate_limit_store: InMemoryRateLimitStore,
    audit_log: InMemoryAuditLogRepository,
) -> AsyncGenerator[FastAPI, None]:
    application = create_app(
        settings=settings,
        engine=engine,
        rate_limit_store=rate_limit_store,
        audit_repository=audit_log,
    )
    yield application
    await application.state.audit_recorder.drain()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

