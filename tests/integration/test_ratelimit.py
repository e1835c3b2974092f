"""Integration tests for rate limiting and identity resolution in the request pipeline."""

import uuid

import httpx
import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.equiptrack.api.auth import TokenAuthority
from backend.equiptrack.config import Settings
from backend.equiptrack.db.context import Identity, Role
from backend.equiptrack.db.inmemory import InMemoryRateLimitStore
from backend.equiptrack.db.models import Company
from tests.helpers import TEST_JWT_SECRET, auth_headers, register_company

MAX_REQUESTS = 5


@pytest.fixture
def settings() -> Settings:
    """Tight quota so tests can exhaust it."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        rate_limit_backend="memory",
        rate_limit_max_requests=MAX_REQUESTS,
        rate_limit_window_seconds=900,
    )


@pytest.mark.asyncio
async def test_every_response_carries_rate_limit_headers(client: httpx.AsyncClient) -> None:
    """Test successful and rejected responses both report the quota."""
    for path in ("/health", "/equipment", "/does-not-exist"):
        response = await client.get(path)
        assert "X-RateLimit-Limit" in response.headers, path
        assert "X-RateLimit-Remaining" in response.headers, path
        assert "X-RateLimit-Reset" in response.headers, path

    assert response.headers["X-RateLimit-Limit"] == str(MAX_REQUESTS)
    assert response.headers["X-RateLimit-Remaining"] == str(MAX_REQUESTS - 3)


@pytest.mark.asyncio
async def test_request_over_quota_gets_429(
    client: httpx.AsyncClient, rate_limit_store: InMemoryRateLimitStore
) -> None:
    for _ in range(MAX_REQUESTS):
        assert (await client.get("/health")).status_code == 200

    response = await client.get("/health")

    assert response.status_code == 429
    assert response.json()["error"]["code"] == "RATE_LIMITED"
    assert int(response.headers["Retry-After"]) >= 1
    assert response.headers["X-RateLimit-Remaining"] == "0"

    entry = rate_limit_store.peek("ip:127.0.0.1")
    assert entry is not None
    assert entry.count == MAX_REQUESTS + 1


@pytest.mark.asyncio
async def test_rate_limit_precedes_authentication(client: httpx.AsyncClient) -> None:
    """Test an exhausted caller gets 429 even without a credential."""
    for _ in range(MAX_REQUESTS):
        await client.get("/equipment")

    response = await client.get("/equipment")

    assert response.status_code == 429


@pytest.mark.asyncio
async def test_authenticated_callers_have_their_own_bucket(client: httpx.AsyncClient) -> None:
    """Test a signed-in user is keyed by identity rather than address."""
    admin = await register_company(client)
    headers = auth_headers(admin["token"])

    # Registration plus these exhaust the address bucket
    for _ in range(MAX_REQUESTS - 1):
        await client.get("/health")
    assert (await client.get("/health")).status_code == 429

    response = await client.get("/auth/me", headers=headers)

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Remaining"] == str(MAX_REQUESTS - 1)


@pytest.mark.asyncio
async def test_missing_credential_is_unauthorized(client: httpx.AsyncClient) -> None:
    response = await client.get("/equipment")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_credentials_are_unauthorized(client: httpx.AsyncClient) -> None:
    admin = await register_company(client)
    token = admin["token"]
    forged = TokenAuthority("a-completely-different-secret-of-32-bytes").issue(
        Identity(
            user_id=uuid.UUID(admin["user"]["id"]),
            company_id=uuid.UUID(admin["company"]["id"]),
            role=Role.admin,
            email=admin["user"]["email"],
        )
    )

    garbage = await client.get("/auth/me", headers=auth_headers("garbage"))
    wrong_scheme = await client.get("/auth/me", headers={"Authorization": f"Token {token}"})
    wrong_signature = await client.get("/auth/me", headers=auth_headers(forged))

    assert garbage.status_code == 401
    assert wrong_scheme.status_code == 401
    assert wrong_signature.status_code == 401


@pytest.mark.asyncio
async def test_inactive_company_locks_out_its_users(
    client: httpx.AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    admin = await register_company(client)
    assert (await client.get("/auth/me", headers=auth_headers(admin["token"]))).status_code == 200

    async with session_factory() as session:
        await session.execute(update(Company).values(is_active=False))
        await session.commit()

    response = await client.get("/auth/me", headers=auth_headers(admin["token"]))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_exempt_routes_need_no_credential(client: httpx.AsyncClient) -> None:
    assert (await client.get("/health")).status_code == 200
    assert (await client.get("/auth/invitation/" + "0" * 64)).status_code == 404
    assert (
        await client.post("/auth/login", json={"email": "x@acme.io", "password": "whatever1"})
    ).status_code == 401
