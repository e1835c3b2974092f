"""Integration tests for /health, /healthz and /metrics endpoints."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from tests.helpers import auth_headers, create_equipment, create_equipment_type, register_company


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    @pytest.mark.asyncio
    async def test_health_is_always_ok(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_healthz_checks_real_database(self, client: httpx.AsyncClient) -> None:
        """Test /healthz against the test database with no Redis configured."""
        response = await client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["components"]["db"] == "ok"
        assert data["components"]["redis"] == "not_configured"
        assert data["components"]["rate_limit_backend"] == "memory"

    @pytest.mark.asyncio
    @patch("backend.equiptrack.api.routes.health.check_db", new_callable=AsyncMock)
    @patch("backend.equiptrack.api.routes.health.check_redis", new_callable=AsyncMock)
    async def test_healthz_returns_503_when_db_fails(
        self,
        mock_check_redis: AsyncMock,
        mock_check_db: AsyncMock,
        client: httpx.AsyncClient,
    ) -> None:
        """Test /healthz returns 503 when DB check fails."""
        mock_check_db.return_value = (False, "error: OperationalError")
        mock_check_redis.return_value = (True, "ok")

        response = await client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["db"] == "error: OperationalError"
        assert data["components"]["redis"] == "ok"

    @pytest.mark.asyncio
    @patch("backend.equiptrack.api.routes.health.check_db", new_callable=AsyncMock)
    @patch("backend.equiptrack.api.routes.health.check_redis", new_callable=AsyncMock)
    async def test_healthz_returns_503_when_redis_fails(
        self,
        mock_check_redis: AsyncMock,
        mock_check_db: AsyncMock,
        client: httpx.AsyncClient,
    ) -> None:
        """Test /healthz returns 503 when Redis check fails."""
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (False, "error: TimeoutError")

        response = await client.get("/healthz")

        assert response.status_code == 503
        assert response.json()["components"]["redis"] == "error: TimeoutError"


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    @pytest.mark.asyncio
    async def test_metrics_exposes_counters(self, client: httpx.AsyncClient) -> None:
        """Test /metrics renders the Prometheus text format with our series."""
        admin = await register_company(client)
        excavator = await create_equipment_type(client, admin["token"])
        equipment = await create_equipment(client, admin["token"], excavator["id"])
        await client.patch(
            f"/equipment/{equipment['id']}/status",
            json={"status": "out_of_order"},
            headers=auth_headers(admin["token"]),
        )

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        text = response.text
        assert "http_requests_total" in text
        assert "http_request_latency_ms" in text
        assert 'equipment_transitions_total{new_status="out_of_order"}' in text

    @pytest.mark.asyncio
    async def test_metrics_needs_no_credential(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "X-RateLimit-Limit" in response.headers
