"""
Tests for monitorflow/main.py - app wiring, error rendering and health checks.
"""
import pytest
from unittest.mock import AsyncMock

from monitorflow.api.health import health_check, readiness_check
from monitorflow.utils.errors import DeliveryFinalizationError, NotFoundError, QuotaExceededError


class TestErrorTaxonomy:
    def test_default_message_and_status(self):
        err = QuotaExceededError()
        assert err.status_code == 429
        assert err.to_dict() == {"message": "Monthly quota reached. Please upgrade your plan for more events"}

    def test_custom_message(self):
        assert NotFoundError("Webhook not found").to_dict() == {"message": "Webhook not found"}

    def test_finalization_error_carries_event(self):
        err = DeliveryFinalizationError(event_id="e-1", error="boom")
        assert err.status_code == 500
        assert err.to_dict() == {
            "message": "Failed to deliver event to Discord",
            "eventId": "e-1",
            "error": "boom",
        }


class TestApp:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_readiness_uses_database(self, client):
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"] == {"database": True}

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "trace-77"})
        assert response.headers["X-Correlation-ID"] == "trace-77"

    @pytest.mark.asyncio
    async def test_correlation_id_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Correlation-ID"]) == 32

    @pytest.mark.asyncio
    async def test_unknown_route_has_message(self, client):
        response = await client.get("/api/v1/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}


class TestHealthFunctions:
    @pytest.mark.asyncio
    async def test_health_check(self):
        result = await health_check()
        assert result["status"] == "healthy"
        assert result["version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_readiness_degraded_when_db_fails(self):
        mock_db = AsyncMock()
        mock_db.execute = AsyncMock(side_effect=Exception("connection refused"))

        response = await readiness_check(db=mock_db)

        assert response.status_code == 503
