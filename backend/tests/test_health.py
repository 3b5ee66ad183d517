"""
Tests for health check endpoints.
"""

import asyncio

import pytest

from shared.utils.health import (
    HealthStatus,
    aggregate_health_checks,
    health_check_with_timeout,
)


class TestHealthEndpoints:
    """Test health check API endpoints."""

    def test_health_check(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "rest-api"
        assert data["environment"] == "test"

    def test_detailed_health(self, client):
        response = client.get("/api/health/detailed")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["database"]["status"] == "healthy"
        assert data["dependencies"]["database"]["details"] == {"dialect": "sqlite"}
        assert set(data["providers"]) == {"MTN_MOMO", "ORANGE_MONEY"}
        assert data["circuit_breakers"] == {}

    def test_detailed_health_database_down(self, client, monkeypatch):
        @health_check_with_timeout(timeout=1.0, component="database")
        async def broken():
            raise ConnectionError("connection refused")

        monkeypatch.setattr("rest_api.routers.public.health.check_database", broken)

        response = client.get("/api/health/detailed")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["dependencies"]["database"]["error"] == "connection refused"


class TestHealthHelpers:
    @pytest.mark.asyncio
    async def test_component_name_from_function(self):
        @health_check_with_timeout()
        async def check_cache():
            return None

        result = await check_cache()
        assert result.component == "cache"
        assert result.status == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_timeout_is_unhealthy(self):
        @health_check_with_timeout(timeout=0.01)
        async def check_slow():
            await asyncio.sleep(1)

        result = await check_slow()
        assert result.status == HealthStatus.UNHEALTHY
        assert result.error == "timeout after 0.01s"

    @pytest.mark.asyncio
    async def test_aggregate(self):
        @health_check_with_timeout()
        async def check_ok():
            return {"x": 1}

        @health_check_with_timeout()
        async def check_bad():
            raise RuntimeError("nope")

        report = await aggregate_health_checks([check_ok(), check_bad()])

        assert report["status"] == "degraded"
        assert report["components"]["ok"]["details"] == {"x": 1}
        assert report["components"]["bad"]["status"] == "unhealthy"
