"""Unit tests for health check, metrics and info endpoints"""

from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock

from lynxa.core.config import settings
from lynxa.main import app

client = TestClient(app)


class TestHealthCheck:
    """Test suite for health check endpoint"""

    def test_health_check_database_healthy(self):
        """Test health check returns 200 when the database is reachable"""
        with patch('lynxa.api.v1.health.check_database', new_callable=AsyncMock, return_value=True), \
             patch.object(settings, 'RATE_LIMIT_BACKEND', 'database'):

            response = client.get("/health")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["services"] == {"database": True}
            assert data["version"] == settings.APP_VERSION

    def test_health_check_database_unavailable(self):
        """Test health check returns 503 when the database is unreachable"""
        with patch('lynxa.api.v1.health.check_database', new_callable=AsyncMock, return_value=False), \
             patch.object(settings, 'RATE_LIMIT_BACKEND', 'database'):

            response = client.get("/health")

            assert response.status_code == 503
            assert response.json()["status"] == "unhealthy"

    def test_redis_checked_only_when_it_holds_windows(self):
        """Redis is part of health only with the redis rate window backend"""
        with patch('lynxa.api.v1.health.check_database', new_callable=AsyncMock, return_value=True), \
             patch('lynxa.api.v1.health.check_redis', new_callable=AsyncMock, return_value=False), \
             patch.object(settings, 'RATE_LIMIT_BACKEND', 'redis'):

            response = client.get("/health")

            assert response.status_code == 503
            data = response.json()
            assert data["services"]["database"] is True
            assert data["services"]["redis"] is False

    def test_health_check_response_format(self):
        """Test health check response has correct format"""
        with patch('lynxa.api.v1.health.check_database', new_callable=AsyncMock, return_value=True):

            response = client.get("/health")

            data = response.json()
            assert "status" in data
            assert "services" in data
            assert "timestamp" in data
            assert isinstance(data["services"], dict)


class TestMetricsEndpoint:

    def test_metrics_exposed(self):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "key_validations_total" in response.text
        assert "rate_limit_decisions_total" in response.text


class TestInfoEndpoint:

    def test_info(self):
        response = client.get("/api/info")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == settings.APP_NAME
        assert data["authentication"]["type"] == "Bearer"
        assert data["rate_limits"]["plans"]["enterprise"] == -1

    def test_request_id_echoed(self):
        response = client.get("/api/info", headers={"X-Request-ID": "trace-123"})

        assert response.headers["X-Request-ID"] == "trace-123"

    def test_root(self):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/api/docs"
