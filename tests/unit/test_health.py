"""Tests for health probes."""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from app.infra.resilience import CircuitState, get_circuit_breaker
from app.main import app


@pytest.fixture
def client():
    return TestClient(app)


class TestHealth:
    """Test /health endpoints."""

    def test_health(self, client):
        """Basic health never checks dependencies."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_with_redis(self, client):
        """Redis up means ready; breakers are reported."""
        with patch("app.api.routes.health.check_redis_health", AsyncMock(return_value=True)):
            response = client.get("/health/ready")

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["redis"] == "ok"
        assert checks["circuit:availability"] == "ok"

    def test_not_ready_without_redis(self, client):
        """Redis down fails readiness."""
        with patch("app.api.routes.health.check_redis_health", AsyncMock(return_value=False)):
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_open_breaker_reported(self, client):
        """An open breaker shows up but doesn't fail readiness."""
        breaker = get_circuit_breaker("booking")
        breaker.state = CircuitState.OPEN
        try:
            with patch("app.api.routes.health.check_redis_health", AsyncMock(return_value=True)):
                response = client.get("/health/ready")
        finally:
            breaker.reset()

        assert response.status_code == 200
        assert response.json()["checks"]["circuit:booking"] == "open"

    def test_live(self, client):
        """Liveness is unconditional."""
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"
