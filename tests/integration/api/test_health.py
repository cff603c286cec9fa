"""
Integration tests for health and readiness endpoints.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from pms_core.main import app

client = TestClient(app)


@pytest.mark.integration
def test_health_endpoint_returns_ok():
    """Test that /health endpoint returns 200 with status ok."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_readiness_endpoint_returns_ready_when_db_accessible():
    """Test that /ready endpoint returns 200 when database is accessible."""
    response = client.get("/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"


@pytest.mark.integration
def test_readiness_endpoint_returns_503_when_db_not_accessible():
    """Test that /ready endpoint returns 503 when database is not accessible."""
    with patch("pms_core.routes.health.check_engine_health") as mock_health:
        mock_health.return_value = False

        response = client.get("/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not ready"
        assert data["checks"]["database"] == "failed"


@pytest.mark.integration
def test_responses_carry_request_id():
    """Test that operational endpoints echo X-Request-ID."""
    response = client.get("/health", headers={"X-Request-ID": "req-4411"})

    assert response.headers["X-Request-ID"] == "req-4411"


@pytest.mark.integration
def test_readiness_reports_notification_transport():
    """Test that the notification transport is reported without affecting readiness."""
    with patch("pms_core.routes.health.NOTIFICATION_WEBHOOK_URL", None):
        response = client.get("/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["notifications"] == "log_only"

    with patch("pms_core.routes.health.NOTIFICATION_WEBHOOK_URL", "http://notify.local/send"):
        response = client.get("/ready")

    assert response.json()["checks"]["notifications"] == "webhook"
