"""
Integration tests for health and readiness endpoints.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from carmarket.main import app

client = TestClient(app)


@pytest.mark.integration
def test_health_endpoint_returns_ok() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_readiness_endpoint_returns_ready_when_db_accessible() -> None:
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": "ok"}}


@pytest.mark.integration
def test_readiness_endpoint_returns_503_when_db_not_accessible() -> None:
    with patch("carmarket.routes.health.check_engine_health", return_value=False):
        response = client.get("/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "not ready", "checks": {"database": "failed"}}


@pytest.mark.integration
def test_health_endpoint_does_not_depend_on_database() -> None:
    """Liveness only reflects the process; readiness covers dependencies."""
    with patch("carmarket.routes.health.check_engine_health", return_value=False):
        response = client.get("/health")

    assert response.status_code == 200
