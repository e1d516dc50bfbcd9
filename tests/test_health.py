"""Tests for health endpoints."""
from unittest.mock import patch

import pytest


@pytest.mark.anyio
async def test_health_check(client):
    """Test basic health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert "service" in data
    assert "version" in data


@pytest.mark.anyio
async def test_full_health_reports_dependencies(client, tmp_path):
    with patch("plp.api.routes.health.settings.data_dir", str(tmp_path)):
        response = await client.get("/api/v1/health/full")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["dependencies"]["database"]["status"] == "ok"
    assert data["dependencies"]["fileStore"]["status"] == "ok"


@pytest.mark.anyio
async def test_missing_data_dir_does_not_degrade(client, tmp_path):
    """The file store is a mirror; only the database decides degraded."""
    with patch("plp.api.routes.health.settings.data_dir", str(tmp_path / "absent")):
        response = await client.get("/api/v1/health/full")
    data = response.json()
    assert data["status"] == "ok"
    assert data["dependencies"]["fileStore"]["status"] == "unavailable"


@pytest.mark.anyio
async def test_root_endpoint(client):
    """Test root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200

    data = response.json()
    assert "service" in data
    assert "docs" in data
