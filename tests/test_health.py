"""Tests for health check endpoints."""

import pytest
from httpx import AsyncClient

from app.services.scheduler import SyncScheduler


@pytest.mark.asyncio
async def test_root(client: AsyncClient) -> None:
    """Test root endpoint returns API info."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "name" in data
    assert "version" in data
    assert "docs" in data


@pytest.mark.asyncio
async def test_liveness(client: AsyncClient) -> None:
    """Test liveness endpoint."""
    response = await client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_health_reports_database_and_scheduler(client: AsyncClient) -> None:
    """A scheduler that was never started is reported, not treated as unhealthy."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"status", "version", "environment", "checks"}
    assert data["status"] == "healthy"
    assert data["checks"]["database"] == "healthy"
    assert data["checks"]["scheduler"] == "stopped"


@pytest.mark.asyncio
async def test_health_reports_running_scheduler(
    client: AsyncClient,
    scheduler: SyncScheduler,
) -> None:
    await scheduler.start()
    try:
        response = await client.get("/api/v1/health")
    finally:
        await scheduler.stop()

    assert response.json()["checks"]["scheduler"] == "running"
