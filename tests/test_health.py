"""Health endpoint tests."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from shortlink.enums import HealthStatus
from shortlink.errors import StoreUnavailable
from shortlink.store import MappingStore


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["hit_counter"] == HealthStatus.HEALTHY.value


@pytest.mark.asyncio
async def test_health_check_database_down(client: AsyncClient, store: MappingStore, monkeypatch) -> None:
    monkeypatch.setattr(store, "ping", AsyncMock(side_effect=StoreUnavailable("ping", "connection refused")))

    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.UNHEALTHY.value
    assert data["database"] == HealthStatus.UNHEALTHY.value
