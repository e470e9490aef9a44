"""Stats endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from shortlink.service import ShortLinkService


@pytest.mark.asyncio
async def test_stats_valid_code(client: AsyncClient) -> None:
    create_resp = await client.post("/api/shorten", json={"url": "https://www.google.com"})
    code = create_resp.json()["code"]

    response = await client.get(f"/api/stats/{code}")
    assert response.status_code == 200
    data = response.json()
    assert data["code"] == code
    assert data["target_url"] == "https://www.google.com"
    assert data["hit_count"] == 0
    assert data["state"] == "active"
    assert "created_at" in data


@pytest.mark.asyncio
async def test_stats_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/api/stats/nonexistent")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stats_after_clicks(client: AsyncClient, service: ShortLinkService) -> None:
    create_resp = await client.post("/api/shorten", json={"url": "https://www.example.com"})
    code = create_resp.json()["code"]

    for _ in range(5):
        await client.get(f"/{code}", follow_redirects=False)
    await service.hit_counter.drain()

    response = await client.get(f"/api/stats/{code}")
    assert response.status_code == 200
    assert response.json()["hit_count"] == 5
