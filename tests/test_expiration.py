"""End-to-end expiration scenario over HTTP."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_link_expires_after_its_window(client: AsyncClient, clock) -> None:
    created = await client.post("/api/shorten", json={"url": "https://example.com", "expiresIn": 1})
    assert created.status_code == 201
    code = created.json()["data"]["shortCode"]

    first = await client.get(f"/{code}")
    assert first.status_code == 302
    assert first.headers["location"] == "https://example.com"

    stats = (await client.get(f"/api/stats/{code}")).json()["data"]
    assert stats["totalClicks"] == 1
    assert stats["link"]["status"] == "active"

    clock.advance(hours=2)

    expired = await client.get(f"/{code}")
    assert expired.status_code == 404
    assert "Link expired" in expired.text

    stats = (await client.get(f"/api/stats/{code}")).json()["data"]
    assert stats["totalClicks"] == 1
    assert stats["link"]["status"] == "expired"

    managed = (await client.get("/api/manage")).json()["data"]
    assert managed[0]["status"] == "expired"
