"""Stats endpoint and stats service tests."""

import pytest
from httpx import AsyncClient

from shortener.errors import LinkNotFound
from shortener.owner import Owner
from shortener.repositories import ClickMeta


@pytest.mark.asyncio
async def test_stats_valid_code(client: AsyncClient, clock) -> None:
    data = (await client.post("/api/shorten", json={"url": "https://www.example.com"})).json()["data"]
    for _ in range(2):
        await client.get(f"/{data['shortCode']}")
    clock.advance(days=1)
    await client.get(f"/{data['shortCode']}")

    response = await client.get(f"/api/stats/{data['shortCode']}")
    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["totalClicks"] == 3
    assert stats["link"]["shortCode"] == data["shortCode"]
    assert stats["link"]["status"] == "active"
    assert stats["dailyStats"] == [
        {"date": "2026-03-11", "clicks": 1},
        {"date": "2026-03-10", "clicks": 2},
    ]


@pytest.mark.asyncio
async def test_stats_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/api/stats/nonexistent")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Link not found"}


@pytest.mark.asyncio
async def test_stats_include_inactive_links(client: AsyncClient) -> None:
    data = (await client.post("/api/shorten", json={"url": "https://www.example.com"})).json()["data"]
    await client.delete(f"/api/delete/{data['id']}")

    response = await client.get(f"/api/stats/{data['shortCode']}")
    assert response.status_code == 200
    assert response.json()["data"]["link"]["status"] == "inactive"


@pytest.mark.asyncio
async def test_link_stats_unknown_code(stats_service) -> None:
    with pytest.raises(LinkNotFound):
        await stats_service.link_stats("missing")


@pytest.mark.asyncio
async def test_system_stats_aggregate(link_service, redirect_service, stats_service, clock) -> None:
    owner = Owner("203.0.113.7")
    popular = await link_service.create_short_link("https://example.com/popular", owner=owner, title="Popular")
    await link_service.create_short_link("https://example.com/old", owner=owner, expires_in_hours=1)
    disabled = await link_service.create_short_link("https://example.com/off", owner=owner)
    await link_service.toggle_active(disabled.id, False)
    for _ in range(3):
        await redirect_service.resolve_redirect(popular.short_code, ClickMeta())
    clock.advance(hours=2)

    stats = await stats_service.system_stats()
    assert stats["summary"] == {
        "total_urls": 3,
        "active_urls": 2,
        "inactive_urls": 1,
        "expired_urls": 1,
        "total_clicks": 3,
        "today_urls": 3,
        "today_clicks": 3,
    }
    assert stats["top_urls"] == [
        {"original_url": "https://example.com/popular", "short_code": popular.short_code, "title": "Popular", "clicks": 3}
    ]
    assert stats["weekly_activity"] == [{"date": "2026-03-10", "urls_created": 3}]


@pytest.mark.asyncio
async def test_system_stats_cached_until_ttl(stats_service, manager, clock) -> None:
    first = await stats_service.system_stats()
    assert await stats_service.system_stats() is first

    clock.advance(seconds=manager.settings.STATS_CACHE_TTL_SECONDS - 1)
    assert await stats_service.system_stats() is first

    clock.advance(seconds=1)
    refreshed = await stats_service.system_stats()
    assert refreshed is not first
    assert refreshed == first
