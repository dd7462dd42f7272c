"""Redirect behavior tests."""

import asyncio

import pytest
from httpx import AsyncClient

from shortener.errors import LinkExpired, LinkNotFound
from shortener.owner import Owner
from shortener.repositories import ClickMeta, ClickRepository

OWNER = Owner("203.0.113.7")


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient) -> None:
    create_resp = await client.post("/api/shorten", json={"url": "https://www.python.org"})
    short_code = create_resp.json()["data"]["shortCode"]

    response = await client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.python.org"


@pytest.mark.asyncio
async def test_redirect_unknown_code_renders_html(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "Link not found" in response.text


@pytest.mark.asyncio
async def test_redirect_with_custom_code(client: AsyncClient) -> None:
    await client.post("/api/shorten", json={"url": "https://www.github.com", "customCode": "ghub"})
    response = await client.get("/ghub", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_redirect_records_click_metadata(client: AsyncClient, manager) -> None:
    create_resp = await client.post("/api/shorten", json={"url": "https://www.python.org"})
    data = create_resp.json()["data"]

    await client.get(
        f"/{data['shortCode']}",
        headers={
            "User-Agent": "Mozilla/5.0 Firefox/121.0",
            "Referer": "https://news.example.com/",
            "X-Forwarded-For": "198.51.100.9, 10.0.0.1",
        },
    )

    clicks = await ClickRepository(manager.session_factory).recent(data["id"])
    assert len(clicks) == 1
    assert clicks[0].client_ip == "198.51.100.9"
    assert clicks[0].user_agent == "Mozilla/5.0 Firefox/121.0"
    assert clicks[0].referer == "https://news.example.com/"


@pytest.mark.asyncio
async def test_concurrent_redirects_count_every_click(link_service, redirect_service, manager) -> None:
    link = await link_service.create_short_link("https://example.com", owner=OWNER)
    visits = 25

    targets = await asyncio.gather(
        *(redirect_service.resolve_redirect(link.short_code, ClickMeta(client_ip=f"10.1.0.{i}")) for i in range(visits))
    )

    assert targets == ["https://example.com"] * visits
    assert (await link_service.get_link(link.id)).clicks == visits
    assert await ClickRepository(manager.session_factory).count_for_link(link.id) == visits


@pytest.mark.asyncio
async def test_expired_link_is_not_redirected(link_service, redirect_service, clock) -> None:
    link = await link_service.create_short_link("https://example.com", owner=OWNER, expires_in_hours=1)
    clock.advance(hours=1)
    # Exactly at the expiry instant the link still resolves.
    assert await redirect_service.resolve_redirect(link.short_code, ClickMeta()) == "https://example.com"

    clock.advance(seconds=1)
    with pytest.raises(LinkExpired):
        await redirect_service.resolve_redirect(link.short_code, ClickMeta())
    assert (await link_service.get_link(link.id)).clicks == 1


@pytest.mark.asyncio
async def test_inactive_link_is_not_redirected(link_service, redirect_service) -> None:
    link = await link_service.create_short_link("https://example.com", owner=OWNER)
    await link_service.toggle_active(link.id, False)

    with pytest.raises(LinkNotFound):
        await redirect_service.resolve_redirect(link.short_code, ClickMeta())
