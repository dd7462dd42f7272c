"""Admin API tests over HTTP."""

import pytest
from httpx import AsyncClient

from tests.conftest import ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_USERNAME


# ============================================================================
# SESSION
# ============================================================================


@pytest.mark.asyncio
async def test_login_returns_token_and_user(client: AsyncClient, bootstrap_admin) -> None:
    response = await client.post("/admin/api/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"] == {
        "id": bootstrap_admin.id,
        "username": ADMIN_USERNAME,
        "email": ADMIN_EMAIL,
        "fullName": "Administrator",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "username,password",
    [("ghost", ADMIN_PASSWORD), (ADMIN_USERNAME, "wrong-password")],
)
async def test_login_rejected(client: AsyncClient, bootstrap_admin, username: str, password: str) -> None:
    response = await client.post("/admin/api/login", json={"username": username, "password": password})
    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_protected_routes_require_token(client: AsyncClient) -> None:
    assert (await client.get("/admin/api/me")).status_code == 401
    response = await client.get("/admin/api/stats", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert "invalid_token" in response.json()["error"]


@pytest.mark.asyncio
async def test_me_and_logout(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    me = await client.get("/admin/api/me", headers=admin_headers)
    assert me.status_code == 200
    assert me.json()["user"]["username"] == ADMIN_USERNAME

    assert (await client.post("/admin/api/logout", headers=admin_headers)).status_code == 200

    after = await client.get("/admin/api/me", headers=admin_headers)
    assert after.status_code == 401
    assert "session_revoked" in after.json()["error"]


@pytest.mark.asyncio
async def test_change_password_revokes_token(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    wrong = await client.post(
        "/admin/api/change-password",
        json={"currentPassword": "not-it", "newPassword": "another-secret"},
        headers=admin_headers,
    )
    assert wrong.status_code == 401

    weak = await client.post(
        "/admin/api/change-password",
        json={"currentPassword": ADMIN_PASSWORD, "newPassword": "abc"},
        headers=admin_headers,
    )
    assert weak.status_code == 400

    changed = await client.post(
        "/admin/api/change-password",
        json={"currentPassword": ADMIN_PASSWORD, "newPassword": "another-secret"},
        headers=admin_headers,
    )
    assert changed.status_code == 200
    assert (await client.get("/admin/api/me", headers=admin_headers)).status_code == 401

    relogin = await client.post("/admin/api/login", json={"username": ADMIN_USERNAME, "password": "another-secret"})
    assert relogin.status_code == 200


# ============================================================================
# ADMIN ACCOUNTS
# ============================================================================


@pytest.mark.asyncio
async def test_user_management(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    created = await client.post(
        "/admin/api/users",
        json={"username": "ops", "email": "ops@example.com", "password": "ops-password", "fullName": "Ops"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    user = created.json()["data"]
    assert user["username"] == "ops"
    assert user["isActive"] is True
    assert "passwordHash" not in user

    duplicate = await client.post(
        "/admin/api/users",
        json={"username": "ops", "email": "other@example.com", "password": "ops-password"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    listing = await client.get("/admin/api/users", headers=admin_headers)
    assert sorted(u["username"] for u in listing.json()["data"]) == [ADMIN_USERNAME, "ops"]

    ops_login = await client.post("/admin/api/login", json={"username": "ops", "password": "ops-password"})
    ops_headers = {"Authorization": f"Bearer {ops_login.json()['token']}"}

    toggled = await client.patch(
        f"/admin/api/users/{user['id']}/toggle", json={"isActive": False}, headers=admin_headers
    )
    assert toggled.status_code == 200
    assert (await client.get("/admin/api/me", headers=ops_headers)).status_code == 401

    missing = await client.patch("/admin/api/users/999/toggle", json={"isActive": False}, headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_create_user_rejects_bad_email(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    response = await client.post(
        "/admin/api/users",
        json={"username": "ops", "email": "not-an-email", "password": "ops-password"},
        headers=admin_headers,
    )
    assert response.status_code == 422


# ============================================================================
# LINKS
# ============================================================================


@pytest.mark.asyncio
async def test_admin_link_crud(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    created = await client.post(
        "/admin/api/urls",
        json={"url": "https://example.com/admin", "customCode": "adm1n", "title": "Admin link"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    link_id = created.json()["data"]["id"]
    assert created.json()["data"]["qrCode"].startswith("data:image/png;base64,")

    await client.get("/adm1n", headers={"User-Agent": "Mozilla/5.0 Firefox/121.0"})

    details = (await client.get(f"/admin/api/urls/{link_id}", headers=admin_headers)).json()["data"]
    assert details["url"]["creatorIp"] == "admin"
    assert details["url"]["status"] == "active"
    assert details["stats"]["totalClicks"] == 1
    assert details["stats"]["uniqueVisitors"] == 1
    assert details["recentClicks"][0]["userAgentShort"] == "Firefox"

    updated = await client.put(
        f"/admin/api/urls/{link_id}",
        json={"shortCode": "renamed", "title": "Renamed", "expiresIn": 0},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["shortCode"] == "renamed"
    assert (await client.get("/renamed")).status_code == 302
    assert (await client.get("/adm1n")).status_code == 404

    toggled = await client.patch(f"/admin/api/urls/{link_id}/toggle", json={"isActive": False}, headers=admin_headers)
    assert toggled.json()["data"]["status"] == "inactive"
    assert (await client.get("/renamed")).status_code == 404

    deleted = await client.delete(f"/admin/api/urls/{link_id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/admin/api/urls/{link_id}", headers=admin_headers)).status_code == 404
    assert (await client.delete(f"/admin/api/urls/{link_id}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_admin_update_rejects_taken_code(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    await client.post("/api/shorten", json={"url": "https://example.com/a", "customCode": "first"})
    second = (await client.post("/api/shorten", json={"url": "https://example.com/b"})).json()["data"]

    response = await client.put(
        f"/admin/api/urls/{second['id']}", json={"shortCode": "first"}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_admin_list_urls(client: AsyncClient, admin_headers: dict[str, str], clock) -> None:
    for i in range(3):
        await client.post("/api/shorten", json={"url": f"https://example.com/{i}", "title": f"Doc {i}"})
        clock.advance(seconds=1)
    await client.post("/api/shorten", json={"url": "https://example.com/soon", "expiresIn": 1})
    clock.advance(hours=2)

    page = (await client.get("/admin/api/urls?limit=2&page=2", headers=admin_headers)).json()["data"]
    assert page["pagination"] == {"total": 4, "page": 2, "limit": 2, "totalPages": 2}
    assert len(page["urls"]) == 2

    expired = (await client.get("/admin/api/urls?status=expired", headers=admin_headers)).json()["data"]
    assert [u["originalUrl"] for u in expired["urls"]] == ["https://example.com/soon"]

    searched = (await client.get("/admin/api/urls?search=Doc%201", headers=admin_headers)).json()["data"]
    assert [u["title"] for u in searched["urls"]] == ["Doc 1"]

    ordered = (
        await client.get("/admin/api/urls?sortBy=created_at&order=asc&limit=1", headers=admin_headers)
    ).json()["data"]
    assert ordered["urls"][0]["title"] == "Doc 0"

    bad_status = await client.get("/admin/api/urls?status=bogus", headers=admin_headers)
    assert bad_status.status_code == 422


# ============================================================================
# DASHBOARD AND MAINTENANCE
# ============================================================================


@pytest.mark.asyncio
async def test_dashboard_stats(client: AsyncClient, admin_headers: dict[str, str]) -> None:
    data = (await client.post("/api/shorten", json={"url": "https://example.com", "title": "Home"})).json()["data"]
    await client.get(f"/{data['shortCode']}")

    stats = (await client.get("/admin/api/stats", headers=admin_headers)).json()["data"]
    assert stats["summary"]["totalUrls"] == 1
    assert stats["summary"]["totalClicks"] == 1
    assert stats["summary"]["todayClicks"] == 1
    assert stats["topUrls"][0]["shortCode"] == data["shortCode"]
    assert stats["weeklyActivity"] == [{"date": "2026-03-10", "urlsCreated": 1}]


@pytest.mark.asyncio
async def test_cleanup_endpoints(client: AsyncClient, admin_headers: dict[str, str], clock) -> None:
    await client.post("/api/shorten", json={"url": "https://example.com/short-lived", "expiresIn": 1})
    await client.post("/api/shorten", json={"url": "https://example.com/forever"})
    clock.advance(hours=2)

    first = await client.delete("/admin/api/cleanup/expired", headers=admin_headers)
    assert first.json()["data"] == {"deletedCount": 1}
    second = await client.delete("/admin/api/cleanup/expired", headers=admin_headers)
    assert second.json()["data"] == {"deletedCount": 0}

    sessions = await client.delete("/admin/api/cleanup/sessions", headers=admin_headers)
    assert sessions.status_code == 200
    assert sessions.json()["data"] == {"deletedCount": 0}
