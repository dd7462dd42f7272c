"""Error envelope and store failure mapping tests."""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from shortener.dependencies import get_link_service
from shortener.errors import CapacityExhausted
from shortener.main import app


class FailingLinkService:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def create_short_link(self, *args, **kwargs):
        raise self.exc


def override_link_service(exc: Exception) -> None:
    async def factory() -> FailingLinkService:
        return FailingLinkService(exc)

    app.dependency_overrides[get_link_service] = factory


@pytest.mark.asyncio
async def test_pool_exhaustion_is_retriable(client: AsyncClient) -> None:
    override_link_service(PoolTimeoutError("QueuePool limit reached"))

    response = await client.post("/api/shorten", json={"url": "https://example.com"})
    assert response.status_code == 503
    assert response.headers["retry-after"] == "1"
    assert response.json() == {"success": False, "error": "Database busy, retry later"}


@pytest.mark.asyncio
async def test_unexpected_database_error_hides_internals(client: AsyncClient) -> None:
    override_link_service(OperationalError("INSERT INTO links ...", {"short_code": "abc"}, Exception("disk I/O")))

    response = await client.post("/api/shorten", json={"url": "https://example.com"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
    assert "disk" not in response.text


@pytest.mark.asyncio
async def test_capacity_exhausted(client: AsyncClient) -> None:
    override_link_service(CapacityExhausted())

    response = await client.post("/api/shorten", json={"url": "https://example.com"})
    assert response.status_code == 503
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(client: AsyncClient) -> None:
    response = await client.get("/api/does/not/exist")
    assert response.status_code == 404
    assert response.json()["success"] is False
