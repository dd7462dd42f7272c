"""Shared pytest fixtures for service, database and API tests.

Each test gets its own SQLite file and a frozen clock, so expiry and cache
behaviour can be driven by advancing time instead of sleeping.
"""

import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import NullPool

from shortener.auth_service import AuthService
from shortener.config import Settings
from shortener.database import build_engine, init_db
from shortener.dependencies import RequestContext, ServiceManager, get_service_manager
from shortener.link_service import LinkService
from shortener.main import app
from shortener.redirect_service import RedirectService
from shortener.stats_service import StatsService

ADMIN_USERNAME = "admin"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-secret"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime.datetime | None = None) -> None:
        self.current = start or datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)

    def now(self) -> datetime.datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += datetime.timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortener.db'}",
        JWT_SECRET="test-secret",
        BCRYPT_ROUNDS=4,
        LOG_LEVEL="WARNING",
        ADMIN_BOOTSTRAP_USERNAME=ADMIN_USERNAME,
        ADMIN_BOOTSTRAP_EMAIL=ADMIN_EMAIL,
        ADMIN_BOOTSTRAP_PASSWORD=ADMIN_PASSWORD,
    )


@pytest_asyncio.fixture
async def manager(settings: Settings, clock: FrozenClock) -> AsyncGenerator[ServiceManager, None]:
    engine = build_engine(settings, poolclass=NullPool)
    await init_db(engine)

    service_manager = ServiceManager()
    await service_manager.initialize(settings=settings, engine=engine, clock=clock)
    yield service_manager
    await service_manager.cleanup()


@pytest.fixture
def ctx(manager: ServiceManager) -> RequestContext:
    return RequestContext(service_manager=manager, client_ip="203.0.113.7", tags=["test"])


@pytest.fixture
def link_service(ctx: RequestContext) -> LinkService:
    return LinkService.from_context(ctx)


@pytest.fixture
def redirect_service(ctx: RequestContext) -> RedirectService:
    return RedirectService.from_context(ctx)


@pytest.fixture
def stats_service(ctx: RequestContext) -> StatsService:
    return StatsService.from_context(ctx)


@pytest.fixture
def auth_service(ctx: RequestContext) -> AuthService:
    return AuthService.from_context(ctx)


@pytest_asyncio.fixture
async def bootstrap_admin(auth_service: AuthService):
    return await auth_service.ensure_bootstrap_admin()


@pytest_asyncio.fixture
async def client(manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_service_manager() -> ServiceManager:
        return manager

    app.dependency_overrides[get_service_manager] = override_get_service_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_headers(client: AsyncClient, bootstrap_admin) -> dict[str, str]:
    response = await client.post(
        "/admin/api/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
