"""Dependency injection with a process-wide service manager.

This module provides a centralized way to inject the database session factory,
the admin cache, the clock and the auth primitives into every endpoint, using
one shared manager for resources that must not be created per request.

Flow Diagram — Request Wiring
=============================
::
    ┌─────────────────┐
    │ ServiceManager  │  (once, at startup)
    │ engine, sessions│
    │ cache, clock,   │
    │ hasher, tokens  │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ RequestContext  │  (per request)
    │ request_id, ip, │
    │ user agent, log │
    └────────┬────────┘
             ▼
    ┌─────────────────┐
    │ XService.       │
    │ from_context()  │
    └─────────────────┘

How to Use
===========
**Step 1 — Initialize on startup**::
    await _service_manager.initialize()

**Step 2 — Inject a service in a route**::
    @router.post("/api/shorten")
    async def shorten(service: LinkService = Depends(get_link_service)): ...

**Step 3 — Protect admin routes**::
    @router.get("/me")
    async def me(admin: AdminPrincipal = Depends(require_admin)): ...

Key Behaviours
===============
- Tests swap the whole manager via ``app.dependency_overrides[get_service_manager]``.
- ``require_admin`` turns an invalid session into InvalidSession (401) with
  the precise reason (invalid_token, token_expired, session_revoked).
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shortener.auth_service import AdminIdentity, AuthService
from shortener.cache import TTLCache
from shortener.clock import Clock, SystemClock
from shortener.config import Settings, get_settings
from shortener.database import build_engine, build_session_factory, close_db
from shortener.enums import SessionInvalidReason
from shortener.errors import InvalidSession
from shortener.link_service import LinkService
from shortener.owner import client_ip_from_request
from shortener.redirect_service import RedirectService
from shortener.security import PasswordHasher, TokenCodec
from shortener.stats_service import StatsService

__all__ = [
    "AdminPrincipal",
    "RequestContext",
    "ServiceManager",
    "get_auth_service",
    "get_link_service",
    "get_redirect_service",
    "get_request_context",
    "get_service_manager",
    "get_stats_service",
    "require_admin",
]


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Holder for resources shared by every request.

    Attributes are only available after ``initialize()``; overrides let tests
    supply their own settings, engine and clock.
    """

    def __init__(self) -> None:
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[AsyncEngine] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        self.settings = settings or get_settings()
        self.logger = self._setup_logger()
        self.engine = engine or build_engine(self.settings)
        self.session_factory: async_sessionmaker[AsyncSession] = build_session_factory(self.engine)
        self.clock: Clock = clock or SystemClock()
        self.cache = TTLCache(self.clock, default_ttl=self.settings.STATS_CACHE_TTL_SECONDS)
        self.password_hasher = PasswordHasher(rounds=self.settings.BCRYPT_ROUNDS)
        self.token_codec = TokenCodec(
            self.settings.JWT_SECRET,
            algorithm=self.settings.JWT_ALGORITHM,
            ttl_hours=self.settings.TOKEN_TTL_HOURS,
        )
        self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        logger = logging.getLogger("shortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger

    async def cleanup(self) -> None:
        """Dispose the engine and drop cached aggregates at shutdown."""
        if not self._initialized:
            return
        self.cache.clear()
        await close_db(self.engine)
        self._initialized = False


_service_manager = ServiceManager()


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data plus access to the shared manager.

    Attributes:
        service_manager: Shared resources (sessions, cache, clock, settings)
        request_id: Unique identifier for this request
        client_ip: Caller address (first X-Forwarded-For entry wins)
        user_agent: Client user agent string
        referer: Referer header, recorded with clicks
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    tags: list[str] = field(default_factory=list)

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager.initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        client_ip=client_ip_from_request(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )


def get_link_service(ctx: RequestContext = Depends(get_request_context)) -> LinkService:
    return LinkService.from_context(ctx)


def get_redirect_service(ctx: RequestContext = Depends(get_request_context)) -> RedirectService:
    return RedirectService.from_context(ctx)


def get_stats_service(ctx: RequestContext = Depends(get_request_context)) -> StatsService:
    return StatsService.from_context(ctx)


def get_auth_service(ctx: RequestContext = Depends(get_request_context)) -> AuthService:
    return AuthService.from_context(ctx)


# ============================================================================
# ADMIN GUARD
# ============================================================================

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminPrincipal:
    user: AdminIdentity
    token: str


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: AuthService = Depends(get_auth_service),
) -> AdminPrincipal:
    """Resolve the bearer token to a live admin session.

    Raises:
        InvalidSession: If the header is missing or the session check fails.
    """
    if credentials is None or not credentials.credentials:
        raise InvalidSession(SessionInvalidReason.INVALID_TOKEN)
    check = await service.verify_session(credentials.credentials)
    if not check.valid:
        raise InvalidSession(check.reason)
    return AdminPrincipal(user=check.user, token=credentials.credentials)
