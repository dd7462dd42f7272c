"""Database engine construction and schema lifecycle for the URL shortener.

This module provides SQLAlchemy async engine setup, the session factory used by
the repositories, and table creation / disposal helpers. PostgreSQL (asyncpg)
is the production backend; SQLite (aiosqlite) is supported for local runs and
tests.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │ ServiceMgr  │
    │ initialize()│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ build_engine│
    │ (pool, tmo) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ build_      │
    │ session_    │
    │ factory()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Repository  │
    │ opens one   │
    │ session per │
    │ operation   │
    └─────────────┘

How to Use
===========
**Step 1 — Build on startup**::
    engine = build_engine(settings)
    sessions = build_session_factory(engine)
    await init_db(engine)

**Step 2 — Use in a repository**::
    async with sessions() as session:
        result = await session.execute(select(Link))

**Step 3 — Cleanup on shutdown**::
    await close_db(engine)

Key Behaviours
===============
- Pool acquisition is bounded by DB_POOL_TIMEOUT_SECONDS; exhaustion raises
  sqlalchemy.exc.TimeoutError instead of hanging.
- Individual statements are bounded by DB_QUERY_TIMEOUT_SECONDS at the driver.
- Sessions do not expire attributes on commit, so returned ORM objects remain
  readable after their session closes.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    build_engine():  Creates the async engine from settings.
    build_session_factory():  Creates the async session factory.
    init_db():  Creates all tables.
    close_db():  Disposes the engine.
"""

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import Settings

__all__ = ["Base", "build_engine", "build_session_factory", "init_db", "close_db"]


class Base(DeclarativeBase):
    pass


def build_engine(settings: Settings, **overrides: Any) -> AsyncEngine:
    url = make_url(settings.DATABASE_URL)
    options: dict[str, Any] = {"echo": settings.DB_ECHO, "pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        # sqlite3 busy timeout doubles as the statement bound here
        options["connect_args"] = {"timeout": settings.DB_QUERY_TIMEOUT_SECONDS}
    else:
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
            connect_args={"command_timeout": settings.DB_QUERY_TIMEOUT_SECONDS},
        )

    options.update(overrides)
    return create_async_engine(url, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Import registers the mapped classes on Base.metadata.
    import shortener.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
