"""Configuration management for the URL shortener service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortener.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Override in tests**::
    settings = Settings(DATABASE_URL="sqlite+aiosqlite:///./test.db", JWT_SECRET="x")

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Values are loaded once at process start; changing the environment later has no effect.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "url-shortener"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # When unset, short URLs are built from the request's scheme and host.
    PUBLIC_BASE_URL: str | None = None

    # Relational store
    DATABASE_URL: str = "postgresql+asyncpg://urlshortener:urlshortener@db:5432/urlshortener"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT_SECONDS: float = 5.0
    DB_QUERY_TIMEOUT_SECONDS: float = 10.0
    DB_ECHO: bool = False

    # Short code allocation
    SHORT_CODE_LENGTH: int = 6
    CODE_GENERATION_MAX_ATTEMPTS: int = 10

    # Redirect target policy
    MAX_URL_LENGTH: int = 2048
    BLOCK_PRIVATE_TARGETS: bool = True

    # Admin authentication
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    TOKEN_TTL_HOURS: int = 24
    BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 6

    # First admin account, created at startup when no admin exists
    ADMIN_BOOTSTRAP_USERNAME: str | None = None
    ADMIN_BOOTSTRAP_EMAIL: str | None = None
    ADMIN_BOOTSTRAP_PASSWORD: str | None = None

    # In-process admin cache
    STATS_CACHE_TTL_SECONDS: int = 300
    LINKS_CACHE_TTL_SECONDS: int = 120

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
