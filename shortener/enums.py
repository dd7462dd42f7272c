"""Shared enums for the URL shortener service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = [
    "HealthStatus",
    "LinkStatus",
    "LinkFilter",
    "RedirectOutcome",
    "SessionInvalidReason",
    "SortOrder",
]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class LinkStatus(StrEnum):
    """Derived link status; never persisted, recomputed on every read."""

    INACTIVE = "inactive"
    EXPIRED = "expired"
    UNUSED = "unused"
    ACTIVE = "active"


class LinkFilter(StrEnum):
    """Status filter accepted by the admin link listing."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def from_str(cls, value: str) -> "SortOrder":
        """Parse case-insensitively, falling back to DESC for unknown values."""
        try:
            return cls(value.lower())
        except ValueError:
            return cls.DESC


class RedirectOutcome(StrEnum):
    """Label values for the redirect counter."""

    REDIRECTED = "redirected"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


class SessionInvalidReason(StrEnum):
    """Why an admin token failed verification."""

    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    SESSION_REVOKED = "session_revoked"
