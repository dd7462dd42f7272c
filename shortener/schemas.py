"""Pydantic schemas for request/response validation in the URL shortener.

This module defines Pydantic models for API input validation and output
serialization. JSON field names are camelCase (``shortCode``,
``expiresIn``); Python attributes stay snake_case, and either spelling is
accepted on input.

Schema Hierarchy
=================
::
    ApiResponse[T]            {success, data, message?}
    ErrorResponse             {success: false, error}

    ShortenRequest (Input)
    ├─ url: str
    ├─ custom_code: str | None
    ├─ title / description: str | None
    └─ expires_in: float | None (hours; 0 or omitted = never)

    ShortenedLink (Output)
    ├─ id, original_url, short_code
    ├─ short_url (composed at the boundary)
    ├─ qr_code (PNG data URL)
    └─ title, description, expires_at, created_at

    LinkOut (Output)          one link with derived status
    LinkStatsOut (Output)     link + total + per-day clicks
    LinkListOut / LinkDetailsOut / SystemStatsOut (admin)

Key Behaviours
===============
- URL and short code *format* is validated in the service layer, so bad
  values produce 400 responses rather than 422.
- All datetime fields are timezone-aware UTC.
"""

import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from shortener.enums import HealthStatus, LinkStatus

__all__ = [
    "AdminUserDetailOut",
    "AdminUserOut",
    "ApiResponse",
    "ChangePasswordRequest",
    "CleanupOut",
    "ClickOut",
    "ClickSummaryOut",
    "CreateUserRequest",
    "DailyClicks",
    "DailyCreations",
    "ErrorResponse",
    "HealthResponse",
    "LinkDetailsOut",
    "LinkListOut",
    "LinkOut",
    "LinkStatsOut",
    "LoginRequest",
    "LoginResponse",
    "MeResponse",
    "MessageResponse",
    "PaginationOut",
    "ShortenRequest",
    "ShortenedLink",
    "SummaryOut",
    "SystemStatsOut",
    "TopLinkOut",
    "ToggleRequest",
    "UpdateLinkRequest",
]

DataT = TypeVar("DataT")

MAX_EXPIRES_IN_HOURS = 24 * 365 * 10


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[DataT]):
    success: bool = True
    data: DataT
    message: str | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    error: str


class HealthResponse(CamelModel):
    status: HealthStatus
    database: HealthStatus


# ============================================================================
# LINKS
# ============================================================================


class ShortenRequest(CamelModel):
    url: str = Field(..., max_length=4096)
    custom_code: str | None = None
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    expires_in: float | None = Field(
        default=None,
        allow_inf_nan=False,
        le=MAX_EXPIRES_IN_HOURS,
        description="Hours until expiry; 0 or omitted never expires",
    )


class UpdateLinkRequest(CamelModel):
    url: str | None = Field(default=None, max_length=4096)
    short_code: str | None = None
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    expires_in: float | None = Field(default=None, allow_inf_nan=False, le=MAX_EXPIRES_IN_HOURS)
    is_active: bool | None = None


class ToggleRequest(CamelModel):
    is_active: bool


class ShortenedLink(CamelModel):
    id: int
    original_url: str
    short_code: str
    short_url: str
    qr_code: str
    title: str | None = None
    description: str | None = None
    expires_at: datetime.datetime | None = None
    created_at: datetime.datetime


class LinkOut(CamelModel):
    id: int
    original_url: str
    short_code: str
    is_custom: bool
    title: str | None = None
    description: str | None = None
    clicks: int
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None
    is_active: bool
    creator_ip: str
    status: LinkStatus

    @classmethod
    def from_view(cls, view) -> "LinkOut":
        link = view.link
        return cls(
            id=link.id,
            original_url=link.original_url,
            short_code=link.short_code,
            is_custom=link.is_custom,
            title=link.title,
            description=link.description,
            clicks=link.clicks,
            created_at=link.created_at,
            expires_at=link.expires_at,
            is_active=link.is_active,
            creator_ip=link.creator_ip,
            status=view.status,
        )


class DailyClicks(CamelModel):
    date: str
    clicks: int


class LinkStatsOut(CamelModel):
    link: LinkOut
    total_clicks: int
    daily_stats: list[DailyClicks]


class PaginationOut(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class LinkListOut(CamelModel):
    urls: list[LinkOut]
    pagination: PaginationOut


class ClickOut(CamelModel):
    clicked_at: datetime.datetime
    client_ip: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    user_agent_short: str


class ClickSummaryOut(CamelModel):
    total_clicks: int
    last_click: datetime.datetime | None = None
    unique_visitors: int


class LinkDetailsOut(CamelModel):
    url: LinkOut
    stats: ClickSummaryOut
    recent_clicks: list[ClickOut]


class SummaryOut(CamelModel):
    total_urls: int
    active_urls: int
    inactive_urls: int
    expired_urls: int
    total_clicks: int
    today_urls: int
    today_clicks: int


class TopLinkOut(CamelModel):
    original_url: str
    short_code: str
    title: str | None = None
    clicks: int


class DailyCreations(CamelModel):
    date: str
    urls_created: int


class SystemStatsOut(CamelModel):
    summary: SummaryOut
    top_urls: list[TopLinkOut]
    weekly_activity: list[DailyCreations]


class CleanupOut(CamelModel):
    deleted_count: int


# ============================================================================
# ADMIN ACCOUNTS
# ============================================================================


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AdminUserOut(CamelModel):
    id: int
    username: str
    email: str
    full_name: str | None = None


class AdminUserDetailOut(AdminUserOut):
    is_active: bool
    last_login: datetime.datetime | None = None
    created_at: datetime.datetime


class LoginResponse(CamelModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    user: AdminUserOut


class MeResponse(CamelModel):
    success: bool = True
    user: AdminUserOut


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class CreateUserRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str
    full_name: str | None = Field(default=None, max_length=255)
