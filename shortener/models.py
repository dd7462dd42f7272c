"""SQLAlchemy ORM models for the URL shortener service.

This module defines the database schema using SQLAlchemy declarative models
with indexing on the lookup paths used by redirects, ownership listing and
session verification.

Data Model Layout
=================
::
    links                              clicks
    ├─ id (PK)                         ├─ id (PK)
    ├─ original_url (VARCHAR 2048)     ├─ link_id (FK links.id, CASCADE)
    ├─ short_code (UNIQUE, INDEXED)    ├─ clicked_at
    ├─ is_custom                       ├─ client_ip
    ├─ title / description             ├─ user_agent
    ├─ clicks (INTEGER DEFAULT 0)      └─ referer
    ├─ created_at
    ├─ expires_at (NULL = never)       admin_sessions
    ├─ is_active                       ├─ id (PK)
    └─ creator_ip (INDEXED)            ├─ user_id (FK admin_users.id, CASCADE)
                                       ├─ token_hash (UNIQUE, sha256 hex)
    admin_users                        ├─ expires_at
    ├─ id (PK)                         ├─ ip_address / user_agent
    ├─ username (UNIQUE)               └─ created_at
    ├─ email (UNIQUE)
    ├─ password_hash
    ├─ full_name
    ├─ is_active
    ├─ last_login
    └─ created_at

How to Use
===========
**Step 1 — Import**::
    from shortener.models import Link

**Step 2 — Query**::
    result = await session.execute(select(Link).where(Link.short_code == "abc123"))
    link = result.scalar_one_or_none()

**Step 3 — Increment clicks (atomic, in SQL)**::
    await session.execute(update(Link).where(Link.id == link.id).values(clicks=Link.clicks + 1))

Key Behaviours
===============
- short_code is unique across all links, active or not, and case-sensitive.
- Timestamps are written by the application clock, stored as naive UTC and
  read back as timezone-aware UTC (UTCDateTime), on PostgreSQL and SQLite alike.
- The raw admin token is never stored, only its SHA-256 digest.

Classes:
    Link:  A shortened URL with click counter and lifecycle flags.
    Click:  One recorded redirect traversal.
    AdminUser:  An admin panel account.
    AdminSession:  A server-side record of an issued admin token.
"""

import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from shortener.database import Base

__all__ = ["UTCDateTime", "Link", "Click", "AdminUser", "AdminSession"]


class UTCDateTime(TypeDecorator):
    """Stores aware datetimes as naive UTC and restores the UTC tzinfo on load."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value


class Link(Base):
    __tablename__ = "links"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    original_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    short_code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(UTCDateTime, index=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    creator_ip: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Link(id={self.id}, short_code='{self.short_code}', clicks={self.clicks})>"


class Click(Base):
    __tablename__ = "clicks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    link_id: Mapped[int] = mapped_column(
        ForeignKey("links.id", ondelete="CASCADE"), index=True, nullable=False
    )
    clicked_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    referer: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Click(id={self.id}, link_id={self.link_id})>"


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[datetime.datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<AdminUser(id={self.id}, username='{self.username}')>"


class AdminSession(Base):
    __tablename__ = "admin_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("admin_users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    expires_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<AdminSession(id={self.id}, user_id={self.user_id})>"
