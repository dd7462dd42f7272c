"""Relational store access for links, clicks, admin users and sessions.

Each repository holds the async session factory and opens one short-lived
session per operation, so independent writes (the click counter increment and
the click insert of a redirect) can run concurrently on separate pooled
connections.

Flow Diagram — Repository Operation
===================================
::
    ┌─────────────┐
    │  Service    │
    │  call       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ async with  │
    │ sessions()  │◀── pool acquire (bounded by pool_timeout)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ execute()   │
    │ commit()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ session     │
    │ closed,     │
    │ objects     │
    │ detached    │
    └─────────────┘

Key Behaviours
===============
- Click counters change only through ``clicks = clicks + 1`` in SQL.
- Hard deletes and expired cleanup remove clicks before their links inside a
  single transaction.
- Password changes and user deactivation revoke sessions in the same
  transaction as the user update.
- All time comparisons use the ``now`` passed in by the caller.
"""

import datetime
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import String, case, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortener.enums import LinkFilter, SortOrder
from shortener.models import AdminSession, AdminUser, Click, Link

__all__ = [
    "ClickMeta",
    "LinkQuery",
    "LinkRepository",
    "ClickRepository",
    "AdminRepository",
    "SORTABLE_COLUMNS",
]

SORTABLE_COLUMNS = {
    "created_at": Link.created_at,
    "clicks": Link.clicks,
    "short_code": Link.short_code,
    "original_url": Link.original_url,
    "expires_at": Link.expires_at,
    "title": Link.title,
}


@dataclass(frozen=True)
class ClickMeta:
    client_ip: str | None = None
    user_agent: str | None = None
    referer: str | None = None


@dataclass(frozen=True)
class LinkQuery:
    status: LinkFilter | None = None
    search: str | None = None
    page: int = 1
    limit: int = 20
    sort_by: str = "created_at"
    order: SortOrder = SortOrder.DESC


def _day_string(value: Any) -> str:
    return value if isinstance(value, str) else value.isoformat()


class LinkRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def code_exists(self, short_code: str, exclude_id: int | None = None) -> bool:
        stmt = select(Link.id).where(Link.short_code == short_code)
        if exclude_id is not None:
            stmt = stmt.where(Link.id != exclude_id)
        async with self._sessions() as session:
            result = await session.execute(stmt.limit(1))
            return result.scalar_one_or_none() is not None

    async def add(self, link: Link) -> Link:
        async with self._sessions() as session:
            session.add(link)
            await session.commit()
        return link

    async def get(self, link_id: int) -> Link | None:
        async with self._sessions() as session:
            return await session.get(Link, link_id)

    async def find_by_code(self, short_code: str) -> Link | None:
        async with self._sessions() as session:
            result = await session.execute(select(Link).where(Link.short_code == short_code))
            return result.scalar_one_or_none()

    async def find_active_by_code(self, short_code: str) -> Link | None:
        stmt = select(Link).where(Link.short_code == short_code, Link.is_active.is_(True))
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def find_owned(self, link_id: int, creator_ip: str) -> Link | None:
        stmt = select(Link).where(Link.id == link_id, Link.creator_ip == creator_ip)
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def list_by_creator(self, creator_ip: str) -> list[Link]:
        stmt = select(Link).where(Link.creator_ip == creator_ip).order_by(Link.created_at.desc(), Link.id.desc())
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def increment_clicks(self, link_id: int) -> None:
        stmt = (
            update(Link)
            .where(Link.id == link_id)
            .values(clicks=Link.clicks + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions() as session:
            await session.execute(stmt)
            await session.commit()

    async def update_fields(self, link_id: int, values: Mapping[str, Any]) -> Link | None:
        async with self._sessions() as session:
            link = await session.get(Link, link_id)
            if link is None:
                return None
            for name, value in values.items():
                setattr(link, name, value)
            await session.commit()
            return link

    async def set_active(self, link_id: int, is_active: bool) -> Link | None:
        return await self.update_fields(link_id, {"is_active": is_active})

    async def delete_with_clicks(self, link_id: int) -> bool:
        async with self._sessions() as session:
            async with session.begin():
                await session.execute(delete(Click).where(Click.link_id == link_id))
                result = await session.execute(delete(Link).where(Link.id == link_id))
            return result.rowcount > 0

    async def delete_expired(self, now: datetime.datetime) -> int:
        expired = Link.expires_at.is_not(None) & (Link.expires_at < now)
        async with self._sessions() as session:
            async with session.begin():
                ids = list((await session.execute(select(Link.id).where(expired))).scalars().all())
                if ids:
                    await session.execute(delete(Click).where(Click.link_id.in_(ids)))
                    await session.execute(delete(Link).where(Link.id.in_(ids)))
            return len(ids)

    async def search(self, query: LinkQuery, now: datetime.datetime) -> tuple[list[Link], int]:
        conditions = []
        if query.status is LinkFilter.ACTIVE:
            conditions.append(Link.is_active.is_(True))
        elif query.status is LinkFilter.INACTIVE:
            conditions.append(Link.is_active.is_(False))
        elif query.status is LinkFilter.EXPIRED:
            conditions.append(Link.expires_at.is_not(None) & (Link.expires_at < now))

        if query.search:
            term = query.search
            conditions.append(
                or_(
                    Link.original_url.contains(term, autoescape=True),
                    Link.short_code.contains(term, autoescape=True),
                    Link.title.contains(term, autoescape=True),
                    Link.description.contains(term, autoescape=True),
                )
            )

        column = SORTABLE_COLUMNS.get(query.sort_by, Link.created_at)
        ordering = column.asc() if query.order is SortOrder.ASC else column.desc()

        stmt = (
            select(Link)
            .where(*conditions)
            .order_by(ordering, Link.id.desc())
            .offset((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        count_stmt = select(func.count(Link.id)).where(*conditions)

        async with self._sessions() as session:
            links = list((await session.execute(stmt)).scalars().all())
            total = (await session.execute(count_stmt)).scalar_one()
        return links, total

    async def summary(self, now: datetime.datetime, today_start: datetime.datetime) -> dict[str, int]:
        stmt = select(
            func.count(Link.id),
            func.count(case((Link.is_active.is_(True), 1))),
            func.count(case((Link.is_active.is_(False), 1))),
            func.count(case(((Link.expires_at.is_not(None)) & (Link.expires_at < now), 1))),
            func.coalesce(func.sum(Link.clicks), 0),
            func.count(case((Link.created_at >= today_start, 1))),
        )
        async with self._sessions() as session:
            row = (await session.execute(stmt)).one()
        total, active, inactive, expired, clicks, today = row
        return {
            "total_urls": int(total),
            "active_urls": int(active),
            "inactive_urls": int(inactive),
            "expired_urls": int(expired),
            "total_clicks": int(clicks),
            "today_urls": int(today),
        }

    async def top_clicked(self, limit: int = 5) -> list[Link]:
        stmt = select(Link).where(Link.clicks > 0).order_by(Link.clicks.desc(), Link.id.asc()).limit(limit)
        async with self._sessions() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def created_per_day(self, since: datetime.datetime) -> list[dict[str, Any]]:
        day = cast(func.date(Link.created_at), String)
        stmt = (
            select(day.label("day"), func.count(Link.id))
            .where(Link.created_at >= since)
            .group_by(day)
            .order_by(day.desc())
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).all()
        return [{"date": _day_string(row[0]), "urls_created": int(row[1])} for row in rows]


class ClickRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def record(self, link_id: int, meta: ClickMeta, clicked_at: datetime.datetime) -> Click:
        click = Click(
            link_id=link_id,
            clicked_at=clicked_at,
            client_ip=meta.client_ip,
            user_agent=meta.user_agent or "",
            referer=meta.referer or "",
        )
        async with self._sessions() as session:
            session.add(click)
            await session.commit()
        return click

    async def count_for_link(self, link_id: int) -> int:
        async with self._sessions() as session:
            result = await session.execute(select(func.count(Click.id)).where(Click.link_id == link_id))
            return int(result.scalar_one())

    async def count_since(self, since: datetime.datetime) -> int:
        async with self._sessions() as session:
            result = await session.execute(select(func.count(Click.id)).where(Click.clicked_at >= since))
            return int(result.scalar_one())

    async def daily_breakdown(self, link_id: int) -> list[dict[str, Any]]:
        day = cast(func.date(Click.clicked_at), String)
        stmt = (
            select(day.label("day"), func.count(Click.id))
            .where(Click.link_id == link_id)
            .group_by(day)
            .order_by(day.desc())
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).all()
        return [{"date": _day_string(row[0]), "clicks": int(row[1])} for row in rows]

    async def summary_for_link(self, link_id: int) -> dict[str, Any]:
        stmt = select(
            func.count(Click.id),
            func.max(Click.clicked_at),
            func.count(func.distinct(Click.client_ip)),
        ).where(Click.link_id == link_id)
        async with self._sessions() as session:
            total, last_click, unique_visitors = (await session.execute(stmt)).one()
        if last_click is not None and isinstance(last_click, datetime.datetime) and last_click.tzinfo is None:
            last_click = last_click.replace(tzinfo=datetime.timezone.utc)
        return {
            "total_clicks": int(total),
            "last_click": last_click,
            "unique_visitors": int(unique_visitors),
        }

    async def recent(self, link_id: int, limit: int = 10) -> list[Click]:
        stmt = (
            select(Click)
            .where(Click.link_id == link_id)
            .order_by(Click.clicked_at.desc(), Click.id.desc())
            .limit(limit)
        )
        async with self._sessions() as session:
            return list((await session.execute(stmt)).scalars().all())


class AdminRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def find_user_by_username(self, username: str) -> AdminUser | None:
        async with self._sessions() as session:
            result = await session.execute(select(AdminUser).where(AdminUser.username == username))
            return result.scalar_one_or_none()

    async def find_user_by_email(self, email: str) -> AdminUser | None:
        async with self._sessions() as session:
            result = await session.execute(select(AdminUser).where(AdminUser.email == email))
            return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> AdminUser | None:
        async with self._sessions() as session:
            return await session.get(AdminUser, user_id)

    async def count_users(self) -> int:
        async with self._sessions() as session:
            return int((await session.execute(select(func.count(AdminUser.id)))).scalar_one())

    async def list_users(self) -> list[AdminUser]:
        stmt = select(AdminUser).order_by(AdminUser.created_at.desc(), AdminUser.id.desc())
        async with self._sessions() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def add_user(self, user: AdminUser) -> AdminUser:
        async with self._sessions() as session:
            session.add(user)
            await session.commit()
        return user

    async def update_last_login(self, user_id: int, at: datetime.datetime) -> None:
        async with self._sessions() as session:
            await session.execute(
                update(AdminUser)
                .where(AdminUser.id == user_id)
                .values(last_login=at)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def update_password_and_revoke(self, user_id: int, password_hash: str) -> int:
        async with self._sessions() as session:
            async with session.begin():
                await session.execute(
                    update(AdminUser)
                    .where(AdminUser.id == user_id)
                    .values(password_hash=password_hash)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(delete(AdminSession).where(AdminSession.user_id == user_id))
            return result.rowcount

    async def set_user_active(self, user_id: int, is_active: bool) -> bool:
        async with self._sessions() as session:
            async with session.begin():
                result = await session.execute(
                    update(AdminUser)
                    .where(AdminUser.id == user_id)
                    .values(is_active=is_active)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount and not is_active:
                    await session.execute(delete(AdminSession).where(AdminSession.user_id == user_id))
            return result.rowcount > 0

    async def add_session(self, admin_session: AdminSession) -> AdminSession:
        async with self._sessions() as session:
            session.add(admin_session)
            await session.commit()
        return admin_session

    async def find_live_session(self, token_hash: str, now: datetime.datetime) -> tuple[AdminSession, AdminUser] | None:
        stmt = (
            select(AdminSession, AdminUser)
            .join(AdminUser, AdminSession.user_id == AdminUser.id)
            .where(
                AdminSession.token_hash == token_hash,
                AdminSession.expires_at > now,
                AdminUser.is_active.is_(True),
            )
        )
        async with self._sessions() as session:
            row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return row[0], row[1]

    async def delete_session(self, token_hash: str) -> int:
        async with self._sessions() as session:
            result = await session.execute(delete(AdminSession).where(AdminSession.token_hash == token_hash))
            await session.commit()
            return result.rowcount

    async def delete_expired_sessions(self, now: datetime.datetime) -> int:
        async with self._sessions() as session:
            result = await session.execute(delete(AdminSession).where(AdminSession.expires_at <= now))
            await session.commit()
            return result.rowcount
