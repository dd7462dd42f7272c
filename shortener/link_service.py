"""Link lifecycle: creation, status derivation, ownership and admin management.

Flow Diagram — create_short_link()
==================================
::
    ┌─────────────┐
    │ Validate URL│── invalid ──▶ InvalidUrl (400)
    └──────┬──────┘
           ▼
    ┌─────────────┐   custom
    │ Custom code?│─────────────┐
    └──────┬──────┘             ▼
           │ no         ┌──────────────┐
           ▼            │ format ok?   │── no ──▶ InvalidCode (400)
    ┌─────────────┐     │ unused?      │── no ──▶ CodeTaken (409)
    │ nanoid loop │     └──────┬───────┘
    │ (bounded)   │            │
    └──────┬──────┘            │
           │ exhausted ──▶ CapacityExhausted (503)
           ▼                   │
    ┌─────────────┐◀───────────┘
    │ expires_at =│
    │ now + hours │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT link │── unique violation ──▶ CodeTaken (409)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Invalidate  │
    │ admin cache │
    └─────────────┘

Status Derivation
=================
::
    is_active false ──▶ inactive
    expires_at past ──▶ expired
    clicks == 0     ──▶ unused
    otherwise       ──▶ active

Key Behaviours
===============
- Short codes are unique among all links, active or not.
- The public API identifies owners by ``Owner`` (currently the client IP);
  end-user deletes are soft deletes.
- Admin deletes are hard deletes that remove the link's clicks first.
- Every write that changes the admin aggregates drops the cached copies.
"""

import datetime
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from prometheus_client import Counter, Histogram
from sqlalchemy.exc import IntegrityError

from shortener.cache import TTLCache
from shortener.clock import Clock
from shortener.codegen import allocate_unique_code
from shortener.config import Settings
from shortener.enums import LinkStatus
from shortener.errors import (
    CodeTaken,
    InvalidCode,
    InvalidUrl,
    LinkNotFound,
    LinkNotOwned,
    ValidationError,
)
from shortener.models import Click, Link
from shortener.owner import Owner
from shortener.repositories import ClickRepository, LinkQuery, LinkRepository
from shortener.validation import is_valid_custom_code, is_valid_url

if TYPE_CHECKING:
    from shortener.dependencies import RequestContext

__all__ = [
    "LINK_LIST_CACHE_PREFIX",
    "STATS_CACHE_KEY",
    "LinkDetails",
    "LinkPage",
    "LinkService",
    "LinkView",
    "resolve_status",
    "shorten_user_agent",
]

STATS_CACHE_KEY = "system_stats"
LINK_LIST_CACHE_PREFIX = "links:"

LINKS_CREATED_TOTAL = Counter(
    "url_shortener_links_created_total",
    "Short links created",
    ["kind"],
)
LINK_CREATION_DURATION = Histogram(
    "url_shortener_link_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
EXPIRED_LINKS_REMOVED_TOTAL = Counter(
    "url_shortener_expired_links_removed_total",
    "Expired links removed by cleanup",
)


def resolve_status(link: Link, now: datetime.datetime) -> LinkStatus:
    if not link.is_active:
        return LinkStatus.INACTIVE
    if link.expires_at is not None and link.expires_at < now:
        return LinkStatus.EXPIRED
    if link.clicks == 0:
        return LinkStatus.UNUSED
    return LinkStatus.ACTIVE


def shorten_user_agent(user_agent: str | None) -> str:
    if not user_agent:
        return "Unknown"
    for marker, family in (
        ("Edg", "Edge"),
        ("OPR", "Opera"),
        ("Opera", "Opera"),
        ("Chrome", "Chrome"),
        ("Firefox", "Firefox"),
        ("Safari", "Safari"),
    ):
        if marker in user_agent:
            return family
    return user_agent[:20] + "..."


@dataclass(frozen=True)
class LinkView:
    link: Link
    status: LinkStatus


@dataclass(frozen=True)
class LinkPage:
    items: list[LinkView]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class LinkDetails:
    view: LinkView
    total_clicks: int
    last_click: datetime.datetime | None
    unique_visitors: int
    recent_clicks: list[Click] = field(default_factory=list)


class LinkService:
    """Creates and manages short links.

    Example:
        >>> service = LinkService.from_context(ctx)
        >>> link = await service.create_short_link("https://example.com", owner=Owner("203.0.113.7"))
        >>> link.short_code
        'K7xQ2a'
    """

    def __init__(
        self,
        links: LinkRepository,
        clicks: ClickRepository,
        cache: TTLCache,
        clock: Clock,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
    ) -> None:
        self._links = links
        self._clicks = clicks
        self._cache = cache
        self._clock = clock
        self._settings = settings
        self._logger = logger

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "LinkService":
        manager = ctx.service_manager
        return cls(
            links=LinkRepository(manager.session_factory),
            clicks=ClickRepository(manager.session_factory),
            cache=manager.cache,
            clock=manager.clock,
            settings=manager.settings,
            logger=ctx.logger,
        )

    # ========================================================================
    # CREATION
    # ========================================================================

    async def create_short_link(
        self,
        original_url: str,
        owner: Owner,
        custom_code: str | None = None,
        title: str | None = None,
        description: str | None = None,
        expires_in_hours: float | None = None,
    ) -> Link:
        """Validate, allocate a code for, and persist a new link.

        Raises:
            InvalidUrl: If the URL is malformed, not http(s), too long, or a
                blocked private target.
            InvalidCode: If ``custom_code`` does not match the code format.
            CodeTaken: If ``custom_code`` (or, on a race, the generated code)
                already exists.
            CapacityExhausted: If no free code is found within the attempt cap.
        """
        start_time = time.perf_counter()
        self._check_url(original_url)

        if custom_code:
            if not is_valid_custom_code(custom_code):
                raise InvalidCode()
            if await self._links.code_exists(custom_code):
                raise CodeTaken(custom_code)
            short_code, kind = custom_code, "custom"
        else:
            short_code = await allocate_unique_code(
                self._links.code_exists,
                max_attempts=self._settings.CODE_GENERATION_MAX_ATTEMPTS,
                length=self._settings.SHORT_CODE_LENGTH,
            )
            kind = "generated"

        now = self._clock.now()
        link = Link(
            original_url=original_url,
            short_code=short_code,
            is_custom=kind == "custom",
            title=title or None,
            description=description or None,
            clicks=0,
            created_at=now,
            expires_at=self._expiry_from(expires_in_hours, now),
            is_active=True,
            creator_ip=owner.key,
        )
        try:
            link = await self._links.add(link)
        except IntegrityError as exc:
            self._logger.warning(f"Short code collision on insert: {short_code}")
            raise CodeTaken(short_code) from exc

        self.invalidate_aggregates()
        duration = time.perf_counter() - start_time
        LINK_CREATION_DURATION.observe(duration)
        LINKS_CREATED_TOTAL.labels(kind=kind).inc()
        self._logger.info(
            f"Link created: {short_code} -> {original_url}",
            extra={"operation": "create_short_link", "short_code": short_code, "owner": owner.key},
        )
        return link

    # ========================================================================
    # STATUS AND OWNER OPERATIONS
    # ========================================================================

    def resolve_status(self, link: Link) -> LinkStatus:
        return resolve_status(link, self._clock.now())

    def view(self, link: Link) -> LinkView:
        return LinkView(link=link, status=self.resolve_status(link))

    async def list_owned_links(self, owner: Owner) -> list[LinkView]:
        links = await self._links.list_by_creator(owner.key)
        return [self.view(link) for link in links]

    async def soft_delete_owned(self, link_id: int, owner: Owner) -> None:
        link = await self._links.find_owned(link_id, owner.key)
        if link is None:
            raise LinkNotOwned()
        await self._links.set_active(link_id, False)
        self.invalidate_aggregates()
        self._logger.info(f"Link {link.short_code} deactivated by owner {owner.key}")

    # ========================================================================
    # ADMIN OPERATIONS
    # ========================================================================

    async def list_links(self, query: LinkQuery) -> LinkPage:
        cache_key = LINK_LIST_CACHE_PREFIX + json.dumps(
            {
                "status": query.status,
                "search": query.search,
                "page": query.page,
                "limit": query.limit,
                "sort_by": query.sort_by,
                "order": query.order,
            },
            sort_keys=True,
        )
        # Only rows are cached; status is derived again on every read.
        cached = self._cache.get(cache_key)
        if cached is None:
            cached = await self._links.search(query, self._clock.now())
            self._cache.set(cache_key, cached, ttl=self._settings.LINKS_CACHE_TTL_SECONDS)
        links, total = cached
        return LinkPage(
            items=[self.view(link) for link in links],
            total=total,
            page=query.page,
            limit=query.limit,
        )

    async def get_link(self, link_id: int) -> Link:
        link = await self._links.get(link_id)
        if link is None:
            raise LinkNotFound()
        return link

    async def get_link_details(self, link_id: int) -> LinkDetails:
        link = await self.get_link(link_id)
        summary = await self._clicks.summary_for_link(link_id)
        recent = await self._clicks.recent(link_id, limit=10)
        return LinkDetails(
            view=self.view(link),
            total_clicks=summary["total_clicks"],
            last_click=summary["last_click"],
            unique_visitors=summary["unique_visitors"],
            recent_clicks=recent,
        )

    async def update_link(self, link_id: int, changes: Mapping[str, Any]) -> LinkView:
        """Apply a partial update to a link.

        ``changes`` may hold ``url``, ``short_code``, ``title``,
        ``description``, ``expires_in`` (hours; ``0``/``None`` clears the
        expiry) and ``is_active``. Absent keys are left unchanged.
        """
        existing = await self.get_link(link_id)
        values: dict[str, Any] = {}

        if "url" in changes:
            url = changes["url"] or ""
            self._check_url(url)
            values["original_url"] = url

        if "short_code" in changes:
            short_code = changes["short_code"] or ""
            if not is_valid_custom_code(short_code):
                raise InvalidCode()
            if short_code != existing.short_code:
                if await self._links.code_exists(short_code, exclude_id=link_id):
                    raise CodeTaken(short_code)
                values["short_code"] = short_code
                values["is_custom"] = True

        for name in ("title", "description"):
            if name in changes:
                values[name] = changes[name] or None

        if "expires_in" in changes:
            values["expires_at"] = self._expiry_from(changes["expires_in"], self._clock.now())

        if changes.get("is_active") is not None:
            values["is_active"] = bool(changes["is_active"])

        try:
            link = await self._links.update_fields(link_id, values)
        except IntegrityError as exc:
            raise CodeTaken(values.get("short_code", existing.short_code)) from exc
        if link is None:
            raise LinkNotFound()

        self.invalidate_aggregates()
        self._logger.info(f"Link {link_id} updated: {sorted(values)}")
        return self.view(link)

    async def delete_link(self, link_id: int) -> None:
        if not await self._links.delete_with_clicks(link_id):
            raise LinkNotFound()
        self.invalidate_aggregates()
        self._logger.info(f"Link {link_id} deleted")

    async def toggle_active(self, link_id: int, is_active: bool) -> LinkView:
        link = await self._links.set_active(link_id, is_active)
        if link is None:
            raise LinkNotFound()
        self.invalidate_aggregates()
        self._logger.info(f"Link {link_id} {'activated' if is_active else 'deactivated'}")
        return self.view(link)

    async def clean_expired(self) -> int:
        removed = await self._links.delete_expired(self._clock.now())
        if removed:
            self.invalidate_aggregates()
            EXPIRED_LINKS_REMOVED_TOTAL.inc(removed)
        self._logger.info(f"Expired link cleanup removed {removed} links")
        return removed

    def invalidate_aggregates(self) -> None:
        self._cache.delete(STATS_CACHE_KEY)
        self._cache.delete_prefix(LINK_LIST_CACHE_PREFIX)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    def _check_url(self, url: str) -> None:
        if not is_valid_url(
            url,
            block_private_targets=self._settings.BLOCK_PRIVATE_TARGETS,
            max_length=self._settings.MAX_URL_LENGTH,
        ):
            raise InvalidUrl()

    @staticmethod
    def _expiry_from(hours: float | None, now: datetime.datetime) -> datetime.datetime | None:
        if hours is None:
            return None
        try:
            if hours <= 0:
                return None
            return now + datetime.timedelta(hours=hours)
        except (OverflowError, ValueError) as exc:
            raise ValidationError("Invalid expiration") from exc
