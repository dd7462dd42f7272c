"""Click statistics for a single code and the admin dashboard aggregate.

The dashboard aggregate is served from the process-local TTL cache. Link
writes drop the cached copy (see ``LinkService.invalidate_aggregates``);
click increments leave it to expire.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shortener.cache import TTLCache
from shortener.clock import Clock
from shortener.config import Settings
from shortener.errors import LinkNotFound
from shortener.link_service import STATS_CACHE_KEY
from shortener.models import Link
from shortener.repositories import ClickRepository, LinkRepository

if TYPE_CHECKING:
    from shortener.dependencies import RequestContext

__all__ = ["LinkStats", "StatsService"]

TOP_LINKS_LIMIT = 5
ACTIVITY_WINDOW_DAYS = 7


@dataclass(frozen=True)
class LinkStats:
    link: Link
    total_clicks: int
    daily: list[dict[str, Any]]


class StatsService:
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
    def from_context(cls, ctx: "RequestContext") -> "StatsService":
        manager = ctx.service_manager
        return cls(
            links=LinkRepository(manager.session_factory),
            clicks=ClickRepository(manager.session_factory),
            cache=manager.cache,
            clock=manager.clock,
            settings=manager.settings,
            logger=ctx.logger,
        )

    async def link_stats(self, short_code: str) -> LinkStats:
        link = await self._links.find_by_code(short_code)
        if link is None:
            raise LinkNotFound()
        daily = await self._clicks.daily_breakdown(link.id)
        return LinkStats(link=link, total_clicks=link.clicks, daily=daily)

    async def system_stats(self) -> dict[str, Any]:
        cached = self._cache.get(STATS_CACHE_KEY)
        if cached is not None:
            self._logger.debug("System stats served from cache")
            return cached

        now = self._clock.now()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_start = today_start - datetime.timedelta(days=ACTIVITY_WINDOW_DAYS)

        summary = await self._links.summary(now, today_start)
        summary["today_clicks"] = await self._clicks.count_since(today_start)
        top = await self._links.top_clicked(TOP_LINKS_LIMIT)
        weekly = await self._links.created_per_day(week_start)

        stats = {
            "summary": summary,
            "top_urls": [
                {
                    "original_url": link.original_url,
                    "short_code": link.short_code,
                    "title": link.title,
                    "clicks": link.clicks,
                }
                for link in top
            ],
            "weekly_activity": weekly,
        }
        self._cache.set(STATS_CACHE_KEY, stats, ttl=self._settings.STATS_CACHE_TTL_SECONDS)
        return stats
