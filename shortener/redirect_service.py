"""Redirect resolution with click analytics.

Flow Diagram — resolve_redirect()
=================================
::
    ┌─────────────┐
    │  GET /:code │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Lookup      │── absent / inactive ──▶ LinkNotFound (404)
    │ active link │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Expired?    │── yes ──▶ LinkExpired (404)
    └──────┬──────┘
           ▼
    ┌──────────────────────────────┐
    │ asyncio.gather (two sessions)│
    │  ├─ clicks = clicks + 1      │
    │  └─ INSERT click event       │
    └──────┬───────────────────────┘
           ▼
    ┌─────────────┐
    │ 302 to      │
    │ original URL│
    └─────────────┘

Key Behaviours
===============
- No cache on this path: every redirect reads the store, so an expired or
  deactivated link is never served from stale state.
- The counter increment is a single SQL UPDATE, so concurrent redirects on the
  same code never lose counts.
- The two writes are independent; neither waits on the other's transaction.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram

from shortener.clock import Clock
from shortener.enums import RedirectOutcome
from shortener.errors import LinkExpired, LinkNotFound
from shortener.repositories import ClickMeta, ClickRepository, LinkRepository

if TYPE_CHECKING:
    from shortener.dependencies import RequestContext

__all__ = ["RedirectService"]

REDIRECT_REQUESTS_TOTAL = Counter(
    "url_shortener_redirect_requests_total",
    "Redirect requests by outcome",
    ["outcome"],
)
REDIRECT_DURATION = Histogram(
    "url_shortener_redirect_duration_seconds",
    "Time taken to resolve a redirect and record its click",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5],
)


class RedirectService:
    def __init__(
        self,
        links: LinkRepository,
        clicks: ClickRepository,
        clock: Clock,
        logger: logging.Logger | logging.LoggerAdapter,
    ) -> None:
        self._links = links
        self._clicks = clicks
        self._clock = clock
        self._logger = logger

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "RedirectService":
        manager = ctx.service_manager
        return cls(
            links=LinkRepository(manager.session_factory),
            clicks=ClickRepository(manager.session_factory),
            clock=manager.clock,
            logger=ctx.logger,
        )

    async def resolve_redirect(self, short_code: str, meta: ClickMeta) -> str:
        """Return the target URL for ``short_code`` after recording the click.

        Raises:
            LinkNotFound: If no active link owns the code.
            LinkExpired: If the link's expiration time has passed.
        """
        with REDIRECT_DURATION.time():
            link = await self._links.find_active_by_code(short_code)
            if link is None:
                REDIRECT_REQUESTS_TOTAL.labels(outcome=RedirectOutcome.NOT_FOUND).inc()
                self._logger.warning(f"Redirect failed - short code not found: {short_code}")
                raise LinkNotFound()

            now = self._clock.now()
            if link.expires_at is not None and link.expires_at < now:
                REDIRECT_REQUESTS_TOTAL.labels(outcome=RedirectOutcome.EXPIRED).inc()
                self._logger.warning(f"Redirect failed - short code expired: {short_code}")
                raise LinkExpired()

            await asyncio.gather(
                self._links.increment_clicks(link.id),
                self._clicks.record(link.id, meta, now),
            )

        REDIRECT_REQUESTS_TOTAL.labels(outcome=RedirectOutcome.REDIRECTED).inc()
        self._logger.info(
            f"Redirect: {short_code} -> {link.original_url}",
            extra={"operation": "redirect", "short_code": short_code, "link_id": link.id},
        )
        return link.original_url
