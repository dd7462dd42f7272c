"""FastAPI route definitions for the public URL shortener API.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /api/shorten
        ├─ ShortenRequest (request body)
        └─ ApiResponse[ShortenedLink] (201) or 400/409/503

    GET    /api/manage
        └─ ApiResponse[list[LinkOut]] (200), links created from caller IP

    DELETE /api/delete/:id
        └─ MessageResponse (200) or 400 when not owned

    GET    /api/stats/:short_code
        └─ ApiResponse[LinkStatsOut] (200) or 404

    GET    /:short_code
        └─ 302 Redirect or 404 HTML page

The redirect router is registered separately and must be included last so
its catch-all path does not shadow ``/health``, ``/metrics`` or ``/admin``.

Key Behaviours
===============
- Service errors propagate to the handlers in ``main.py``, which render the
  ``{success: false, error}`` envelope.
- ``shortUrl`` uses PUBLIC_BASE_URL when configured, otherwise the request's
  own scheme and host.
- The redirect path renders HTML for misses, not JSON.
"""

import html

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy import text

from shortener.config import Settings
from shortener.dependencies import (
    RequestContext,
    ServiceManager,
    get_link_service,
    get_redirect_service,
    get_request_context,
    get_service_manager,
    get_stats_service,
)
from shortener.enums import HealthStatus
from shortener.errors import NotFoundError
from shortener.link_service import LinkService
from shortener.owner import Owner
from shortener.qr import generate_qr_data_url
from shortener.redirect_service import RedirectService
from shortener.repositories import ClickMeta
from shortener.schemas import (
    ApiResponse,
    DailyClicks,
    HealthResponse,
    LinkOut,
    LinkStatsOut,
    MessageResponse,
    ShortenedLink,
    ShortenRequest,
)
from shortener.stats_service import StatsService

__all__ = ["redirect_router", "router", "build_short_url"]

router = APIRouter()
redirect_router = APIRouter()


def build_short_url(request: Request, settings: Settings, short_code: str) -> str:
    base = settings.PUBLIC_BASE_URL or str(request.base_url)
    return f"{base.rstrip('/')}/{short_code}"


async def shortened_link_payload(request: Request, settings: Settings, link) -> ShortenedLink:
    short_url = build_short_url(request, settings, link.short_code)
    return ShortenedLink(
        id=link.id,
        original_url=link.original_url,
        short_code=link.short_code,
        short_url=short_url,
        qr_code=await generate_qr_data_url(short_url),
        title=link.title,
        description=link.description,
        expires_at=link.expires_at,
        created_at=link.created_at,
    )


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    manager: ServiceManager = Depends(get_service_manager),
) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        async with manager.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    return HealthResponse(status=db_status, database=db_status)


@router.post(
    "/api/shorten",
    response_model=ApiResponse[ShortenedLink],
    status_code=201,
    tags=["links"],
)
async def shorten_url(
    payload: ShortenRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[ShortenedLink]:
    ctx.add_tag("link_creation")
    link = await service.create_short_link(
        payload.url,
        owner=Owner(ctx.client_ip),
        custom_code=payload.custom_code,
        title=payload.title,
        description=payload.description,
        expires_in_hours=payload.expires_in,
    )
    data = await shortened_link_payload(request, ctx.settings, link)
    ctx.logger.info(
        f"Short link issued: {link.short_code}",
        extra={"operation": "shorten", "duration_ms": ctx.get_duration()},
    )
    return ApiResponse(data=data)


@router.get("/api/manage", response_model=ApiResponse[list[LinkOut]], tags=["links"])
async def manage_links(
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[list[LinkOut]]:
    views = await service.list_owned_links(Owner(ctx.client_ip))
    return ApiResponse(data=[LinkOut.from_view(view) for view in views])


@router.delete("/api/delete/{link_id}", response_model=MessageResponse, tags=["links"])
async def delete_owned_link(
    link_id: int,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkService = Depends(get_link_service),
) -> MessageResponse:
    await service.soft_delete_owned(link_id, Owner(ctx.client_ip))
    return MessageResponse(message="Link deleted")


@router.get("/api/stats/{short_code}", response_model=ApiResponse[LinkStatsOut], tags=["links"])
async def get_stats(
    short_code: str,
    links: LinkService = Depends(get_link_service),
    service: StatsService = Depends(get_stats_service),
) -> ApiResponse[LinkStatsOut]:
    stats = await service.link_stats(short_code)
    return ApiResponse(
        data=LinkStatsOut(
            link=LinkOut.from_view(links.view(stats.link)),
            total_clicks=stats.total_clicks,
            daily_stats=[DailyClicks(**day) for day in stats.daily],
        )
    )


NOT_FOUND_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Link not found</title></head>
<body>
<h1>404</h1>
<p>{message}</p>
</body>
</html>
"""


@redirect_router.get("/{short_code}", tags=["redirect"], include_in_schema=False)
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: RedirectService = Depends(get_redirect_service),
):
    ctx.add_tag("redirect")
    meta = ClickMeta(client_ip=ctx.client_ip, user_agent=ctx.user_agent, referer=ctx.referer)
    try:
        target = await service.resolve_redirect(short_code, meta)
    except NotFoundError as exc:
        return HTMLResponse(NOT_FOUND_PAGE.format(message=html.escape(exc.message)), status_code=404)

    return RedirectResponse(url=target, status_code=302)
