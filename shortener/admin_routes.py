"""Admin API: authentication, account management and link administration.

Every route except ``POST /login`` requires ``Authorization: Bearer <token>``
resolving to a live session (see ``require_admin``).

API Endpoint Overview
=====================
::
    POST   /admin/api/login                 LoginResponse or 401
    POST   /admin/api/logout                revoke the presented token
    GET    /admin/api/me                    current admin
    POST   /admin/api/change-password       revokes all of the admin's sessions

    GET    /admin/api/users                 list admin accounts
    POST   /admin/api/users                 create admin (201) or 400/409
    PATCH  /admin/api/users/:id/toggle      activate / deactivate

    GET    /admin/api/stats                 dashboard aggregate (cached)

    GET    /admin/api/urls                  filtered, paginated listing (cached)
    POST   /admin/api/urls                  create link owned by "admin"
    GET    /admin/api/urls/:id              details + recent clicks
    PUT    /admin/api/urls/:id              partial update
    DELETE /admin/api/urls/:id              hard delete (clicks too)
    PATCH  /admin/api/urls/:id/toggle       activate / deactivate

    DELETE /admin/api/cleanup/expired       remove expired links
    DELETE /admin/api/cleanup/sessions      remove expired sessions
"""

from fastapi import APIRouter, Depends, Query, Request

from shortener.auth_service import AuthService
from shortener.dependencies import (
    AdminPrincipal,
    RequestContext,
    get_auth_service,
    get_link_service,
    get_request_context,
    get_stats_service,
    require_admin,
)
from shortener.enums import LinkFilter, SortOrder
from shortener.link_service import LinkService, shorten_user_agent
from shortener.owner import Owner
from shortener.repositories import LinkQuery
from shortener.routes import shortened_link_payload
from shortener.schemas import (
    AdminUserDetailOut,
    AdminUserOut,
    ApiResponse,
    ChangePasswordRequest,
    CleanupOut,
    ClickOut,
    ClickSummaryOut,
    CreateUserRequest,
    LinkDetailsOut,
    LinkListOut,
    LinkOut,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PaginationOut,
    ShortenedLink,
    ShortenRequest,
    SystemStatsOut,
    ToggleRequest,
    UpdateLinkRequest,
)
from shortener.stats_service import StatsService

__all__ = ["router"]

router = APIRouter(prefix="/admin/api", tags=["admin"])


# ============================================================================
# SESSION
# ============================================================================


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await service.authenticate(
        payload.username,
        payload.password,
        ip_address=ctx.client_ip,
        user_agent=ctx.user_agent,
    )
    return LoginResponse(
        token=result.token,
        user=AdminUserOut(
            id=result.user.id,
            username=result.user.username,
            email=result.user.email,
            full_name=result.user.full_name,
        ),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    admin: AdminPrincipal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.logout(admin.token)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse)
async def me(admin: AdminPrincipal = Depends(require_admin)) -> MeResponse:
    user = admin.user
    return MeResponse(
        user=AdminUserOut(id=user.id, username=user.username, email=user.email, full_name=user.full_name)
    )


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    admin: AdminPrincipal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.change_password(admin.user.id, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed; log in again")


# ============================================================================
# ADMIN ACCOUNTS
# ============================================================================


@router.get("/users", response_model=ApiResponse[list[AdminUserDetailOut]])
async def list_users(
    _: AdminPrincipal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> ApiResponse[list[AdminUserDetailOut]]:
    users = await service.list_users()
    return ApiResponse(data=[AdminUserDetailOut.model_validate(user) for user in users])


@router.post("/users", response_model=ApiResponse[AdminUserDetailOut], status_code=201)
async def create_user(
    payload: CreateUserRequest,
    _: AdminPrincipal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> ApiResponse[AdminUserDetailOut]:
    user = await service.create_user(
        payload.username,
        str(payload.email),
        payload.password,
        full_name=payload.full_name,
    )
    return ApiResponse(data=AdminUserDetailOut.model_validate(user), message="Admin user created")


@router.patch("/users/{user_id}/toggle", response_model=MessageResponse)
async def toggle_user(
    user_id: int,
    payload: ToggleRequest,
    _: AdminPrincipal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.set_user_active(user_id, payload.is_active)
    return MessageResponse(message=f"User {'activated' if payload.is_active else 'deactivated'}")


# ============================================================================
# DASHBOARD
# ============================================================================


@router.get("/stats", response_model=ApiResponse[SystemStatsOut])
async def system_stats(
    _: AdminPrincipal = Depends(require_admin),
    service: StatsService = Depends(get_stats_service),
) -> ApiResponse[SystemStatsOut]:
    stats = await service.system_stats()
    return ApiResponse(data=SystemStatsOut.model_validate(stats))


# ============================================================================
# LINKS
# ============================================================================


@router.get("/urls", response_model=ApiResponse[LinkListOut])
async def list_urls(
    status: LinkFilter | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at", alias="sortBy"),
    order: str = "DESC",
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[LinkListOut]:
    result = await service.list_links(
        LinkQuery(
            status=status,
            search=search or None,
            page=page,
            limit=limit,
            sort_by=sort_by,
            order=SortOrder.from_str(order),
        )
    )
    return ApiResponse(
        data=LinkListOut(
            urls=[LinkOut.from_view(view) for view in result.items],
            pagination=PaginationOut(
                total=result.total,
                page=result.page,
                limit=result.limit,
                total_pages=result.total_pages,
            ),
        )
    )


@router.post("/urls", response_model=ApiResponse[ShortenedLink], status_code=201)
async def create_url(
    payload: ShortenRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[ShortenedLink]:
    link = await service.create_short_link(
        payload.url,
        owner=Owner.admin(),
        custom_code=payload.custom_code,
        title=payload.title,
        description=payload.description,
        expires_in_hours=payload.expires_in,
    )
    return ApiResponse(data=await shortened_link_payload(request, ctx.settings, link))


@router.get("/urls/{link_id}", response_model=ApiResponse[LinkDetailsOut])
async def get_url(
    link_id: int,
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[LinkDetailsOut]:
    details = await service.get_link_details(link_id)
    return ApiResponse(
        data=LinkDetailsOut(
            url=LinkOut.from_view(details.view),
            stats=ClickSummaryOut(
                total_clicks=details.total_clicks,
                last_click=details.last_click,
                unique_visitors=details.unique_visitors,
            ),
            recent_clicks=[
                ClickOut(
                    clicked_at=click.clicked_at,
                    client_ip=click.client_ip,
                    user_agent=click.user_agent,
                    referer=click.referer,
                    user_agent_short=shorten_user_agent(click.user_agent),
                )
                for click in details.recent_clicks
            ],
        )
    )


@router.put("/urls/{link_id}", response_model=ApiResponse[LinkOut])
async def update_url(
    link_id: int,
    payload: UpdateLinkRequest,
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[LinkOut]:
    view = await service.update_link(link_id, payload.model_dump(exclude_unset=True))
    return ApiResponse(data=LinkOut.from_view(view), message="Link updated")


@router.delete("/urls/{link_id}", response_model=MessageResponse)
async def delete_url(
    link_id: int,
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> MessageResponse:
    await service.delete_link(link_id)
    return MessageResponse(message="Link deleted")


@router.patch("/urls/{link_id}/toggle", response_model=ApiResponse[LinkOut])
async def toggle_url(
    link_id: int,
    payload: ToggleRequest,
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[LinkOut]:
    view = await service.toggle_active(link_id, payload.is_active)
    return ApiResponse(
        data=LinkOut.from_view(view),
        message=f"Link {'activated' if payload.is_active else 'deactivated'}",
    )


# ============================================================================
# MAINTENANCE
# ============================================================================


@router.delete("/cleanup/expired", response_model=ApiResponse[CleanupOut])
async def cleanup_expired_links(
    _: AdminPrincipal = Depends(require_admin),
    service: LinkService = Depends(get_link_service),
) -> ApiResponse[CleanupOut]:
    removed = await service.clean_expired()
    return ApiResponse(data=CleanupOut(deleted_count=removed))


@router.delete("/cleanup/sessions", response_model=ApiResponse[CleanupOut])
async def cleanup_expired_sessions(
    _: AdminPrincipal = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> ApiResponse[CleanupOut]:
    removed = await service.clean_expired_sessions()
    return ApiResponse(data=CleanupOut(deleted_count=removed))
