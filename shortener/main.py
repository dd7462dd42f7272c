"""FastAPI application entry point for the URL shortener service.

This module configures the FastAPI application with middleware, exception
handlers, lifecycle management and route registration.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │  uvicorn     │
    │  startup     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ startup:     │
    │ manager.init │
    │ init_db()    │
    │ bootstrap    │
    │ first admin  │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ dispose pool │
    └──────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 8000 --reload

**Step 2 — Or use the console script**::
    shortener

**Step 3 — Make API calls**::
    curl -X POST http://localhost:8000/api/shorten \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com", "expiresIn": 24}'

Key Behaviours
===============
- Database tables are created automatically on startup.
- When ADMIN_BOOTSTRAP_* are set and no admin exists, the first admin is
  created on startup.
- Service errors become ``{"success": false, "error": ...}`` with the status
  the error carries.
- Connection pool exhaustion becomes 503 with ``Retry-After``.
- Other SQLAlchemy errors are logged with statement and parameters and
  returned as a generic 500.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app", "run"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError, StatementError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shortener import admin_routes, routes
from shortener.auth_service import AuthService
from shortener.config import get_settings
from shortener.database import init_db
from shortener.dependencies import RequestContext, _service_manager
from shortener.errors import ServiceError, StoreUnavailable
from shortener.schemas import ErrorResponse

settings = get_settings()
logger = logging.getLogger("shortener")

RETRY_AFTER_SECONDS = 1


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await _service_manager.initialize()
    await init_db(_service_manager.engine)
    ctx = RequestContext(service_manager=_service_manager, tags=["startup"])
    created = await AuthService.from_context(ctx).ensure_bootstrap_admin()
    if created is not None:
        ctx.logger.info(f"Bootstrap admin created: {created.username}")
    yield
    # Shutdown
    await _service_manager.cleanup()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="URL shortener with click analytics and an admin console",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(by_alias=True),
        headers=headers,
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if isinstance(exc, StoreUnavailable) else None
    return error_response(exc.status_code, exc.message, headers)


@app.exception_handler(PoolTimeoutError)
async def pool_timeout_handler(request: Request, exc: PoolTimeoutError) -> JSONResponse:
    logger.warning(f"Connection pool exhausted on {request.method} {request.url.path}")
    return await service_error_handler(request, StoreUnavailable())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    if isinstance(exc, StatementError):
        logger.error(
            f"Database error on {request.method} {request.url.path}: {exc.orig!r}",
            extra={"statement": exc.statement, "params": exc.params},
        )
    else:
        logger.error(f"Database error on {request.method} {request.url.path}: {exc!r}")
    return error_response(500, "Internal server error")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=False,
    excluded_handlers=["/metrics"],
).instrument(app).expose(app)

app.include_router(routes.router)
app.include_router(admin_routes.router)
# Catch-all /{short_code} last so it never shadows the routes above.
app.include_router(routes.redirect_router)


def run() -> None:
    import uvicorn

    uvicorn.run("shortener.main:app", host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
