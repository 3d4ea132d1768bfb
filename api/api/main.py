"""FastAPI application entry-point for the BoothOS API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from booth_core.errors import BoothError, QuotaExceeded
from booth_core.state.sqlite_adapter import create_local_tables
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api import __version__
from api.dependencies import (
    dispose_engine,
    dispose_mailer,
    get_core_settings,
    get_settings,
    get_token_manager,
    init_engine,
    init_mailer,
    init_object_store,
)
from api.middleware.auth import AuthenticationMiddleware
from api.middleware.logging import RequestLoggingMiddleware, safe_path
from api.routers import admin, events, guests, health, media, production, public

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Initialise the async database engine.
    - Create tables for local SQLite databases (Postgres uses Alembic).
    - Build the object store and the mail relay client.

    On shutdown:
    - Close the mail relay client.
    - Dispose the database engine connection pool.
    """
    settings = get_settings()
    core = get_core_settings()

    if settings.structured_logging or core.structured_logging:
        from api.middleware.json_formatter import JSONFormatter

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)
        logger.info("Structured JSON logging enabled")

    engine = init_engine(core)
    is_local = core.database_url.startswith("sqlite")
    logger.info("Database engine initialised (%s)", "local" if is_local else "postgres")
    if is_local:
        await create_local_tables(engine)
        logger.info("Database tables ensured (local SQLite)")

    objects = init_object_store(core)
    logger.info("Object store initialised (%s)", type(objects).__name__)

    mailer = init_mailer(settings)
    if not mailer.enabled:
        logger.info("Mail relay not configured; links will not be emailed")

    yield

    await dispose_mailer()
    await dispose_engine()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BoothOS API",
        description="Tenant-scoped storage and delivery for event photo booths.",
        version=__version__,
        lifespan=lifespan,
    )

    # -- Middleware (outermost last) -----------------------------------------

    app.add_middleware(AuthenticationMiddleware, token_manager=get_token_manager(settings))
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Correlation-ID",
            "X-Admin-Token",
            "Accept",
        ],
    )

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(guests.router, prefix="/api/v1")
    app.include_router(media.router, prefix="/api/v1")
    app.include_router(production.router, prefix="/api/v1")
    app.include_router(public.router, prefix="/api/v1")
    app.include_router(public.objects_router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    app.include_router(health.readiness_router)

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(BoothError)
    async def booth_error_handler(request: Request, exc: BoothError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, safe_path(request.url.path), exc)
        else:
            logger.info("%s on %s: %s", type(exc).__name__, safe_path(request.url.path), exc.detail)
        content: dict[str, str] = {"detail": exc.detail}
        if isinstance(exc, QuotaExceeded):
            content["kind"] = exc.kind
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("ValueError on %s: %s", safe_path(request.url.path), exc)
        return JSONResponse(status_code=400, content={"detail": "Invalid request"})

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal database error"},
        )

    return app


# Module-level application instance used by ``uvicorn api.main:app``.
app = create_app()
