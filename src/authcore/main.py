"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authcore import __version__
from authcore.api.deps import get_auth_service
from authcore.api.errors import register_exception_handlers
from authcore.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from authcore.api.router import api_router
from authcore.config import Settings, get_settings
from authcore.database import close_db
from authcore.logging import setup_logging

logger = logging.getLogger(__name__)


def init_sentry(settings: Settings) -> None:
    """Initialize Sentry for error tracking when a DSN is configured."""
    if not settings.sentry_dsn:
        return

    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Build the service graph up front so a bad secret or backend fails at startup
    if get_auth_service not in app.dependency_overrides:
        get_auth_service()
    yield
    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Authcore API",
        description="Verification codes, logins and session tokens",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug_enabled else None,
        redoc_url="/api/redoc" if settings.debug_enabled else None,
        openapi_url="/api/openapi.json" if settings.debug_enabled else None,
    )

    app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]
    # Wraps the logging middleware so request ids are set before it logs
    app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)
    init_sentry(settings)
    return create_app(settings)


app = _build_default_app()


if __name__ == "__main__":
    import uvicorn

    from authcore.logging import get_uvicorn_log_config

    uvicorn.run(
        "authcore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().is_development,
        log_config=get_uvicorn_log_config(get_settings()),
    )
