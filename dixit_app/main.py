from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from dixit_app.api.errors import register_error_handlers
from dixit_app.api.info import router as info_router
from dixit_app.api.status import router as status_router
from dixit_app.config import Settings, get_settings
from dixit_app.middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from dixit_app.observability.logging import configure_logging
from dixit_app.observability.middleware import RequestContextMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = structlog.get_logger("app")
    logger.info(
        "app_started",
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        url=f"http://localhost:{settings.port}",
    )
    yield
    logger.info("app_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.include_router(status_router)
    app.include_router(info_router)
    register_error_handlers(app)

    # add_middleware prepends, so the last one added is outermost.
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    if settings.compression_enabled:
        app.add_middleware(GZipMiddleware, minimum_size=1024)
    if settings.security_headers_enabled:
        app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware, expose_error_details=not settings.is_production)
    return app


app = create_app()
