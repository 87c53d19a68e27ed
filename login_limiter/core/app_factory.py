"""Application factory for FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests can build an app around their own RateLimitService.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from login_limiter.api.routes import health_router, rate_limit_router
from login_limiter.core.config import settings
from login_limiter.core.exception_handlers import setup_exception_handlers
from login_limiter.core.logging import configure_logging
from login_limiter.core.middleware import request_id_middleware
from login_limiter.core.openapi import OPENAPI_TAGS, apply_openapi_customizations
from login_limiter.services.rate_limit_service import RateLimitService

logger = logging.getLogger(__name__)


def create_app(service: RateLimitService | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        service: Pre-built rate limit service. When omitted, the lifespan
            builds one from settings. Either way the lifespan starts it on
            startup and closes it on shutdown.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        rate_limit_service = service or RateLimitService.from_settings(settings)
        status = await rate_limit_service.start()
        app.state.rate_limit_service = rate_limit_service
        logger.info(
            "app.startup",
            extra={
                "app_env": settings.app_env,
                "store_backend": settings.store.backend,
                "store_status": status.value,
            },
        )
        try:
            yield
        finally:
            await rate_limit_service.close()
            app.state.rate_limit_service = None
            logger.info("app.shutdown")

    app = FastAPI(
        title="Login Limiter",
        description=(
            "Login rate limiting shared by the mobile, web and admin login flows. "
            "Failed attempts are counted per email in a sliding window; rapid "
            "retries get a progressive delay and repeated failures a temporary "
            "block. The service fails open when its shared store is unavailable."
        ),
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(rate_limit_router)
    app.include_router(health_router)

    # OpenAPI security scheme
    apply_openapi_customizations(app, api_key_required=settings.app.api_key_required)

    return app
