"""Rate limit service dependency for FastAPI routes.

This module wires the login rate limit facade into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Single owner: the service (and its store connection) is created once by the
  app lifespan and kept on ``app.state``; routes never open a connection.
- Test-friendly: tests hand a service built on the in-memory store to
  ``create_app()`` instead of patching module globals.
"""

from __future__ import annotations

import logging

from fastapi import Request

from login_limiter.core.errors import AppError
from login_limiter.services.rate_limit_service import RateLimitService

logger = logging.getLogger(__name__)


def get_rate_limit_service(request: Request) -> RateLimitService:
    """Return the process-wide RateLimitService owned by the app lifespan.

    Args:
        request: FastAPI request.

    Returns:
        RateLimitService: The service started during application startup.

    Raises:
        AppError: If the app was started without its lifespan (service missing).
    """

    service = getattr(request.app.state, "rate_limit_service", None)
    if service is None:
        logger.error("rate_limit.service_missing", extra={"request_path": request.url.path})
        raise AppError(
            code="rate_limit_service_unavailable",
            message="Rate limit service is not initialized",
        )
    return service
