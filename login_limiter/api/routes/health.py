from __future__ import annotations

from fastapi import APIRouter, Request

from login_limiter.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports liveness plus the shared store connection status. The service
    stays "ok" while the store is down because rate limiting fails open.

    Returns:
        dict: ``{"status": "ok", "store": {"status": ..., "backend": ...}}``.
    """

    service = getattr(request.app.state, "rate_limit_service", None)
    store_status = service.connection_status.value if service is not None else "disconnected"

    return {
        "status": "ok",
        "store": {"status": store_status, "backend": settings.store.backend},
    }
