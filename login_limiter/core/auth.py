"""Service-to-service authentication for the rate limit routes.

Callers of this service are the login backends of the mobile, web and admin
apps, never end users. Inside a private network the routes are usually left
open (``APP_API_KEY_REQUIRED=false``, the default); when they are exposed
further, each backend is given a key from ``APP_API_KEYS`` and sends it in
``X-API-Key``. Failures surface as AuthenticationAppError, which the global
handlers render as 403 in the standard error envelope.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header

from login_limiter.core.config import settings
from login_limiter.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Split the comma-separated ``APP_API_KEYS`` value into distinct keys.

    >>> sorted(parse_api_keys(" web-key, mobile-key ,,"))
    ['mobile-key', 'web-key']
    """
    if not keys_string:
        return set()
    return {part.strip() for part in keys_string.split(",") if part.strip()}


def _fingerprint(key: str) -> str:
    """Short, non-reversible form of a key that is safe to log."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _configured_keys() -> set[str]:
    keys = parse_api_keys(settings.app.api_keys)
    if keys:
        return keys
    logger.error("auth.keys_not_configured", extra={"auth_required": True})
    raise AuthenticationAppError(
        code="api_keys_not_configured",
        message="API key authentication is enabled but no valid keys are configured",
        details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
    )


def validate_api_key(provided_key: str | None) -> None:
    """Check ``provided_key`` against the configured service keys.

    Does nothing when authentication is disabled. Every configured key is
    compared in constant time, so response timing does not reveal which
    prefix matched.

    Raises:
        AuthenticationAppError: ``api_keys_not_configured``, ``missing_api_key``
            or ``invalid_api_key``.
    """
    if not settings.app.api_key_required:
        return

    keys = _configured_keys()

    if not provided_key:
        logger.warning("auth.missing_key")
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    provided = provided_key.encode()
    matches = [hmac.compare_digest(key.encode(), provided) for key in keys]
    if not any(matches):
        logger.warning("auth.invalid_key", extra={"api_key_hash": _fingerprint(provided_key)})
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """Router-level dependency guarding ``/rate-limit/*``.

    Usage:
        APIRouter(prefix="/rate-limit", dependencies=[Depends(verify_api_key)])
    """
    if not settings.app.api_key_required:
        return

    validate_api_key(x_api_key)
    logger.debug("auth.success", extra={"api_key_hash": _fingerprint(x_api_key or "")})
