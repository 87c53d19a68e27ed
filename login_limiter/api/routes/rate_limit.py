"""Rate limit routes consumed by the mobile, web and admin login flows.

Flow expected from a caller:
1. POST /rate-limit/check before verifying credentials
2. POST /rate-limit/record-failed when verification fails
3. POST /rate-limit/reset when verification succeeds

Fail-open results are ordinary 200 responses; only a missing or malformed
email is a client error (400).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from login_limiter.core.auth import verify_api_key
from login_limiter.core.rate_limit import get_rate_limit_service
from login_limiter.schemas.rate_limit import (
    ApiResponse,
    EmailRequest,
    IdentityActionResult,
    RateLimitCheckResult,
    RateLimitStatusResult,
)
from login_limiter.services.rate_limit_service import RateLimitService
from login_limiter.utils.identity import normalize_identity

router = APIRouter(
    prefix="/rate-limit",
    tags=["Rate Limit"],
    dependencies=[Depends(verify_api_key)],
)

ServiceDep = Annotated[RateLimitService, Depends(get_rate_limit_service)]


@router.post(
    "/check",
    response_model=ApiResponse[RateLimitCheckResult],
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def check_rate_limit(body: EmailRequest, service: ServiceDep) -> ApiResponse[RateLimitCheckResult]:
    """Decide whether a login attempt for ``email`` may proceed.

    A denial carries ``error`` (PROGRESSIVE_DELAY, TOO_MANY_ATTEMPTS or
    ACCOUNT_LOCKED), ``timeRemaining`` in seconds and a localized message.
    """
    result = await service.check_rate_limit(body.email)
    return ApiResponse[RateLimitCheckResult](data=result)


@router.post(
    "/record-failed",
    response_model=ApiResponse[IdentityActionResult],
    response_model_by_alias=True,
)
async def record_failed_attempt(
    body: EmailRequest, service: ServiceDep
) -> ApiResponse[IdentityActionResult]:
    """Record a failed authentication for ``email``."""
    await service.record_failed_attempt(body.email)
    return ApiResponse[IdentityActionResult](
        data=IdentityActionResult(email=normalize_identity(body.email))
    )


@router.post(
    "/reset",
    response_model=ApiResponse[IdentityActionResult],
    response_model_by_alias=True,
)
async def reset_rate_limit(body: EmailRequest, service: ServiceDep) -> ApiResponse[IdentityActionResult]:
    """Clear attempts and blocks for ``email`` after a successful login."""
    await service.reset_rate_limit(body.email)
    return ApiResponse[IdentityActionResult](
        data=IdentityActionResult(email=normalize_identity(body.email))
    )


@router.get(
    "/status/{email}",
    response_model=ApiResponse[RateLimitStatusResult],
    response_model_by_alias=True,
)
async def get_rate_limit_status(email: str, service: ServiceDep) -> ApiResponse[RateLimitStatusResult]:
    """Informational view of the rate limit state for ``email``."""
    result = await service.get_rate_limit_status(email)
    return ApiResponse[RateLimitStatusResult](data=result)
