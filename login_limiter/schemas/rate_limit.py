"""Pydantic schemas for the login rate limit contract.

Field names are snake_case in Python and camelCase on the wire
(``timeRemaining``, ``nextResetTime``) to match what the mobile, web and
admin clients already consume.
"""

from __future__ import annotations

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RateLimitErrorCode = Literal["PROGRESSIVE_DELAY", "TOO_MANY_ATTEMPTS", "ACCOUNT_LOCKED"]

T = TypeVar("T")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmailRequest(BaseModel):
    """Request body carrying the identity to check."""

    # Typed loosely so validation (and its 400 response) happens in one place
    email: Any = Field(
        None,
        description="Email address of the account attempting to log in.",
        examples=["user@example.com"],
    )


class RateLimitCheckResult(_CamelModel):
    """Decision returned before an authentication attempt."""

    allowed: bool = Field(..., description="Whether the login attempt may proceed.")
    error: RateLimitErrorCode | None = Field(
        default=None,
        description="Reason the attempt was denied; absent when allowed.",
    )
    time_remaining: int = Field(
        0,
        ge=0,
        description="Seconds to wait before retrying (0 when allowed).",
    )
    attempts: int = Field(0, ge=0, description="Failed attempts counted for this identity.")
    message: str | None = Field(
        default=None,
        description="Localized, human-readable explanation of a denial.",
    )


class RateLimitStatusResult(_CamelModel):
    """Informational rate limit state (not used for gating)."""

    attempts: int = Field(0, ge=0, description="Failed attempts in the current window.")
    blocked: bool = Field(False, description="Whether an active block exists.")
    time_remaining: int = Field(0, ge=0, description="Seconds until the block ends.")
    next_reset_time: int = Field(
        0,
        ge=0,
        description="Epoch milliseconds when the block ends or the window next frees up.",
    )


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by all rate limit routes."""

    success: Literal[True] = True
    data: T | None = None


class IdentityActionResult(_CamelModel):
    """Acknowledgement for write operations (record-failed, reset)."""

    email: str = Field(..., description="Normalized identity the operation applied to.")
