"""Error taxonomy of the login limiter.

Only ValidationAppError (bad email) and AuthenticationAppError (bad service
key) are meant to reach HTTP callers. Store errors are raised by the
adapters and recovered by the fail-open service facade; if one ever escapes
it, the global handlers render it as a 500.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional structured context attached to an error."""

    field: str
    operation: str
    hint: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error carrying a stable ``code`` for clients and log queries.

    Attributes:
        code: Machine-readable error code, e.g. ``invalid_email``.
        message: Human-readable message.
        details: Optional structured context.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Invalid input or configuration (missing/malformed email, unknown backend)."""


class AuthenticationAppError(AppError):
    """Missing or invalid service API key."""


class StoreAppError(AppError):
    """A shared store operation failed while the store was otherwise reachable."""


class StoreUnavailableError(StoreAppError):
    """The shared store could not be reached (connection lost or timed out)."""
