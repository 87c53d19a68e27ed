"""Identity normalization and log-safe representations.

Every per-identity key in the store is derived from the normalized form
returned by normalize_identity(), so "User@Example.com " and
"user@example.com" share one attempt window across all client apps.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

from login_limiter.core.errors import ValidationAppError

MAX_IDENTITY_LENGTH = 320

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


def normalize_identity(email: Any) -> str:
    """Validate and normalize an email identity.

    Args:
        email: Raw value from the caller; anything but a non-empty string
            is rejected.

    Returns:
        str: Trimmed, lower-cased email.

    Raises:
        ValidationAppError: If the value is missing, not a string, or not
            shaped like an email address.

    Examples:
        >>> normalize_identity("  User@Example.COM ")
        'user@example.com'
    """
    if not isinstance(email, str):
        raise ValidationAppError(
            code="invalid_email",
            message="Email is required",
            details={"field": "email"},
        )

    identity = email.strip().lower()
    if not identity:
        raise ValidationAppError(
            code="invalid_email",
            message="Email is required",
            details={"field": "email"},
        )
    if len(identity) > MAX_IDENTITY_LENGTH or not _EMAIL_PATTERN.match(identity):
        raise ValidationAppError(
            code="invalid_email",
            message="Email is malformed",
            details={"field": "email"},
        )
    return identity


def hash_identity(identity: str) -> str:
    """Hash a normalized identity for correlation in logs."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


def mask_identity(identity: str) -> str:
    """Mask the local part of an email, keeping the first character and domain.

    >>> mask_identity("jane.doe@example.com")
    'j***@example.com'
    """
    local, sep, domain = identity.partition("@")
    if not sep:
        return f"{identity[:1]}***"
    return f"{local[:1]}***@{domain}"
