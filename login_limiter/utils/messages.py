"""Localized, user-facing messages for rate limit decisions."""

from __future__ import annotations

import math

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "PROGRESSIVE_DELAY": "Too many attempts in a short time! Please wait {seconds} seconds.",
        "TOO_MANY_ATTEMPTS": "Too many attempts! Please wait {minutes} minutes.",
        "ACCOUNT_LOCKED": (
            "Your account has been locked for {hours} hours. {minutes} minutes remaining."
        ),
    },
    "tr": {
        "PROGRESSIVE_DELAY": "Çok hızlı deneme! {seconds} saniye bekleyin.",
        "TOO_MANY_ATTEMPTS": "Çok fazla deneme! {minutes} dakika bekleyin.",
        "ACCOUNT_LOCKED": "Hesabınız {hours} saat kilitlendi. {minutes} dakika kaldı.",
    },
}


def supported_locales() -> set[str]:
    return set(MESSAGES)


def build_message(
    error: str,
    time_remaining: int,
    *,
    locale: str = DEFAULT_LOCALE,
    account_lock_hours: int = 2,
) -> str:
    """Render the message for a denied attempt.

    Delays are stated in seconds, blocks and locks in whole minutes rounded up.

    Args:
        error: Decision error code (PROGRESSIVE_DELAY, TOO_MANY_ATTEMPTS,
            ACCOUNT_LOCKED).
        time_remaining: Seconds until the caller may retry.
        locale: Message locale; unknown locales fall back to English.
        account_lock_hours: Lock duration quoted in ACCOUNT_LOCKED messages.

    Returns:
        str: Human-readable message.

    Raises:
        KeyError: If ``error`` is not a known decision code.
    """
    catalog = MESSAGES.get(locale.lower(), MESSAGES[DEFAULT_LOCALE])
    template = catalog[error]
    return template.format(
        seconds=time_remaining,
        minutes=math.ceil(time_remaining / 60),
        hours=account_lock_hours,
    )
