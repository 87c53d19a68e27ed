"""Unit tests for localized rate limit messages."""

import pytest

from login_limiter.utils.messages import build_message, supported_locales


def test_supported_locales() -> None:
    assert supported_locales() == {"en", "tr"}


@pytest.mark.parametrize(
    "error, remaining, expected",
    [
        ("PROGRESSIVE_DELAY", 2, "Too many attempts in a short time! Please wait 2 seconds."),
        ("TOO_MANY_ATTEMPTS", 900, "Too many attempts! Please wait 15 minutes."),
        ("TOO_MANY_ATTEMPTS", 61, "Too many attempts! Please wait 2 minutes."),
        (
            "ACCOUNT_LOCKED",
            7_200,
            "Your account has been locked for 2 hours. 120 minutes remaining.",
        ),
    ],
)
def test_english_messages(error: str, remaining: int, expected: str) -> None:
    assert build_message(error, remaining) == expected


def test_turkish_messages() -> None:
    assert build_message("TOO_MANY_ATTEMPTS", 840, locale="tr") == "Çok fazla deneme! 14 dakika bekleyin."
    assert build_message("PROGRESSIVE_DELAY", 3, locale="TR") == "Çok hızlı deneme! 3 saniye bekleyin."


def test_account_lock_hours_are_quoted() -> None:
    message = build_message("ACCOUNT_LOCKED", 3_000, account_lock_hours=4)

    assert message.startswith("Your account has been locked for 4 hours.")
    assert "50 minutes remaining" in message


def test_unknown_locale_falls_back_to_english() -> None:
    assert build_message("PROGRESSIVE_DELAY", 1, locale="de").startswith("Too many attempts")


def test_unknown_error_raises() -> None:
    with pytest.raises(KeyError):
        build_message("SOMETHING_ELSE", 1)
