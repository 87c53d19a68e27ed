"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from login_limiter.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def capture() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_credentials(capture):
    logger, stream = capture

    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "password": "hunter2",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "hunter2" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_emails_are_masked(capture):
    logger, stream = capture

    logger.info("rate_limit.reset", extra={"email": "jane.doe@example.com", "identity": "bob@corp.io"})

    record = json.loads(stream.getvalue())
    assert record["email"] == "j***@example.com"
    assert record["identity"] == "b***@corp.io"
    assert "jane.doe" not in stream.getvalue()


def test_safe_fields_pass_through(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.check",
        extra={
            "identity_hash": "abc123",
            "attempts": 3,
            "time_remaining_s": 2,
        },
    )

    record = json.loads(stream.getvalue())
    assert record["message"] == "rate_limit.check"
    assert record["service"] == "login-limiter"
    assert record["attempts"] == 3
    assert record["identity_hash"] == "abc123"
    assert "[REDACTED]" not in stream.getvalue()


def test_nested_dicts_are_redacted(capture):
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={
            "headers": {"x-api-key": "secret-key", "user-agent": "pytest"},
            "payload": {"email": "jane@example.com"},
        },
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "jane@example.com" not in output
    assert "pytest" in output


def test_request_id_attached_from_context(capture):
    logger, stream = capture

    set_request_id("req-123")
    try:
        logger.info("with_request_id")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_exception_info_is_formatted(capture):
    logger, stream = capture

    try:
        raise RuntimeError("store exploded")
    except RuntimeError:
        logger.error("rate_limit.operation_failed", exc_info=True)

    record = json.loads(stream.getvalue())
    assert "RuntimeError: store exploded" in record["exception"]
