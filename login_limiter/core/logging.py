"""Structured logging for the login limiter.

Every log line is one JSON object carrying the event name as ``message``,
the correlation id of the HTTP request that produced it, and whatever
structured ``extra`` fields the caller attached. Two rules are applied to
those fields before anything is written:

- credentials (service API keys, Redis password, auth headers) are replaced
  with ``[REDACTED]``;
- email identities are masked to ``j***@example.com``, so operators can tell
  accounts apart by domain without the log becoming a list of user emails.
  Call sites also attach ``identity_hash`` for exact correlation.

Passwords never reach this service; redaction of ``password`` is a backstop.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from login_limiter.core.config import LogSettings, settings
from login_limiter.utils.identity import mask_identity

SERVICE_NAME = "login-limiter"
REDACTED = "[REDACTED]"
DEFAULT_LOG_FILE = "logs/login-limiter.log"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "api_keys",
        "app_api_keys",
        "x-api-key",
        "authorization",
        "cookie",
        "set-cookie",
        "token",
        "access_token",
        "refresh_token",
        "secret",
        "password",
        "redis_password",
        "redis_url",
    }
)

# Values under these keys are emails: masked, not dropped
MASKED_KEYS_DEFAULT: frozenset[str] = frozenset({"email", "identity"})

# Attributes every LogRecord has; anything else on a record came from ``extra``
_RESERVED_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def set_request_id(request_id: str | None) -> None:
    """Bind a correlation id to the current context (one HTTP request)."""
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


class _Redactor:
    """Applies the credential and email rules to structured log fields."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        masked_keys: Iterable[str] | None = None,
    ) -> None:
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}
        self.masked_keys = {k.lower() for k in (masked_keys or MASKED_KEYS_DEFAULT)}

    def field(self, key: str, value: Any) -> Any:
        lowered = key.lower()
        if lowered in self.sensitive_keys:
            return REDACTED
        if lowered in self.masked_keys and isinstance(value, str):
            return mask_identity(value)
        if isinstance(value, Mapping):
            return {k: self.field(str(k), v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self.field("", v) for v in value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields with the rules applied."""
        return {
            key: self.field(key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id unless one was passed explicitly."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Rewrite ``extra`` fields in place so every handler sees safe values."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        masked_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self._redactor = _Redactor(sensitive_keys, masked_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self._redactor.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: envelope fields first, then extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        masked_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self._redactor = _Redactor(sensitive_keys, masked_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(self._redactor.extras(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _file_handler(cfg: LogSettings) -> logging.Handler:
    path = Path(cfg.file_path or DEFAULT_LOG_FILE)
    path.parent.mkdir(parents=True, exist_ok=True)
    if cfg.max_bytes:
        return RotatingFileHandler(
            path,
            maxBytes=cfg.max_bytes,
            backupCount=cfg.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def _formatter(cfg: LogSettings) -> logging.Formatter:
    if cfg.format.lower() == "plain":
        return logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    return JsonFormatter()


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install the single root handler used by the whole process.

    Safe to call more than once (each app built by ``create_app()`` calls
    it); the previous root handlers are replaced, not stacked.

    Args:
        log_settings: Logging settings; the global settings when omitted.
    """
    cfg = log_settings or settings.log

    handler = _file_handler(cfg) if cfg.output.lower() == "file" else logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(_formatter(cfg))

    level = logging.DEBUG if settings.app.debug else getattr(logging, cfg.level.upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # uvicorn installs its own handlers
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
