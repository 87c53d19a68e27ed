"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import quote

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from login_limiter.utils.messages import supported_locales


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit policy settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "StoreSettings":
    """Build shared store settings from environment."""

    return StoreSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    See _build_rate_limit_settings() for rationale about the type ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


class RateLimitSettings(BaseSettings):
    """Login rate limit policy.

    Defaults are the production policy. They are read once at startup and
    frozen into a RateLimitPolicy; nothing mutates them afterwards.
    """

    max_attempts_per_window: int = Field(
        5,
        description="Failed attempts allowed inside the sliding window before a temporary block",
        ge=1,
    )
    window_minutes: int = Field(
        5,
        description="Sliding window size in minutes",
        ge=1,
    )
    progressive_delay_seconds: int = Field(
        3,
        description="Cooldown between attempts once an identity has 2+ recent failures",
        ge=1,
    )
    temp_block_minutes: int = Field(
        15,
        description="Duration of the temporary block in minutes",
        ge=1,
    )
    account_lock_hours: int = Field(
        2,
        description="Duration of an account lock in hours (escalation tier)",
        ge=1,
    )
    account_lock_after_blocks: int = Field(
        0,
        description=(
            "Temporary blocks within account_lock_hours that escalate to an "
            "account lock (0 disables escalation)"
        ),
        ge=0,
    )
    message_locale: str = Field(
        "en",
        description="Locale for user-facing messages (en, tr)",
    )

    @field_validator("message_locale")
    @classmethod
    def _known_locale(cls, value: str) -> str:
        locale = value.strip().lower()
        if locale not in supported_locales():
            raise ValueError(
                f"unsupported locale {value!r}; expected one of {sorted(supported_locales())}"
            )
        return locale

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Shared counter store (Redis) connection configuration."""

    backend: str = Field(
        "redis",
        description="Store backend: 'redis' (shared) or 'memory' (single process, dev only)",
    )
    url: str | None = Field(
        None,
        description="Full Redis URL; overrides host/port/db/password when set",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    db: int = Field(0, description="Redis database index")
    password: str | None = Field(None, description="Redis password")
    socket_timeout_seconds: float = Field(
        2.0,
        description="Per-operation timeout; a timeout is treated as store down",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        2.0,
        description="Connection establishment timeout",
        gt=0,
    )
    max_retries: int = Field(
        10,
        description="Reconnect attempts before the store is marked disconnected",
        ge=0,
    )
    backoff_base_seconds: float = Field(
        0.1,
        description="Base delay of the exponential reconnect backoff",
        gt=0,
    )
    backoff_cap_seconds: float = Field(
        3.0,
        description="Upper bound of a single reconnect backoff delay",
        gt=0,
    )
    reconnect_interval_seconds: float = Field(
        30.0,
        description="Minimum time between reconnect probes while disconnected",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )

    def resolved_url(self) -> str:
        """Return the connection URL, building it from parts if needed."""
        if self.url:
            return self.url
        auth = f":{quote(self.password, safe='')}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log output: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        False,
        description="Whether the rate-limit routes require a service API key",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid service API keys",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
