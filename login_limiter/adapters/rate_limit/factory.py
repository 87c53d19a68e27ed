"""Factory pattern for creating attempt store and connection instances."""

from login_limiter.adapters.rate_limit.base import AbstractAttemptStore
from login_limiter.adapters.rate_limit.connection import StoreConnection
from login_limiter.adapters.rate_limit.in_memory import InMemoryAttemptStore
from login_limiter.adapters.rate_limit.redis_store import RedisAttemptStore, create_redis_client
from login_limiter.core.config import StoreSettings, settings
from login_limiter.core.errors import ValidationAppError


def create_attempt_store(store_settings: StoreSettings | None = None) -> AbstractAttemptStore:
    """Instantiate the attempt store for the configured backend.

    Args:
        store_settings: Store settings; defaults to the global settings.

    Returns:
        AbstractAttemptStore: Redis-backed store, or the in-memory store
            for local development.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisAttemptStore(create_redis_client(cfg))

    if backend == "memory":
        return InMemoryAttemptStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: redis, memory",
    )


def create_store_connection(store_settings: StoreSettings | None = None) -> StoreConnection:
    """Build the store and wrap it in a StoreConnection with the configured backoff."""
    cfg = store_settings or settings.store
    return StoreConnection(
        create_attempt_store(cfg),
        max_retries=cfg.max_retries,
        backoff_base_seconds=cfg.backoff_base_seconds,
        backoff_cap_seconds=cfg.backoff_cap_seconds,
        reconnect_interval_seconds=cfg.reconnect_interval_seconds,
    )
