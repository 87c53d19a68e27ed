"""Tests for store and connection construction from settings."""

import pytest

from login_limiter.adapters.rate_limit.connection import ConnectionStatus
from login_limiter.adapters.rate_limit.factory import create_attempt_store, create_store_connection
from login_limiter.adapters.rate_limit.in_memory import InMemoryAttemptStore
from login_limiter.adapters.rate_limit.redis_store import RedisAttemptStore
from login_limiter.core.config import StoreSettings
from login_limiter.core.errors import ValidationAppError


def test_memory_backend() -> None:
    store = create_attempt_store(StoreSettings(backend="memory"))

    assert isinstance(store, InMemoryAttemptStore)


@pytest.mark.asyncio
async def test_redis_backend_builds_client_without_connecting() -> None:
    store = create_attempt_store(StoreSettings(backend="Redis", url="redis://localhost:6399/0"))

    assert isinstance(store, RedisAttemptStore)
    await store.close()


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        create_attempt_store(StoreSettings(backend="memcached"))

    assert exc_info.value.code == "store_unknown_backend"


@pytest.mark.asyncio
async def test_connection_wraps_store() -> None:
    connection = create_store_connection(StoreSettings(backend="memory"))

    assert connection.status is ConnectionStatus.CONNECTING
    assert await connection.connect() is ConnectionStatus.CONNECTED
    await connection.close()
