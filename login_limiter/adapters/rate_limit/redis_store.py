"""Redis-backed attempt store (production).

Layout per normalized identity:
- ``rate_limit:<identity>``: sorted set of attempts scored by epoch millis
- ``rate_limit_block:<identity>``: JSON block record written with ``SET ... EX``
- ``rate_limit_blocks:<identity>``: sorted set of issued temporary blocks

Every Redis failure is translated into the application error taxonomy:
connection errors and timeouts become StoreUnavailableError, anything else
raised by the client becomes StoreAppError.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis import exceptions as redis_exceptions
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff

from login_limiter.adapters.rate_limit.base import (
    AbstractAttemptStore,
    AttemptEntry,
    BlockRecord,
    new_attempt_member,
)
from login_limiter.core.config import StoreSettings
from login_limiter.core.errors import StoreAppError, StoreUnavailableError

logger = logging.getLogger(__name__)


DEFAULT_KEY_PREFIX = "rate_limit"


@asynccontextmanager
async def _translate_errors(operation: str) -> AsyncIterator[None]:
    """Map redis-py exceptions onto StoreUnavailableError / StoreAppError."""
    try:
        yield
    except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError, OSError) as exc:
        raise StoreUnavailableError(
            code="store_unavailable",
            message=f"Redis unavailable during {operation}",
            details={"operation": operation},
        ) from exc
    except redis_exceptions.RedisError as exc:
        raise StoreAppError(
            code="store_operation_failed",
            message=f"Redis error during {operation}: {type(exc).__name__}",
            details={"operation": operation},
        ) from exc


def create_redis_client(store_settings: StoreSettings) -> Redis:
    """Build the asyncio Redis client from settings.

    Per-command retries are disabled: reconnect policy (backoff, ceiling)
    lives in StoreConnection, and a single slow command must fail fast so
    the login path can fail open.
    """

    return Redis.from_url(
        store_settings.resolved_url(),
        decode_responses=True,
        socket_timeout=store_settings.socket_timeout_seconds,
        socket_connect_timeout=store_settings.connect_timeout_seconds,
        retry=Retry(NoBackoff(), 0),
    )


class RedisAttemptStore(AbstractAttemptStore):
    """Attempt store on a shared Redis instance.

    Each command against a single key is atomic in Redis; multi-command writes
    go through a MULTI/EXEC pipeline so an insert and its housekeeping TTL
    land together.
    """

    def __init__(self, client: Redis, *, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self._client = client
        self._prefix = key_prefix

    def attempts_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def block_key(self, key: str) -> str:
        return f"{self._prefix}_block:{key}"

    def block_events_key(self, key: str) -> str:
        return f"{self._prefix}_blocks:{key}"

    async def add_attempt(self, key: str, timestamp_ms: int, *, ttl_seconds: int | None = None) -> str:
        member = new_attempt_member(timestamp_ms)
        redis_key = self.attempts_key(key)
        async with _translate_errors("add_attempt"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zadd(redis_key, {member: timestamp_ms})
                if ttl_seconds is not None:
                    pipe.expire(redis_key, ttl_seconds)
                await pipe.execute()
        return member

    async def count_attempts_since(
        self,
        key: str,
        cutoff_ms: int,
        *,
        until_ms: int | None = None,
    ) -> tuple[int, list[AttemptEntry]]:
        upper = "+inf" if until_ms is None else until_ms
        async with _translate_errors("count_attempts_since"):
            rows = await self._client.zrangebyscore(
                self.attempts_key(key), cutoff_ms, upper, withscores=True
            )
        entries = [AttemptEntry(member=member, timestamp_ms=int(score)) for member, score in rows]
        return len(entries), entries

    async def prune_attempts_before(self, key: str, cutoff_ms: int) -> int:
        # "(" makes the upper bound exclusive: entries at exactly cutoff stay
        async with _translate_errors("prune_attempts_before"):
            removed = await self._client.zremrangebyscore(
                self.attempts_key(key), "-inf", f"({cutoff_ms}"
            )
        return int(removed or 0)

    async def get_block(self, key: str) -> BlockRecord | None:
        async with _translate_errors("get_block"):
            raw = await self._client.get(self.block_key(key))
        if raw is None:
            return None
        return BlockRecord.from_json(raw)

    async def set_block(
        self,
        key: str,
        block: BlockRecord,
        ttl_seconds: int,
        *,
        only_if_absent: bool = False,
    ) -> bool:
        async with _translate_errors("set_block"):
            if only_if_absent:
                written = await self._client.set(
                    self.block_key(key), block.to_json(), ex=ttl_seconds, nx=True
                )
                return bool(written)
            await self._client.set(self.block_key(key), block.to_json(), ex=ttl_seconds)
        return True

    async def delete_block(self, key: str) -> None:
        async with _translate_errors("delete_block"):
            await self._client.delete(self.block_key(key))

    async def add_block_event(self, key: str, timestamp_ms: int, *, ttl_seconds: int) -> None:
        redis_key = self.block_events_key(key)
        async with _translate_errors("add_block_event"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zadd(redis_key, {new_attempt_member(timestamp_ms): timestamp_ms})
                pipe.expire(redis_key, ttl_seconds)
                await pipe.execute()

    async def count_block_events_since(self, key: str, cutoff_ms: int) -> int:
        async with _translate_errors("count_block_events_since"):
            count = await self._client.zcount(self.block_events_key(key), cutoff_ms, "+inf")
        return int(count or 0)

    async def clear_all(self, key: str) -> None:
        async with _translate_errors("clear_all"):
            await self._client.delete(
                self.attempts_key(key),
                self.block_key(key),
                self.block_events_key(key),
            )

    async def ping(self) -> bool:
        async with _translate_errors("ping"):
            return bool(await self._client.ping())

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except redis_exceptions.RedisError as exc:
            logger.warning(
                "store.close_failed",
                extra={"error_type": type(exc).__name__},
            )
