"""In-memory attempt store.

Notes:
- Per-process only: running multiple workers gives each worker its own
  counters, so this backend is for local development and tests.
- Coroutine-safe: no operation awaits while touching shared state, so each
  one is atomic with respect to other coroutines on the loop.
- TTLs are enforced lazily on read against the injected clock.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Callable

from login_limiter.adapters.rate_limit.base import (
    AbstractAttemptStore,
    AttemptEntry,
    BlockRecord,
    new_attempt_member,
)
from login_limiter.utils.clock import epoch_ms


@dataclass
class _SortedSet:
    """Score-ordered entries with an optional expiry for the whole set."""

    entries: list[tuple[int, str]] = field(default_factory=list)
    expires_at_ms: int | None = None

    def index_of(self, cutoff_ms: int) -> int:
        # Members are never empty, so (cutoff, "") sorts before any entry at cutoff
        return bisect.bisect_left(self.entries, (cutoff_ms, ""))


@dataclass
class _BlockItem:
    record: BlockRecord
    expires_at_ms: int


class InMemoryAttemptStore(AbstractAttemptStore):
    """Attempt store backed by process-local dictionaries.

    Mirrors the Redis layout closely enough that the engine cannot tell the
    difference: a score-ordered set per identity, a block record with a TTL,
    and a separate block-history set.
    """

    def __init__(self, *, clock: Callable[[], int] = epoch_ms) -> None:
        """Initialize the store.

        Args:
            clock: Time source returning epoch milliseconds; only used for
                TTL expiry, never for attempt scores.
        """
        self._clock = clock
        self._attempts: dict[str, _SortedSet] = {}
        self._block_events: dict[str, _SortedSet] = {}
        self._blocks: dict[str, _BlockItem] = {}

    def _live_set(self, sets: dict[str, _SortedSet], key: str) -> _SortedSet | None:
        sorted_set = sets.get(key)
        if sorted_set is None:
            return None
        if sorted_set.expires_at_ms is not None and sorted_set.expires_at_ms <= self._clock():
            del sets[key]
            return None
        return sorted_set

    def _insert(
        self,
        sets: dict[str, _SortedSet],
        key: str,
        score: int,
        member: str,
        ttl_seconds: int | None,
    ) -> None:
        sorted_set = self._live_set(sets, key)
        if sorted_set is None:
            sorted_set = _SortedSet()
            sets[key] = sorted_set
        bisect.insort(sorted_set.entries, (score, member))
        if ttl_seconds is not None:
            sorted_set.expires_at_ms = self._clock() + ttl_seconds * 1000

    async def add_attempt(self, key: str, timestamp_ms: int, *, ttl_seconds: int | None = None) -> str:
        member = new_attempt_member(timestamp_ms)
        self._insert(self._attempts, key, timestamp_ms, member, ttl_seconds)
        return member

    async def count_attempts_since(
        self,
        key: str,
        cutoff_ms: int,
        *,
        until_ms: int | None = None,
    ) -> tuple[int, list[AttemptEntry]]:
        sorted_set = self._live_set(self._attempts, key)
        if sorted_set is None:
            return 0, []
        start = sorted_set.index_of(cutoff_ms)
        end = len(sorted_set.entries) if until_ms is None else sorted_set.index_of(until_ms + 1)
        entries = [
            AttemptEntry(member=member, timestamp_ms=score)
            for score, member in sorted_set.entries[start:end]
        ]
        return len(entries), entries

    async def prune_attempts_before(self, key: str, cutoff_ms: int) -> int:
        sorted_set = self._live_set(self._attempts, key)
        if sorted_set is None:
            return 0
        removed = sorted_set.index_of(cutoff_ms)
        del sorted_set.entries[:removed]
        if not sorted_set.entries:
            del self._attempts[key]
        return removed

    def _live_block(self, key: str) -> BlockRecord | None:
        item = self._blocks.get(key)
        if item is None:
            return None
        if item.expires_at_ms <= self._clock():
            del self._blocks[key]
            return None
        return item.record

    async def get_block(self, key: str) -> BlockRecord | None:
        return self._live_block(key)

    async def set_block(
        self,
        key: str,
        block: BlockRecord,
        ttl_seconds: int,
        *,
        only_if_absent: bool = False,
    ) -> bool:
        if only_if_absent and self._live_block(key) is not None:
            return False
        self._blocks[key] = _BlockItem(
            record=block,
            expires_at_ms=self._clock() + ttl_seconds * 1000,
        )
        return True

    async def delete_block(self, key: str) -> None:
        self._blocks.pop(key, None)

    async def add_block_event(self, key: str, timestamp_ms: int, *, ttl_seconds: int) -> None:
        self._insert(
            self._block_events,
            key,
            timestamp_ms,
            new_attempt_member(timestamp_ms),
            ttl_seconds,
        )

    async def count_block_events_since(self, key: str, cutoff_ms: int) -> int:
        sorted_set = self._live_set(self._block_events, key)
        if sorted_set is None:
            return 0
        return len(sorted_set.entries) - sorted_set.index_of(cutoff_ms)

    async def clear_all(self, key: str) -> None:
        self._attempts.pop(key, None)
        self._blocks.pop(key, None)
        self._block_events.pop(key, None)
