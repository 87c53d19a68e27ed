"""Shared counter store interfaces.

The rate limit engine depends on this abstraction (not the concrete
implementation) so the backing store can be swapped (Redis in production,
in-memory in tests and local development) without touching policy code.

Stores perform no policy-level fallback: every operation may raise
StoreUnavailableError (connection lost, timeout) or another exception for a
transient failure, and the caller decides what to do with it.
"""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from login_limiter.core.errors import StoreUnavailableError

__all__ = [
    "AbstractAttemptStore",
    "AttemptEntry",
    "BlockRecord",
    "BlockType",
    "StoreUnavailableError",
    "new_attempt_member",
]


class BlockType(str, Enum):
    """Persisted block kinds. Progressive delay is never persisted."""

    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"


@dataclass(frozen=True)
class AttemptEntry:
    """A single failed-attempt record.

    Attributes:
        member: Unique entry name within the identity's attempt set.
        timestamp_ms: Attempt time in epoch milliseconds (the sort score).
    """

    member: str
    timestamp_ms: int


@dataclass(frozen=True)
class BlockRecord:
    """Active block for an identity.

    Attributes:
        type: Block kind.
        expiry: Absolute expiry in epoch milliseconds.
        attempts: Attempt count that triggered the block.
    """

    type: BlockType
    expiry: int
    attempts: int

    def is_active(self, now_ms: int) -> bool:
        return self.expiry > now_ms

    def to_json(self) -> str:
        payload = asdict(self)
        payload["type"] = self.type.value
        return json.dumps(payload)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "BlockRecord":
        """Build a record from a decoded payload, tolerating missing counts."""
        raw_type = data.get("type")
        block_type = (
            BlockType.ACCOUNT_LOCKED
            if raw_type == BlockType.ACCOUNT_LOCKED.value
            else BlockType.TOO_MANY_ATTEMPTS
        )
        return cls(
            type=block_type,
            expiry=int(data["expiry"]),
            attempts=int(data.get("attempts") or 0),
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "BlockRecord":
        return cls.from_mapping(json.loads(raw))


def new_attempt_member(timestamp_ms: int) -> str:
    """Build a unique entry name so concurrent inserts never collide."""
    return f"attempt_{timestamp_ms}_{uuid.uuid4().hex}"


class AbstractAttemptStore(ABC):
    """Identity-scoped, timestamp-ordered storage with range queries.

    Keys passed to a store are already-normalized identities; namespacing
    (attempt set vs. block record vs. block history) is the store's concern.
    """

    @abstractmethod
    async def add_attempt(self, key: str, timestamp_ms: int, *, ttl_seconds: int | None = None) -> str:
        """Insert a uniquely-named attempt scored by ``timestamp_ms``.

        Args:
            key: Normalized identity.
            timestamp_ms: Attempt time in epoch milliseconds.
            ttl_seconds: Optional housekeeping TTL refreshed on the whole set.

        Returns:
            The member name of the inserted entry.
        """
        raise NotImplementedError

    @abstractmethod
    async def count_attempts_since(
        self,
        key: str,
        cutoff_ms: int,
        *,
        until_ms: int | None = None,
    ) -> tuple[int, list[AttemptEntry]]:
        """Return count and entries scored in ``[cutoff_ms, until_ms]``, ascending.

        ``until_ms=None`` leaves the range open-ended.
        """
        raise NotImplementedError

    @abstractmethod
    async def prune_attempts_before(self, key: str, cutoff_ms: int) -> int:
        """Remove entries with score < ``cutoff_ms``; return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    async def get_block(self, key: str) -> BlockRecord | None:
        """Return the stored block record, expired or not, or None."""
        raise NotImplementedError

    @abstractmethod
    async def set_block(
        self,
        key: str,
        block: BlockRecord,
        ttl_seconds: int,
        *,
        only_if_absent: bool = False,
    ) -> bool:
        """Store the block record with a TTL.

        Replaces any previous record unless ``only_if_absent`` is set, in which
        case a live record is left untouched.

        Returns:
            True when the record was written.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_block(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def add_block_event(self, key: str, timestamp_ms: int, *, ttl_seconds: int) -> None:
        """Record that a temporary block was issued (account-lock escalation)."""
        raise NotImplementedError

    @abstractmethod
    async def count_block_events_since(self, key: str, cutoff_ms: int) -> int:
        raise NotImplementedError

    @abstractmethod
    async def clear_all(self, key: str) -> None:
        """Delete attempts, block record and block history. Idempotent."""
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True when the store answers; backends override as needed."""
        return True

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None
