"""Login rate limit decision engine.

Policy, evaluated on every check against the shared store:

1. An active block record rejects the attempt outright (single key read).
   A block whose expiry has passed is deleted and ignored, whether or not
   the store's TTL already removed it.
2. Failed attempts inside the sliding window ``[now - window, now]`` are
   counted.
3. With 2+ recent failures, an attempt arriving less than the progressive
   delay after the latest failure is delayed.
4. Reaching the per-window maximum writes a temporary block (or, when
   escalation is enabled and enough blocks were issued recently, an account
   lock) and rejects the attempt.

Recording a failure is a pure write; blocks are only ever created lazily by
the next evaluation. The engine keeps no in-process state, so any number of
processes sharing one store reach the same decisions.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum

from login_limiter.adapters.rate_limit.base import AbstractAttemptStore, BlockRecord, BlockType
from login_limiter.core.config import RateLimitSettings

logger = logging.getLogger(__name__)

# Failures inside the window before progressive delay applies
PROGRESSIVE_DELAY_THRESHOLD = 2


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable rate limit configuration."""

    max_attempts_per_window: int = 5
    window_minutes: int = 5
    progressive_delay_seconds: int = 3
    temp_block_minutes: int = 15
    account_lock_hours: int = 2
    account_lock_after_blocks: int = 0

    def __post_init__(self) -> None:
        for name in (
            "max_attempts_per_window",
            "window_minutes",
            "progressive_delay_seconds",
            "temp_block_minutes",
            "account_lock_hours",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.account_lock_after_blocks < 0:
            raise ValueError("account_lock_after_blocks must be >= 0")

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> "RateLimitPolicy":
        return cls(
            max_attempts_per_window=rate_limit_settings.max_attempts_per_window,
            window_minutes=rate_limit_settings.window_minutes,
            progressive_delay_seconds=rate_limit_settings.progressive_delay_seconds,
            temp_block_minutes=rate_limit_settings.temp_block_minutes,
            account_lock_hours=rate_limit_settings.account_lock_hours,
            account_lock_after_blocks=rate_limit_settings.account_lock_after_blocks,
        )

    @property
    def window_ms(self) -> int:
        return self.window_minutes * 60_000

    @property
    def attempts_ttl_seconds(self) -> int:
        # One second past the window so an entry exactly at the window start is still readable
        return self.window_minutes * 60 + 1

    @property
    def progressive_delay_ms(self) -> int:
        return self.progressive_delay_seconds * 1000

    @property
    def temp_block_seconds(self) -> int:
        return self.temp_block_minutes * 60

    @property
    def account_lock_seconds(self) -> int:
        return self.account_lock_hours * 3600

    @property
    def escalation_enabled(self) -> bool:
        return self.account_lock_after_blocks > 0


class Outcome(str, Enum):
    ALLOWED = "ALLOWED"
    DELAYED = "DELAYED"
    BLOCKED = "BLOCKED"


class DecisionError(str, Enum):
    PROGRESSIVE_DELAY = "PROGRESSIVE_DELAY"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"


@dataclass(frozen=True)
class Decision:
    """Result of evaluating one login attempt.

    Attributes:
        outcome: ALLOWED, DELAYED or BLOCKED.
        attempts: Failed attempts counted for the identity.
        time_remaining: Seconds until a retry can succeed (0 when allowed).
        error: Reason for a denial; None when allowed.
    """

    outcome: Outcome
    attempts: int
    time_remaining: int = 0
    error: DecisionError | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOWED

    @classmethod
    def allow(cls, attempts: int) -> "Decision":
        return cls(outcome=Outcome.ALLOWED, attempts=attempts)

    @classmethod
    def delay(cls, attempts: int, time_remaining: int) -> "Decision":
        return cls(
            outcome=Outcome.DELAYED,
            attempts=attempts,
            time_remaining=time_remaining,
            error=DecisionError.PROGRESSIVE_DELAY,
        )

    @classmethod
    def block(cls, block_type: BlockType, attempts: int, time_remaining: int) -> "Decision":
        return cls(
            outcome=Outcome.BLOCKED,
            attempts=attempts,
            time_remaining=time_remaining,
            error=DecisionError(block_type.value),
        )


@dataclass(frozen=True)
class RateLimitStatus:
    """Descriptive rate limit state for informational UIs."""

    attempts: int
    blocked: bool
    time_remaining: int
    next_reset_time: int


def _ceil_seconds(milliseconds: int) -> int:
    return math.ceil(milliseconds / 1000)


class RateLimitEngine:
    """Sliding-window, progressive-delay, escalating-block login policy."""

    def __init__(self, store: AbstractAttemptStore, policy: RateLimitPolicy | None = None) -> None:
        self._store = store
        self._policy = policy or RateLimitPolicy()

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    async def _active_block(self, identity: str, now_ms: int) -> BlockRecord | None:
        """Return the block record if still active; delete it if expired."""
        block = await self._store.get_block(identity)
        if block is None:
            return None
        if block.is_active(now_ms):
            return block
        await self._store.delete_block(identity)
        logger.debug("rate_limit.block_expired", extra={"block_type": block.type.value})
        return None

    async def _escalate(self, identity: str, block: BlockRecord, now_ms: int) -> BlockRecord:
        """Turn ``block`` into an account lock once enough blocks piled up."""
        lock_seconds = self._policy.account_lock_seconds
        await self._store.add_block_event(identity, now_ms, ttl_seconds=lock_seconds)
        recent_blocks = await self._store.count_block_events_since(
            identity, now_ms - lock_seconds * 1000
        )
        if recent_blocks < self._policy.account_lock_after_blocks:
            return block

        locked = BlockRecord(
            type=BlockType.ACCOUNT_LOCKED,
            expiry=now_ms + lock_seconds * 1000,
            attempts=block.attempts,
        )
        await self._store.set_block(identity, locked, lock_seconds)
        return locked

    async def _issue_block(self, identity: str, attempts: int, now_ms: int) -> BlockRecord:
        ttl_seconds = self._policy.temp_block_seconds
        block = BlockRecord(
            type=BlockType.TOO_MANY_ATTEMPTS,
            expiry=now_ms + ttl_seconds * 1000,
            attempts=attempts,
        )

        # One block episode per identity: only the evaluation whose write lands
        # opens it and counts towards escalation, the others report the stored block.
        created = await self._store.set_block(identity, block, ttl_seconds, only_if_absent=True)
        if not created:
            stored = await self._active_block(identity, now_ms)
            return stored or block

        if self._policy.escalation_enabled:
            block = await self._escalate(identity, block, now_ms)

        logger.info(
            "rate_limit.block_created",
            extra={
                "block_type": block.type.value,
                "attempts": attempts,
                "ttl_s": _ceil_seconds(block.expiry - now_ms),
            },
        )
        return block

    async def evaluate(self, identity: str, now_ms: int) -> Decision:
        """Decide whether a login attempt for ``identity`` may proceed now.

        Args:
            identity: Normalized identity.
            now_ms: Current time in epoch milliseconds.

        Returns:
            Decision: ALLOWED, DELAYED (progressive delay) or BLOCKED.
        """
        block = await self._active_block(identity, now_ms)
        if block is not None:
            return Decision.block(
                block.type,
                attempts=block.attempts,
                time_remaining=_ceil_seconds(block.expiry - now_ms),
            )

        window_start = now_ms - self._policy.window_ms
        attempts, entries = await self._store.count_attempts_since(
            identity, window_start, until_ms=now_ms
        )

        if attempts >= PROGRESSIVE_DELAY_THRESHOLD and entries:
            last_attempt_ms = max(entry.timestamp_ms for entry in entries)
            elapsed = now_ms - last_attempt_ms
            required = self._policy.progressive_delay_ms
            if elapsed < required:
                return Decision.delay(attempts, _ceil_seconds(required - elapsed))

        if attempts >= self._policy.max_attempts_per_window:
            block = await self._issue_block(identity, attempts, now_ms)
            return Decision.block(
                block.type,
                attempts=attempts,
                time_remaining=_ceil_seconds(block.expiry - now_ms),
            )

        return Decision.allow(attempts)

    async def record_failed_attempt(self, identity: str, now_ms: int) -> None:
        """Append a failed attempt and prune entries that left the window."""
        await self._store.add_attempt(
            identity,
            now_ms,
            ttl_seconds=self._policy.attempts_ttl_seconds,
        )
        await self._store.prune_attempts_before(identity, now_ms - self._policy.window_ms)

    async def reset(self, identity: str) -> None:
        """Drop all attempts and blocks for ``identity``. Safe to repeat."""
        await self._store.clear_all(identity)

    async def status(self, identity: str, now_ms: int) -> RateLimitStatus:
        """Describe the current state without issuing blocks.

        ``next_reset_time`` is the block expiry while blocked, otherwise the
        moment the oldest counted attempt leaves the window (``now_ms`` when
        there are none).
        """
        block = await self._active_block(identity, now_ms)
        if block is not None:
            return RateLimitStatus(
                attempts=block.attempts,
                blocked=True,
                time_remaining=max(0, _ceil_seconds(block.expiry - now_ms)),
                next_reset_time=block.expiry,
            )

        window_start = now_ms - self._policy.window_ms
        attempts, entries = await self._store.count_attempts_since(
            identity, window_start, until_ms=now_ms
        )
        next_reset_time = now_ms
        if entries:
            next_reset_time = min(entry.timestamp_ms for entry in entries) + self._policy.window_ms

        return RateLimitStatus(
            attempts=attempts,
            blocked=False,
            time_remaining=0,
            next_reset_time=next_reset_time,
        )
