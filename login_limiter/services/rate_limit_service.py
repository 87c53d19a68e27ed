"""Login rate limit service facade.

This is the contract the HTTP layer (and any in-process login flow) calls:

- check_rate_limit() before verifying credentials
- record_failed_attempt() after a failed verification
- reset_rate_limit() after a successful login
- get_rate_limit_status() for informational UIs

The facade owns the store connection and guarantees that nothing below it
reaches the caller as an exception. When the shared store is unavailable,
or an operation fails mid-flight, every call fails open: checks allow the
attempt, writes become no-ops and status reads return a zeroed state.
An outage of the store must never lock users out of login. Only invalid
input (missing or malformed email) raises, as ValidationAppError.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from login_limiter.adapters.rate_limit.connection import ConnectionStatus, StoreConnection
from login_limiter.adapters.rate_limit.factory import create_store_connection
from login_limiter.core.config import Settings, settings
from login_limiter.core.errors import StoreUnavailableError
from login_limiter.schemas.rate_limit import RateLimitCheckResult, RateLimitStatusResult
from login_limiter.services.rate_limit_engine import (
    Decision,
    Outcome,
    RateLimitEngine,
    RateLimitPolicy,
)
from login_limiter.utils.clock import epoch_ms
from login_limiter.utils.identity import hash_identity, mask_identity, normalize_identity
from login_limiter.utils.messages import DEFAULT_LOCALE, build_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _allowed_fallback() -> RateLimitCheckResult:
    return RateLimitCheckResult(allowed=True, time_remaining=0, attempts=0)


def _status_fallback() -> RateLimitStatusResult:
    return RateLimitStatusResult(attempts=0, blocked=False, time_remaining=0, next_reset_time=0)


class RateLimitService:
    """Fail-open facade over RateLimitEngine and the shared store connection."""

    def __init__(
        self,
        connection: StoreConnection,
        policy: RateLimitPolicy | None = None,
        *,
        locale: str = DEFAULT_LOCALE,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        """Initialize the service.

        Args:
            connection: Store connection; the service owns it from here on
                and closes it in close().
            policy: Immutable policy; defaults to the production policy.
            locale: Locale for denial messages.
            clock: Time source returning epoch milliseconds.
        """
        self._connection = connection
        self._engine = RateLimitEngine(connection.store, policy)
        self._locale = locale
        self._clock = clock

    @classmethod
    def from_settings(cls, app_settings: Settings | None = None) -> "RateLimitService":
        """Build the service, its store and connection from configuration."""
        cfg = app_settings or settings
        return cls(
            create_store_connection(cfg.store),
            RateLimitPolicy.from_settings(cfg.rate_limit),
            locale=cfg.rate_limit.message_locale,
        )

    @property
    def policy(self) -> RateLimitPolicy:
        return self._engine.policy

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection.status

    async def start(self) -> ConnectionStatus:
        """Open the store connection; never raises if the store is down."""
        status = await self._connection.connect()
        if status is not ConnectionStatus.CONNECTED:
            logger.warning(
                "rate_limit.store_unavailable",
                extra={"operation": "start", "store_status": status.value},
            )
        return status

    async def close(self) -> None:
        await self._connection.close()

    async def _guarded(
        self,
        operation: str,
        identity: str,
        call: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
    ) -> T:
        """Run ``call`` against the store, failing open on any store/engine error."""
        log_context = {
            "operation": operation,
            "identity": mask_identity(identity),
            "identity_hash": hash_identity(identity),
        }

        generation = await self._connection.acquire()
        if generation is None:
            logger.warning(
                "rate_limit.store_unavailable",
                extra={**log_context, "store_status": self._connection.status.value},
            )
            return fallback()

        try:
            return await call()
        except StoreUnavailableError as exc:
            self._connection.report_unavailable(generation)
            logger.warning(
                "rate_limit.store_unavailable",
                extra={
                    **log_context,
                    "store_status": self._connection.status.value,
                    "error_type": type(exc.__cause__ or exc).__name__,
                },
            )
            return fallback()
        except Exception as exc:
            logger.error(
                "rate_limit.operation_failed",
                extra={**log_context, "error_type": type(exc).__name__, "error_msg": str(exc)},
                exc_info=True,
            )
            return fallback()

    def _to_check_result(self, decision: Decision) -> RateLimitCheckResult:
        if decision.allowed:
            return RateLimitCheckResult(
                allowed=True,
                time_remaining=0,
                attempts=decision.attempts,
            )
        error = decision.error.value if decision.error else None
        return RateLimitCheckResult(
            allowed=False,
            error=error,
            time_remaining=decision.time_remaining,
            attempts=decision.attempts,
            message=build_message(
                error,
                decision.time_remaining,
                locale=self._locale,
                account_lock_hours=self.policy.account_lock_hours,
            )
            if error
            else None,
        )

    async def check_rate_limit(self, email: object) -> RateLimitCheckResult:
        """Decide whether a login attempt for ``email`` may proceed.

        Raises:
            ValidationAppError: If ``email`` is missing or malformed.
        """
        identity = normalize_identity(email)

        async def _evaluate() -> RateLimitCheckResult:
            decision = await self._engine.evaluate(identity, self._clock())
            log_extra = {
                "identity_hash": hash_identity(identity),
                "attempts": decision.attempts,
                "max_attempts": self.policy.max_attempts_per_window,
                "time_remaining_s": decision.time_remaining,
            }
            if decision.outcome is Outcome.BLOCKED:
                logger.warning(
                    "rate_limit.blocked",
                    extra={**log_extra, "reason": decision.error.value if decision.error else None},
                )
            elif decision.outcome is Outcome.DELAYED:
                logger.info("rate_limit.delayed", extra=log_extra)
            else:
                logger.debug("rate_limit.check", extra=log_extra)
            return self._to_check_result(decision)

        return await self._guarded("check_rate_limit", identity, _evaluate, _allowed_fallback)

    async def record_failed_attempt(self, email: object) -> None:
        """Record a failed login for ``email``; a no-op when the store is down.

        Raises:
            ValidationAppError: If ``email`` is missing or malformed.
        """
        identity = normalize_identity(email)

        async def _record() -> None:
            await self._engine.record_failed_attempt(identity, self._clock())
            logger.info(
                "rate_limit.failed_attempt_recorded",
                extra={"identity": mask_identity(identity), "identity_hash": hash_identity(identity)},
            )

        await self._guarded("record_failed_attempt", identity, _record, lambda: None)

    async def reset_rate_limit(self, email: object) -> None:
        """Clear all attempts and blocks for ``email`` after a successful login.

        Raises:
            ValidationAppError: If ``email`` is missing or malformed.
        """
        identity = normalize_identity(email)

        async def _reset() -> None:
            await self._engine.reset(identity)
            logger.info(
                "rate_limit.reset",
                extra={"identity": mask_identity(identity), "identity_hash": hash_identity(identity)},
            )

        await self._guarded("reset_rate_limit", identity, _reset, lambda: None)

    async def get_rate_limit_status(self, email: object) -> RateLimitStatusResult:
        """Describe the rate limit state for ``email``; zeroed when the store is down.

        Raises:
            ValidationAppError: If ``email`` is missing or malformed.
        """
        identity = normalize_identity(email)

        async def _status() -> RateLimitStatusResult:
            status = await self._engine.status(identity, self._clock())
            return RateLimitStatusResult(
                attempts=status.attempts,
                blocked=status.blocked,
                time_remaining=status.time_remaining,
                next_reset_time=status.next_reset_time,
            )

        return await self._guarded("get_rate_limit_status", identity, _status, _status_fallback)
