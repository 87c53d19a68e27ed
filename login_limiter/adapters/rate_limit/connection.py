"""Store connection lifecycle and availability tracking.

StoreConnection owns the attempt store for the process lifetime and tracks a
tri-state status:

- CONNECTED: operations go to the store.
- CONNECTING: the store was lost (or never reached); reconnect probes run
  lazily, spaced by a bounded exponential backoff.
- DISCONNECTED: the retry ceiling was hit; a single probe is allowed every
  ``reconnect_interval_seconds`` until one succeeds.

There is no background task. Probes piggyback on incoming calls: the caller
that finds a probe due runs it, everyone else sees "unavailable" and fails
open. A generation counter ties each failure report to the connection it
was observed on, so an error from an operation that started before a
successful reconnect cannot flip the fresh connection back to down.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

from redis.backoff import ExponentialBackoff

from login_limiter.adapters.rate_limit.base import AbstractAttemptStore
from login_limiter.core.errors import StoreAppError

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"


class StoreConnection:
    """Availability gate in front of an AbstractAttemptStore."""

    def __init__(
        self,
        store: AbstractAttemptStore,
        *,
        max_retries: int = 10,
        backoff_base_seconds: float = 0.1,
        backoff_cap_seconds: float = 3.0,
        reconnect_interval_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the connection gate.

        Args:
            store: Store whose ``ping()`` is used as the health probe.
            max_retries: Failed probes tolerated in CONNECTING before the
                status drops to DISCONNECTED.
            backoff_base_seconds: Base of the exponential probe backoff.
            backoff_cap_seconds: Upper bound for a single backoff delay.
            reconnect_interval_seconds: Probe spacing once DISCONNECTED.
            clock: Monotonic time source in seconds.

        Raises:
            ValueError: If retry or interval arguments are negative.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if reconnect_interval_seconds < 0:
            raise ValueError("reconnect_interval_seconds must be >= 0")

        self._store = store
        self._max_retries = max_retries
        self._backoff = ExponentialBackoff(cap=backoff_cap_seconds, base=backoff_base_seconds)
        self._reconnect_interval = reconnect_interval_seconds
        self._clock = clock

        self._status = ConnectionStatus.CONNECTING
        self._generation = 0
        self._failed_probes = 0
        self._next_probe_at = 0.0
        self._probing = False
        self._closed = False

    @property
    def store(self) -> AbstractAttemptStore:
        return self._store

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        previous = self._status
        self._status = status
        log = logger.warning if status is ConnectionStatus.DISCONNECTED else logger.info
        log(
            f"store.{status.value}",
            extra={
                "previous_status": previous.value,
                "generation": self._generation,
                "failed_probes": self._failed_probes,
            },
        )

    def _schedule_next_probe(self) -> None:
        now = self._clock()
        if self._failed_probes > self._max_retries:
            self._set_status(ConnectionStatus.DISCONNECTED)
            self._next_probe_at = now + self._reconnect_interval
            return
        delay = self._backoff.compute(self._failed_probes)
        self._next_probe_at = now + delay
        logger.info(
            "store.reconnecting",
            extra={"attempt": self._failed_probes, "delay_s": round(delay, 3)},
        )

    async def _probe(self) -> bool:
        self._probing = True
        try:
            healthy = await self._store.ping()
        except StoreAppError as exc:
            healthy = False
            logger.debug(
                "store.probe_failed",
                extra={"error_code": exc.code, "error_type": type(exc.__cause__ or exc).__name__},
            )
        except Exception as exc:
            healthy = False
            logger.warning(
                "store.probe_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                exc_info=True,
            )
        finally:
            self._probing = False

        if self._closed:
            return False
        if healthy:
            self._generation += 1
            self._failed_probes = 0
            self._set_status(ConnectionStatus.CONNECTED)
            return True

        self._failed_probes += 1
        self._schedule_next_probe()
        return False

    async def connect(self) -> ConnectionStatus:
        """Probe the store once at startup.

        A failure does not raise: the connection stays CONNECTING and later
        calls retry with backoff while the service fails open.
        """
        self._closed = False
        if self._status is not ConnectionStatus.CONNECTED:
            await self._probe()
        return self._status

    async def acquire(self) -> int | None:
        """Return the current generation when the store is usable, else None.

        May run a reconnect probe when one is due.
        """
        if self._closed:
            return None
        if self._status is ConnectionStatus.CONNECTED:
            return self._generation
        if self._probing or self._clock() < self._next_probe_at:
            return None
        if await self._probe():
            return self._generation
        return None

    def report_unavailable(self, generation: int) -> None:
        """Mark the store lost if ``generation`` is still the live connection."""
        if generation != self._generation or self._status is not ConnectionStatus.CONNECTED:
            return
        self._failed_probes = 0
        self._set_status(ConnectionStatus.CONNECTING)
        # First probe is allowed immediately on the next call
        self._next_probe_at = self._clock()

    def mark_disconnected(self) -> None:
        """Force DISCONNECTED, e.g. to simulate or acknowledge an outage."""
        self._failed_probes = self._max_retries + 1
        self._set_status(ConnectionStatus.DISCONNECTED)
        self._next_probe_at = self._clock() + self._reconnect_interval

    async def close(self) -> None:
        """Close the underlying store; every later acquire() returns None."""
        if self._closed:
            return
        self._closed = True
        self._set_status(ConnectionStatus.DISCONNECTED)
        await self._store.close()
