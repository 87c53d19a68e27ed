"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins APP_ENV to "testing" and the store backend to the in-memory store
before settings are imported, so no test needs a running Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Set default env vars that all tests might need
os.environ.setdefault("REDIS_BACKEND", "memory")
os.environ.setdefault("APP_API_KEY_REQUIRED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from login_limiter.adapters.rate_limit.connection import StoreConnection
from login_limiter.adapters.rate_limit.in_memory import InMemoryAttemptStore
from login_limiter.services.rate_limit_engine import RateLimitPolicy
from login_limiter.services.rate_limit_service import RateLimitService

# Fixed starting point for deterministic window math (epoch ms)
T0 = 1_700_000_000_000


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now_ms: int = T0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, *, ms: int = 0, seconds: float = 0, minutes: float = 0) -> int:
        self.now_ms += ms + int(seconds * 1000) + int(minutes * 60_000)
        return self.now_ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryAttemptStore:
    return InMemoryAttemptStore(clock=clock)


@pytest.fixture
def policy() -> RateLimitPolicy:
    return RateLimitPolicy()


@pytest.fixture
def connection(store: InMemoryAttemptStore) -> StoreConnection:
    return StoreConnection(store)


@pytest.fixture
def service(connection: StoreConnection, policy: RateLimitPolicy, clock: FakeClock) -> RateLimitService:
    """Service over the in-memory store, driven by the fake clock."""
    return RateLimitService(connection, policy, clock=clock)
