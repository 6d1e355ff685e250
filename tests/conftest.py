"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never reach a real Redis or a local
.env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Set default env vars that all tests might need
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_DEFAULT_LIMIT", "100")
os.environ.setdefault("RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("LOG_LEVEL", "warning")

import pytest

from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from app.adapters.store.in_memory import InMemoryTimeOrderedStore


class FakeClock:
    """Deterministic clock shared by a limiter and its in-memory store."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryTimeOrderedStore:
    return InMemoryTimeOrderedStore(clock=clock)


@pytest.fixture
def limiter(store: InMemoryTimeOrderedStore, clock: FakeClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(store, key_prefix="rate_limit:", clock=clock)
