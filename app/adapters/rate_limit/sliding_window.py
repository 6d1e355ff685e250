"""Sliding-window-log rate limiter backed by a time-ordered store.

Every check records the request in a per-key sorted set scored by time and
counts what is left inside the trailing window. All five steps go to the store
in one batch:

    1. now, window_start = now - window
    2. remove entries scored strictly before window_start
    3. insert (now, unique member)
    4. count the key's entries, this request included
    5. refresh the key's TTL to window + SAFETY_MARGIN_SECONDS

Notes:
- Insert-then-count: the request that makes count == limit is the last one
  admitted. Denied requests keep their entry (retain-on-deny), so a burst of
  denials keeps the window full until those entries age out.
- Stateless: the limiter keeps nothing between calls apart from the optional
  per-key lock table, and can be shared by any number of concurrent callers.
- Same-key atomicity is whatever the store's batch gives. On a non-atomic store
  concurrent checks may each miss the others' inserts, admitting at most
  ``limit + concurrency - 1`` requests. ``local_lock=True`` removes that race
  between coroutines of this process only.
- Scores come from the wall clock so replicas share one timeline; precision
  across hosts depends on their clock synchronization.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, LimitSpec, RateLimitDecision
from app.adapters.store.base import (
    AbstractTimeOrderedStore,
    Cardinality,
    Expire,
    Insert,
    RemoveRange,
)
from app.core.errors import StoreAppError, StoreUnavailableError, ValidationAppError

logger = logging.getLogger(__name__)

# Extra TTL beyond the window so clock skew never expires a live log early.
SAFETY_MARGIN_SECONDS = 60.0

# Scores are integer microseconds: exact in a double until year 2255.
SCORE_UNITS_PER_SECOND = 1_000_000


def hash_key(key: str) -> str:
    """Hash a caller key (without the store prefix) for logging.

    The engine and the HTTP layer hash the same unprefixed key, so their log
    lines for one request share a ``key_hash``.
    """
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class _KeyedLocks:
    """Per-key asyncio locks, dropped once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(key, (asyncio.Lock(), 0))
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Sliding-window-log limiter over an ``AbstractTimeOrderedStore``."""

    def __init__(
        self,
        store: AbstractTimeOrderedStore,
        *,
        key_prefix: str = "",
        clock: Callable[[], float] = time.time,
        local_lock: bool = False,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Time-ordered store holding the request logs.
            key_prefix: Namespace prepended to every store key.
            clock: Time source returning UNIX time in seconds.
            local_lock: Serialize same-key checks within this process.
        """
        self._store = store
        self._key_prefix = key_prefix
        self._clock = clock
        self._locks: _KeyedLocks | None = _KeyedLocks() if local_lock else None

    @property
    def store(self) -> AbstractTimeOrderedStore:
        return self._store

    async def ping(self) -> bool:
        return await self._store.ping()

    async def check(
        self,
        key: str,
        spec: LimitSpec,
        *,
        timeout: float | None = None,
    ) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it is admitted.

        Args:
            key: Non-empty caller identity. Callers that want empty keys to
                bypass limiting must do so before calling.
            spec: Limit and window for this decision.
            timeout: Deadline in seconds for the store round trip; None waits
                as long as the store's own socket timeouts allow.

        Returns:
            RateLimitDecision for this request.

        Raises:
            ValidationAppError: If key is empty.
            StoreUnavailableError: If the store fails or the deadline expires.
            PartialBatchFailureError: If the store applied only part of the batch.
        """
        if not key:
            raise ValidationAppError(
                code="empty_rate_limit_key",
                message="key must be a non-empty string",
            )

        store_key = f"{self._key_prefix}{key}"
        if self._locks is None:
            return await self._decide(key, store_key, spec, timeout)

        async with self._locks.hold(store_key):
            return await self._decide(key, store_key, spec, timeout)

    async def _decide(
        self,
        key: str,
        store_key: str,
        spec: LimitSpec,
        timeout: float | None,
    ) -> RateLimitDecision:
        now = self._clock()
        now_score = int(now * SCORE_UNITS_PER_SECOND)
        window_start = now_score - spec.window_seconds * SCORE_UNITS_PER_SECOND

        ops = [
            RemoveRange(store_key, float("-inf"), window_start),
            Insert(store_key, now_score, f"{now_score}-{uuid.uuid4().hex}"),
            Cardinality(store_key),
            Expire(store_key, spec.window_seconds + SAFETY_MARGIN_SECONDS),
        ]

        try:
            results = await asyncio.wait_for(self._store.execute_batch(ops), timeout)
        except asyncio.TimeoutError as exc:
            logger.warning(
                "rate_limit.store_error",
                extra={
                    "key_hash": hash_key(key),
                    "store": self._store.name,
                    "error_code": "store_timeout",
                    "timeout_s": timeout,
                },
            )
            raise StoreUnavailableError(
                code="store_timeout",
                message="Rate limit store did not answer before the deadline",
                details={"store": self._store.name, "timeout_seconds": timeout},
            ) from exc
        except StoreAppError as exc:
            logger.warning(
                "rate_limit.store_error",
                extra={
                    "key_hash": hash_key(key),
                    "store": self._store.name,
                    "error_code": exc.code,
                },
            )
            raise

        count = int(results[2])
        allowed = count <= spec.limit
        decision = RateLimitDecision(
            allowed=allowed,
            limit=spec.limit,
            remaining=max(0, spec.limit - count),
            reset_at=now + spec.window_seconds,
            retry_after_seconds=0.0 if allowed else float(spec.window_seconds),
            count=count,
        )

        logger.debug(
            "rate_limit.decision",
            extra={
                "key_hash": hash_key(key),
                "allowed": decision.allowed,
                "count": count,
                "limit": spec.limit,
                "window_s": spec.window_seconds,
                "evicted": results[0],
            },
        )
        return decision
