"""In-memory time-ordered store.

Notes:
- Per-process only: every worker keeps its own log, so the effective limit is
  multiplied by the number of workers.
- Mirrors the Redis semantics the engine relies on: exclusive upper bound on
  range deletes, member uniqueness, whole-key expiry. Expiry is checked when a
  key is touched, and a sweep at most every ``sweep_interval_seconds`` drops
  keys nobody checks any more.
- ``atomic=False`` yields to the event loop between operations so tests can
  reproduce the interleavings of a pipelined, non-transactional store.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

from app.adapters.store.base import (
    AbstractTimeOrderedStore,
    Cardinality,
    Expire,
    Insert,
    RemoveRange,
    StoreOp,
    StoreResult,
)


@dataclass
class _ScoredSet:
    members: dict[str, float] = field(default_factory=dict)
    expires_at: float | None = None


class InMemoryTimeOrderedStore(AbstractTimeOrderedStore):
    """Sorted-set store kept in a dict, guarded by a lock."""

    name = "memory"

    def __init__(
        self,
        *,
        atomic: bool = True,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        """Initialize the store.

        Args:
            atomic: Run each batch under one lock acquisition. When False,
                other coroutines may run between the operations of a batch.
            clock: Time source (UNIX seconds) used for key expiry.
            sweep_interval_seconds: Minimum time between full scans for
                expired keys.
        """
        self._atomic = atomic
        self._clock = clock
        self._lock = threading.RLock()
        self._sets: dict[str, _ScoredSet] = {}
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep = clock()

    @property
    def atomic(self) -> bool:
        return self._atomic

    def key_count(self) -> int:
        """Return how many keys are held, including expired ones not yet swept."""

        with self._lock:
            return len(self._sets)

    async def execute_batch(self, ops: Sequence[StoreOp]) -> list[StoreResult]:
        with self._lock:
            self._maybe_sweep()

        if self._atomic:
            with self._lock:
                return [self._apply(op) for op in ops]

        results: list[StoreResult] = []
        for index, op in enumerate(ops):
            if index:
                await asyncio.sleep(0)
            with self._lock:
                results.append(self._apply(op))
        return results

    async def ping(self) -> bool:
        return True

    def members(self, key: str) -> dict[str, float]:
        """Return a copy of the live members of ``key`` (member -> score)."""

        with self._lock:
            entry = self._live(key)
            return dict(entry.members) if entry else {}

    def ttl(self, key: str) -> float | None:
        """Return remaining seconds before ``key`` expires, None if no expiry."""

        with self._lock:
            entry = self._live(key)
            if entry is None or entry.expires_at is None:
                return None
            return entry.expires_at - self._clock()

    def _maybe_sweep(self) -> None:
        now = self._clock()
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        expired = [
            key
            for key, entry in self._sets.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for key in expired:
            del self._sets[key]

    def _live(self, key: str) -> _ScoredSet | None:
        entry = self._sets.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._sets[key]
            return None
        return entry

    def _apply(self, op: StoreOp) -> StoreResult:
        if isinstance(op, RemoveRange):
            entry = self._live(op.key)
            if entry is None:
                return 0
            doomed = [
                member
                for member, score in entry.members.items()
                if op.min_score <= score < op.max_score
            ]
            for member in doomed:
                del entry.members[member]
            self._drop_if_empty(op.key, entry)
            return len(doomed)

        if isinstance(op, Insert):
            entry = self._live(op.key)
            if entry is None:
                entry = self._sets[op.key] = _ScoredSet()
            added = 0 if op.member in entry.members else 1
            entry.members[op.member] = op.score
            return added

        if isinstance(op, Cardinality):
            entry = self._live(op.key)
            return len(entry.members) if entry else 0

        if isinstance(op, Expire):
            entry = self._live(op.key)
            if entry is None:
                return False
            entry.expires_at = self._clock() + op.ttl_seconds
            return True

        raise TypeError(f"Unsupported store operation: {type(op).__name__}")

    def _drop_if_empty(self, key: str, entry: _ScoredSet) -> None:
        # Redis deletes a sorted set once its last member is removed.
        if not entry.members:
            self._sets.pop(key, None)
