"""Redis time-ordered store adapter.

Each batch becomes one pipeline round trip on a sorted set:

    RemoveRange -> ZREMRANGEBYSCORE key <min> (<max
    Insert      -> ZADD key score member
    Cardinality -> ZCARD key
    Expire      -> PEXPIRE key ttl_ms

Atomicity:
- ``transactional=True`` wraps the pipeline in MULTI/EXEC, so a batch runs
  without interleaving and same-key checks serialize.
- ``transactional=False`` only pipelines. Commands from other clients can run
  between ours; concurrent checks on one key may each miss the others' inserts.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.store.base import (
    AbstractTimeOrderedStore,
    Cardinality,
    Expire,
    Insert,
    RemoveRange,
    StoreOp,
    StoreResult,
)
from app.core.config import RedisSettings
from app.core.errors import PartialBatchFailureError, StoreUnavailableError

logger = logging.getLogger(__name__)


def _score_bound(value: float, *, exclusive: bool = False) -> str:
    """Render a score bound in ZRANGEBYSCORE syntax."""

    if math.isinf(value):
        return "+inf" if value > 0 else "-inf"
    rendered = repr(float(value))
    return f"({rendered}" if exclusive else rendered


class RedisTimeOrderedStore(AbstractTimeOrderedStore):
    """Sorted-set store backed by ``redis.asyncio``."""

    name = "redis"

    def __init__(self, client: Redis, *, transactional: bool = True) -> None:
        """Wrap an existing client.

        Args:
            client: Connected ``redis.asyncio.Redis`` client.
            transactional: Send batches as MULTI/EXEC instead of a bare pipeline.
        """
        self._client = client
        self._transactional = transactional

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisTimeOrderedStore":
        """Build a store with its own connection pool from settings."""

        client = Redis.from_url(
            redis_settings.connection_url(),
            decode_responses=True,
            max_connections=redis_settings.pool_size,
            socket_timeout=redis_settings.socket_timeout_seconds,
            socket_connect_timeout=redis_settings.connect_timeout_seconds,
        )
        return cls(client, transactional=redis_settings.transactional)

    @property
    def atomic(self) -> bool:
        return self._transactional

    async def execute_batch(self, ops: Sequence[StoreOp]) -> list[StoreResult]:
        try:
            async with self._client.pipeline(transaction=self._transactional) as pipe:
                for op in ops:
                    self._queue(pipe, op)
                raw_results = await pipe.execute(raise_on_error=False)
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            logger.warning(
                "store.unavailable",
                extra={
                    "store": self.name,
                    "error_type": type(exc).__name__,
                    "op_count": len(ops),
                },
            )
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Rate limit store is unavailable",
                details={"store": self.name},
            ) from exc
        except RedisError as exc:
            logger.warning(
                "store.batch_failed",
                extra={
                    "store": self.name,
                    "error_type": type(exc).__name__,
                    "op_count": len(ops),
                },
            )
            raise PartialBatchFailureError(
                code="store_batch_failed",
                message="Rate limit store rejected the batch",
                details={"store": self.name},
            ) from exc

        failed = [
            type(op).__name__
            for op, result in zip(ops, raw_results)
            if isinstance(result, Exception)
        ]
        if failed:
            logger.warning(
                "store.batch_failed",
                extra={
                    "store": self.name,
                    "failed_ops": failed,
                    "op_count": len(ops),
                    "transactional": self._transactional,
                },
            )
            raise PartialBatchFailureError(
                code="store_partial_batch_failure",
                message="One or more rate limit store operations failed",
                details={"store": self.name, "failed_ops": failed},
            )

        return [self._coerce(op, result) for op, result in zip(ops, raw_results)]

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as exc:
            logger.warning(
                "store.ping_failed",
                extra={"store": self.name, "error_type": type(exc).__name__},
            )
            return False

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _queue(pipe: Any, op: StoreOp) -> None:
        if isinstance(op, RemoveRange):
            pipe.zremrangebyscore(
                op.key,
                _score_bound(op.min_score),
                _score_bound(op.max_score, exclusive=True),
            )
        elif isinstance(op, Insert):
            pipe.zadd(op.key, {op.member: op.score})
        elif isinstance(op, Cardinality):
            pipe.zcard(op.key)
        elif isinstance(op, Expire):
            pipe.pexpire(op.key, max(1, int(math.ceil(op.ttl_seconds * 1000))))
        else:
            raise TypeError(f"Unsupported store operation: {type(op).__name__}")

    @staticmethod
    def _coerce(op: StoreOp, result: Any) -> StoreResult:
        if isinstance(op, Expire):
            return bool(result)
        return int(result)
