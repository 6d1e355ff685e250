"""Time-ordered store interface.

The decision engine talks to its backing store only through this narrow
interface: four sorted-set style operations, submitted together as one batch.
Concrete stores (Redis, in-memory) decide how atomic a batch is and expose it
through ``AbstractTimeOrderedStore.atomic``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Union


@dataclass(frozen=True)
class RemoveRange:
    """Delete members with ``min_score <= score < max_score``.

    Result: number of members removed.
    """

    key: str
    min_score: float
    max_score: float


@dataclass(frozen=True)
class Insert:
    """Add ``member`` with ``score``. Result: number of members added."""

    key: str
    score: float
    member: str


@dataclass(frozen=True)
class Cardinality:
    """Count all members of the key. Result: member count."""

    key: str


@dataclass(frozen=True)
class Expire:
    """Set or refresh a relative expiry on the whole key. Result: bool."""

    key: str
    ttl_seconds: float


StoreOp = Union[RemoveRange, Insert, Cardinality, Expire]
StoreResult = Union[int, bool]


class AbstractTimeOrderedStore(ABC):
    """Keyed store of scored members, driven in batches."""

    #: Short backend name used in logs and error details.
    name: str = "abstract"

    @property
    @abstractmethod
    def atomic(self) -> bool:
        """Whether a batch executes without interleaving other clients' ops."""

    @abstractmethod
    async def execute_batch(self, ops: Sequence[StoreOp]) -> list[StoreResult]:
        """Execute ``ops`` as one grouped round trip.

        Args:
            ops: Operations to run, in order.

        Returns:
            One result per operation, in the same order.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
            PartialBatchFailureError: If some operations failed while others
                may have been applied.
        """

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers."""

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
