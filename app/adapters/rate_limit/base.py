"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
decision algorithm and its store can change without touching the HTTP layer.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.core.errors import InvalidSpecError

# One year. Longer windows overflow reset timestamps and store TTLs.
MAX_WINDOW_SECONDS = 365 * 24 * 3600


@dataclass(frozen=True)
class LimitSpec:
    """One limit/window pair, supplied per decision and never persisted.

    Attributes:
        limit: Maximum requests admitted within the window.
        window_seconds: Length of the trailing window in seconds.

    Raises:
        InvalidSpecError: If limit or window_seconds is not strictly positive,
            or the window is not finite or longer than MAX_WINDOW_SECONDS.
    """

    limit: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise InvalidSpecError(
                code="invalid_limit",
                message="limit must be >= 1",
                details={"limit": self.limit},
            )
        if not (
            math.isfinite(self.window_seconds)
            and 0 < self.window_seconds <= MAX_WINDOW_SECONDS
        ):
            raise InvalidSpecError(
                code="invalid_window",
                message=f"window_seconds must be > 0 and <= {MAX_WINDOW_SECONDS}",
                details={"window_seconds": self.window_seconds},
            )


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Limit the decision was taken against.
        remaining: Requests left in the window, never negative.
        reset_at: UNIX epoch seconds when the window is considered reset
            (check time plus window length).
        retry_after_seconds: Suggested wait before retrying; 0 when allowed.
        count: Entries observed in the window, including this request.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: float
    count: int


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def check(
        self,
        key: str,
        spec: LimitSpec,
        *,
        timeout: float | None = None,
    ) -> RateLimitDecision:
        """Record one request for ``key`` and decide whether it is admitted.

        Args:
            key: Opaque, non-empty caller identity (e.g. "ip:203.0.113.7").
            spec: Limit and window to enforce for this call.
            timeout: Deadline in seconds for all store interaction.

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backing store is reachable."""
        raise NotImplementedError
