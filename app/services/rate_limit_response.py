"""Translate rate limit decisions into transport-neutral response fields.

Pure functions only: no I/O, no settings lookups. The gating dependency and
the direct decision endpoint both go through ``build_rate_limit_fields`` so
headers and bodies always agree.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from app.adapters.rate_limit.base import LimitSpec, RateLimitDecision

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"


@dataclass(frozen=True)
class RateLimitFields:
    """Named fields callers attach to a response.

    Attributes:
        allowed: Admit/deny verdict.
        limit: Requests allowed per window.
        remaining: Requests left in the window.
        reset_epoch_seconds: Window reset as whole UNIX seconds (rounded up).
        retry_after_seconds: Whole seconds to wait; None when allowed.
        window_seconds: Window length the decision was taken against.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_epoch_seconds: int
    retry_after_seconds: int | None
    window_seconds: float

    def as_headers(self) -> dict[str, str]:
        """Render the fields as HTTP headers (Retry-After only when denied)."""

        headers = {
            HEADER_LIMIT: str(self.limit),
            HEADER_REMAINING: str(self.remaining),
            HEADER_RESET: str(self.reset_epoch_seconds),
        }
        if self.retry_after_seconds is not None:
            headers[HEADER_RETRY_AFTER] = str(self.retry_after_seconds)
        return headers

    def as_body(self) -> dict[str, Any]:
        """Render the fields as a JSON-friendly mapping."""

        reset_time = datetime.fromtimestamp(self.reset_epoch_seconds, tz=timezone.utc)
        window_start = datetime.fromtimestamp(
            self.reset_epoch_seconds - self.window_seconds, tz=timezone.utc
        )
        return {
            "allowed": self.allowed,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": reset_time.isoformat(),
            "retry_after": self.retry_after_seconds,
            "window_start": window_start.isoformat(),
        }


def build_rate_limit_fields(decision: RateLimitDecision, spec: LimitSpec) -> RateLimitFields:
    """Map a decision and the spec it was taken against to response fields.

    Args:
        decision: Result returned by the rate limiter.
        spec: Limit/window pair used for the decision.

    Returns:
        RateLimitFields with whole-second values suitable for headers.
    """

    retry_after: int | None = None
    if not decision.allowed:
        retry_after = max(0, int(math.ceil(decision.retry_after_seconds)))

    return RateLimitFields(
        allowed=decision.allowed,
        limit=spec.limit,
        remaining=max(0, min(decision.remaining, spec.limit)),
        reset_epoch_seconds=int(math.ceil(decision.reset_at)),
        retry_after_seconds=retry_after,
        window_seconds=spec.window_seconds,
    )
