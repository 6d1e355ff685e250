"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    limit: int
    window_seconds: float
    retry_after: int | None
    timeout_seconds: float
    failed_ops: list[str]
    store: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidSpecError(ValidationAppError):
    """Raised when a limit or window is not strictly positive."""


class StoreAppError(AppError):
    """Base for failures talking to the time-ordered store."""


class StoreUnavailableError(StoreAppError):
    """Raised on store communication failure or deadline expiry."""


class PartialBatchFailureError(StoreAppError):
    """Raised when some operations of a non-transactional batch failed.

    Other operations of the same batch may already have been applied; the
    decision is abandoned rather than derived from partial state.
    """


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a caller exhausted its quota for the current window.

    Attributes:
        headers: Rate limit headers to send with the 429 response.
    """

    headers: dict[str, str] = field(default_factory=dict)
