"""Pydantic schemas for rate limit decision requests and responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.adapters.rate_limit.base import MAX_WINDOW_SECONDS


class RateLimitCheckRequest(BaseModel):
    """Direct decision query for an explicit key and limit."""

    key: str = Field(
        ...,
        min_length=1,
        description='Opaque caller identity, e.g. "ip:203.0.113.7" or "token:abc".',
    )
    limit: int = Field(
        ..., ge=1, description="Maximum requests admitted within the window."
    )
    window_seconds: float = Field(
        ...,
        gt=0,
        le=MAX_WINDOW_SECONDS,
        allow_inf_nan=False,
        description="Length of the trailing window in seconds (at most one year).",
    )


class RateLimitResponse(BaseModel):
    """Outcome of one rate limit decision."""

    success: bool = Field(..., description="True when the request was admitted.")
    message: str = Field(..., description="Human-readable verdict.")
    allowed: bool = Field(..., description="Admit/deny verdict.")
    limit: int = Field(..., description="Requests allowed per window.")
    remaining: int = Field(
        ..., ge=0, description="Requests left in the current window."
    )
    reset_time: datetime = Field(
        ..., description="When the window is considered reset (UTC)."
    )
    retry_after: int | None = Field(
        default=None,
        description="Seconds to wait before retrying; only set when denied.",
    )
    window_start: datetime = Field(
        ..., description="Start of the window the decision was taken against (UTC)."
    )
