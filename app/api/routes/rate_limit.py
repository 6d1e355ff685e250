"""Direct rate limit decision endpoint.

Lets another service ask for a decision on an explicit key and limit instead
of being gated itself. The verdict is mirrored in the status code (200 / 429)
and in the same X-RateLimit-* headers the gating dependency sets.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.base import AbstractRateLimiter, LimitSpec
from app.core.config import settings
from app.core.rate_limit import get_rate_limiter
from app.schemas.rate_limit import RateLimitCheckRequest, RateLimitResponse
from app.services.rate_limit_response import build_rate_limit_fields

router = APIRouter(tags=["Rate Limit"])


@router.post(
    "/rate-limit/check",
    response_model=RateLimitResponse,
    responses={429: {"model": RateLimitResponse, "description": "Rate limit exceeded"}},
)
async def check_rate_limit(
    payload: RateLimitCheckRequest,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    """Record one request for ``payload.key`` and return the decision.

    Store failures are not masked here: they surface as 503 through the
    global exception handlers, whatever the fail-open setting says.

    Args:
        payload: Key, limit and window to decide against.
        limiter: Rate limiter (overridable in tests).

    Returns:
        JSONResponse: RateLimitResponse body, 200 when allowed, 429 when denied.
    """

    spec = LimitSpec(limit=payload.limit, window_seconds=payload.window_seconds)
    decision = await limiter.check(
        payload.key,
        spec,
        timeout=settings.rate_limit.timeout_seconds,
    )
    fields = build_rate_limit_fields(decision, spec)

    body = RateLimitResponse(
        success=fields.allowed,
        message="Request allowed" if fields.allowed else "Rate limit exceeded",
        **fields.as_body(),
    )
    return JSONResponse(
        status_code=200 if fields.allowed else 429,
        content=body.model_dump(mode="json"),
        headers=fields.as_headers(),
    )
