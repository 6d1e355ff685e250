from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check used by load balancers and monitoring systems.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/ping")
def ping() -> dict:
    return {
        "message": "pong",
        "service": "rate-limiter",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check(
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    """Readiness check: verifies the rate limit store answers.

    Returns:
        JSONResponse: 200 when the store is reachable, 503 otherwise.
    """

    store_ok = await limiter.ping()
    return JSONResponse(
        status_code=200 if store_ok else 503,
        content={
            "status": "ok" if store_ok else "unavailable",
            "services": {"store": store_ok},
        },
    )
