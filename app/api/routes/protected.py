"""Sample endpoints gated by the rate limit dependency."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from app.core.identity import client_ip
from app.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Protected"], dependencies=[Depends(enforce_rate_limit)])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/status")
def service_status() -> dict:
    return {
        "service": "rate-limiter",
        "version": "0.1.0",
        "timestamp": _now(),
    }


@router.api_route("/test", methods=["GET", "POST"])
def rate_limit_test(request: Request) -> dict:
    """Echo endpoint for exercising the limiter by hand."""

    return {
        "message": "Rate limiter is working",
        "method": request.method,
        "ip": client_ip(request),
        "timestamp": _now(),
    }


@router.get("/protected")
def protected_resource(request: Request) -> dict:
    return {
        "message": "Protected resource accessed successfully",
        "method": request.method,
        "timestamp": _now(),
        "data": "This is protected content",
    }
