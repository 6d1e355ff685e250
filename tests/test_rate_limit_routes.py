"""HTTP tests for the decision endpoint and health probes."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.base import MAX_WINDOW_SECONDS, AbstractRateLimiter
from app.core.errors import PartialBatchFailureError
from app.core.rate_limit import get_rate_limiter
from app.main import app


@pytest.fixture
def client(limiter):
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(**overrides) -> dict:
    payload = {"key": "ip:203.0.113.7", "limit": 2, "window_seconds": 60}
    payload.update(overrides)
    return payload


def test_check_admits_then_denies(client: TestClient) -> None:
    first = client.post("/v1/rate-limit/check", json=_payload())
    second = client.post("/v1/rate-limit/check", json=_payload())
    third = client.post("/v1/rate-limit/check", json=_payload())

    assert [first.status_code, second.status_code, third.status_code] == [200, 200, 429]

    body = first.json()
    assert body["success"] is True
    assert body["allowed"] is True
    assert body["remaining"] == 1
    assert body["retry_after"] is None
    assert body["reset_time"].startswith("1970-01-01T00:17:40")
    assert body["window_start"].startswith("1970-01-01T00:16:40")

    denied = third.json()
    assert denied["success"] is False
    assert denied["message"] == "Rate limit exceeded"
    assert denied["remaining"] == 0
    assert denied["retry_after"] == 60
    assert third.headers["Retry-After"] == "60"


def test_check_headers_match_body(client: TestClient) -> None:
    resp = client.post("/v1/rate-limit/check", json=_payload(limit=5))

    assert resp.headers["X-RateLimit-Limit"] == "5"
    assert resp.headers["X-RateLimit-Remaining"] == str(resp.json()["remaining"])


def test_check_keys_are_independent(client: TestClient) -> None:
    client.post("/v1/rate-limit/check", json=_payload(limit=1))

    resp = client.post("/v1/rate-limit/check", json=_payload(key="ip:other", limit=1))

    assert resp.status_code == 200


@pytest.mark.parametrize(
    "overrides",
    [
        {"limit": 0},
        {"window_seconds": 0},
        {"key": ""},
        {"window_seconds": 1e12},
        {"window_seconds": "inf"},
        {"window_seconds": "nan"},
    ],
)
def test_check_rejects_invalid_payload(client: TestClient, overrides: dict) -> None:
    resp = client.post("/v1/rate-limit/check", json=_payload(**overrides))

    assert resp.status_code == 422


def test_check_surfaces_store_failure_as_503() -> None:
    limiter = MagicMock(spec=AbstractRateLimiter)
    limiter.check = AsyncMock(
        side_effect=PartialBatchFailureError(
            code="store_partial_batch_failure",
            message="One or more rate limit store operations failed",
            details={"store": "redis", "failed_ops": ["Insert"]},
        )
    )
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        resp = TestClient(app).post("/v1/rate-limit/check", json=_payload())
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 503
    assert resp.json()["error"]["details"]["failed_ops"] == ["Insert"]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_ping(client: TestClient) -> None:
    body = client.get("/ping").json()

    assert body["message"] == "pong"
    assert body["service"] == "rate-limiter"


def test_ready_when_store_answers(client: TestClient) -> None:
    resp = client.get("/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "services": {"store": True}}


def test_not_ready_when_store_is_down() -> None:
    limiter = MagicMock(spec=AbstractRateLimiter)
    limiter.ping = AsyncMock(return_value=False)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        resp = TestClient(app).get("/ready")
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 503
    assert resp.json()["services"] == {"store": False}


def test_openapi_documents_rate_limit_responses() -> None:
    schema = TestClient(app).get("/openapi.json").json()

    responses = schema["paths"]["/v1/test"]["get"]["responses"]
    assert "429" in responses
    assert "X-RateLimit-Limit" in responses["200"]["headers"]


def test_check_accepts_longest_window(client: TestClient) -> None:
    resp = client.post(
        "/v1/rate-limit/check",
        json=_payload(limit=1, window_seconds=MAX_WINDOW_SECONDS),
    )

    assert resp.status_code == 200
    assert resp.json()["reset_time"].startswith("1971-01-01")
