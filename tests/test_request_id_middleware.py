from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.core.errors import StoreUnavailableError
from app.core.logging import get_request_id
from app.core.rate_limit import get_rate_limiter
from app.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_request_id_is_cleared_after_response():
    client.get("/health", headers={"X-Request-ID": "short-lived"})

    assert get_request_id() is None


def test_error_envelope_echoes_request_id():
    limiter = MagicMock(spec=AbstractRateLimiter)
    limiter.check = AsyncMock(
        side_effect=StoreUnavailableError(code="store_unavailable", message="down")
    )
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        resp = client.post(
            "/v1/rate-limit/check",
            json={"key": "k", "limit": 1, "window_seconds": 60},
            headers={"X-Request-ID": "req-503"},
        )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 503
    assert resp.headers["X-Request-ID"] == "req-503"
    assert resp.json()["error"]["request_id"] == "req-503"


def test_access_log_records_rate_limit_outcome(limiter, caplog: pytest.LogCaptureFixture):
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        with caplog.at_level(logging.INFO, logger="app.access"):
            client.post("/v1/rate-limit/check", json={"key": "k", "limit": 1, "window_seconds": 60})
            client.post("/v1/rate-limit/check", json={"key": "k", "limit": 1, "window_seconds": 60})
    finally:
        app.dependency_overrides.clear()

    records = [r for r in caplog.records if r.getMessage() == "http.request"]
    assert [r.status for r in records] == [200, 429]
    assert records[1].rate_limited is True
    assert records[1].rate_limit_remaining == "0"
