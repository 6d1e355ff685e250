"""Tests for settings parsing from environment variables."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import LogSettings, RateLimitSettings


def test_csv_lists_are_split(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_WHITELIST", "203.0.113.5, 198.51.100.1 ,")
    monkeypatch.setenv("RATE_LIMIT_SKIP_PATHS", "/health,/metrics")

    cfg = RateLimitSettings()

    assert cfg.whitelist == ["203.0.113.5", "198.51.100.1"]
    assert cfg.skip_paths == ["/health", "/metrics"]


def test_custom_limits_parsed_from_json(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_CUSTOM_LIMITS", '{"/v1/test": 5}')

    assert RateLimitSettings().custom_limits == {"/v1/test": 5}


def test_custom_limits_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_CUSTOM_LIMITS", '{"/v1/test": 0}')

    with pytest.raises(ValidationError):
        RateLimitSettings()


@pytest.mark.parametrize(
    "name, value",
    [
        ("RATE_LIMIT_DEFAULT_LIMIT", "0"),
        ("RATE_LIMIT_WINDOW_SECONDS", "0"),
        ("RATE_LIMIT_WINDOW_SECONDS", "inf"),
        ("RATE_LIMIT_WINDOW_SECONDS", "1e12"),
        ("RATE_LIMIT_KEY_STRATEGY", "cookie"),
        ("RATE_LIMIT_BACKEND", "memcached"),
    ],
)
def test_invalid_rate_limit_settings(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        RateLimitSettings()


def test_fail_open_defaults_to_true(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RATE_LIMIT_FAIL_OPEN", raising=False)

    assert RateLimitSettings().fail_open is True


def test_log_level_is_case_insensitive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "INFO")

    assert LogSettings().level == "info"
