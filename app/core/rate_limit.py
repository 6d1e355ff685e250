"""Rate limiting dependency for FastAPI routes.

This module wires the sliding-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the store (Redis or in-memory) sits behind an abstract
  interface and is chosen by settings.
- Explicit failure policy: when the store cannot be reached the request is
  either let through (fail-open) or answered with 503 (fail-closed), as
  configured by RATE_LIMIT_FAIL_OPEN. The limiter itself only reports errors.

Rate limiting strategy:
- Sliding-window log per caller key (IP, user, API key or composite).
- Per-path limits override the default limit; the window is shared.
- Requests without any identity, skipped paths and whitelisted IPs bypass
  limiting.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, LimitSpec
from app.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter, hash_key
from app.adapters.store.factory import create_store
from app.core.config import settings
from app.core.errors import RateLimitExceededError, StoreAppError
from app.core.identity import get_key_func, should_skip
from app.services.rate_limit_response import build_rate_limit_fields

logger = logging.getLogger(__name__)


_limiter: SlidingWindowRateLimiter | None = None
_limiter_config: tuple[object, ...] | None = None


def _current_limiter_config() -> tuple[object, ...]:
    return (
        settings.rate_limit.backend,
        settings.rate_limit.key_prefix,
        settings.rate_limit.local_lock,
        settings.redis.connection_url(),
        settings.redis.transactional,
    )


async def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module so the store connection pool (or the
    in-memory log) is shared across requests. If configuration changes
    (primarily in tests), the limiter is rebuilt and the previous store is
    closed so its connection pool is released.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = _current_limiter_config()
    if _limiter is None or _limiter_config != config:
        previous = _limiter
        _limiter = SlidingWindowRateLimiter(
            create_store(settings),
            key_prefix=settings.rate_limit.key_prefix,
            local_lock=settings.rate_limit.local_lock,
        )
        _limiter_config = config

        if previous is not None:
            logger.info(
                "rate_limit.limiter_replaced",
                extra={
                    "previous_store": previous.store.name,
                    "store": _limiter.store.name,
                },
            )
            await previous.store.close()

    return _limiter


async def close_rate_limiter() -> None:
    """Close the cached limiter's store and forget it."""

    global _limiter, _limiter_config

    if _limiter is not None:
        await _limiter.store.close()
    _limiter = None
    _limiter_config = None


def resolve_limit_spec(path: str) -> LimitSpec:
    """Return the limit/window pair that applies to ``path``."""

    cfg = settings.rate_limit
    return LimitSpec(
        limit=cfg.custom_limits.get(path, cfg.default_limit),
        window_seconds=cfg.window_seconds,
    )


async def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, records the request in the caller's window. Allowed
    responses carry X-RateLimit-* headers; denied requests get 429.

    Args:
        request: FastAPI request.
        response: Response whose headers receive the rate limit fields.
        limiter: Rate limiter (overridable in tests).

    Raises:
        RateLimitExceededError: When the caller exceeded the limit (429).
        StoreAppError: When the store failed and fail-open is disabled (503).
    """

    cfg = settings.rate_limit
    if not cfg.enabled:
        return

    if should_skip(request, cfg):
        logger.debug("rate_limit.skipped", extra={"path": request.url.path})
        return

    key = get_key_func(cfg.key_strategy)(request)
    if not key:
        logger.debug(
            "rate_limit.bypassed",
            extra={"path": request.url.path, "reason": "no_identity"},
        )
        return

    spec = resolve_limit_spec(request.url.path)
    key_type = key.split(":", 1)[0]
    key_hash = hash_key(key)

    try:
        decision = await limiter.check(key, spec, timeout=cfg.timeout_seconds)
    except StoreAppError as exc:
        if cfg.fail_open:
            logger.error(
                "rate_limit.fail_open",
                extra={
                    "key_type": key_type,
                    "key_hash": key_hash,
                    "error_code": exc.code,
                },
            )
            return
        logger.error(
            "rate_limit.fail_closed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "error_code": exc.code,
            },
        )
        raise

    fields = build_rate_limit_fields(decision, spec)
    headers = fields.as_headers() if cfg.include_headers else {}

    if fields.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": fields.limit,
                "remaining": fields.remaining,
                "window_s": spec.window_seconds,
            },
        )
        response.headers.update(headers)
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": fields.limit,
            "remaining": fields.remaining,
            "window_s": spec.window_seconds,
            "retry_after_s": fields.retry_after_seconds,
        },
    )
    raise RateLimitExceededError(
        code="rate_limit_exceeded",
        message="Too many requests. Please try again later.",
        details={
            "limit": fields.limit,
            "window_seconds": spec.window_seconds,
            "retry_after": fields.retry_after_seconds,
        },
        headers=headers,
    )
