"""Request identity extraction for rate limiting.

Key functions turn a request into the opaque key the limiter counts against.
An empty string means "no identity": the rate limit dependency lets such
requests through without a decision.
"""

from __future__ import annotations

import ipaddress
from typing import Callable

from fastapi import Request

from app.core.config import KeyStrategy, RateLimitSettings

KeyFunc = Callable[[Request], str]


def client_ip(request: Request) -> str:
    """Return the best-effort client address.

    Prefers the first X-Forwarded-For hop, then X-Real-IP, then the socket
    peer. Returns an empty string when none is available.
    """

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip

    return request.client.host if request.client else ""


def ip_key_func(request: Request) -> str:
    ip = client_ip(request)
    return f"ip:{ip}" if ip else ""


def user_key_func(request: Request) -> str:
    """Key on the authenticated user id, falling back to the client IP.

    The user id is read from ``request.state.user_id`` (set by an upstream
    auth layer) or the X-User-ID header.
    """

    user_id = getattr(request.state, "user_id", None) or request.headers.get("X-User-ID")
    if user_id:
        return f"user:{user_id}"
    return ip_key_func(request)


def api_key_func(request: Request) -> str:
    """Key on a bearer token or X-API-Key header, falling back to the client IP."""

    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer ") and authorization[7:].strip():
        return f"api_key:{authorization[7:].strip()}"

    x_api_key = request.headers.get("X-API-Key")
    if x_api_key:
        return f"api_key:{x_api_key}"

    return ip_key_func(request)


def composite_key_func(*funcs: KeyFunc) -> KeyFunc:
    """Join the non-empty, distinct keys produced by ``funcs`` with ':'."""

    def key_func(request: Request) -> str:
        parts: list[str] = []
        for func in funcs:
            key = func(request)
            if key and key not in parts:
                parts.append(key)
        return ":".join(parts)

    return key_func


KEY_FUNCS: dict[str, KeyFunc] = {
    "ip": ip_key_func,
    "user": user_key_func,
    "api_key": api_key_func,
    "composite": composite_key_func(user_key_func, api_key_func),
}


def get_key_func(strategy: KeyStrategy) -> KeyFunc:
    return KEY_FUNCS[strategy]


def is_internal_ip(ip: str) -> bool:
    """Return True for loopback and private-range addresses."""

    if ip == "localhost":
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_loopback or address.is_private


def should_skip(request: Request, cfg: RateLimitSettings) -> bool:
    """Decide whether a request bypasses rate limiting entirely.

    Args:
        request: Incoming request.
        cfg: Rate limit settings (skip paths, whitelist, internal IPs).

    Returns:
        True if the request must not be counted.
    """

    if request.url.path in cfg.skip_paths:
        return True

    ip = client_ip(request)
    if ip and ip in cfg.whitelist:
        return True
    return bool(cfg.skip_internal_ips and ip and is_internal_ip(ip))
