"""OpenAPI metadata and customization utilities.

Provides a helper to enrich the generated OpenAPI schema with:
- Tags metadata
- Rate limit response headers and the 429 response on gated operations

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.services.rate_limit_response import (
    HEADER_LIMIT,
    HEADER_REMAINING,
    HEADER_RESET,
    HEADER_RETRY_AFTER,
)

_UNGATED_PATHS = {"/health", "/ping", "/ready"}

_HEADER_DOCS = {
    HEADER_LIMIT: "Requests allowed per window.",
    HEADER_REMAINING: "Requests left in the current window.",
    HEADER_RESET: "UNIX epoch seconds when the window resets.",
}


def _header_schema(description: str) -> Dict[str, Any]:
    return {"description": description, "schema": {"type": "integer"}}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and rate limit docs.

    - Adds tags metadata if not present
    - Documents X-RateLimit-* headers on every gated operation's 200 response
    - Adds a 429 response with Retry-After to gated operations
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        # Tags metadata
        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {
                "name": "Rate Limit",
                "description": "Direct sliding-window rate limit decisions.",
            },
            {
                "name": "Protected",
                "description": "Sample endpoints gated by the rate limiter.",
            },
            {
                "name": "Health",
                "description": "Liveness and readiness checks (never rate limited).",
            },
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        paths = schema.get("paths", {})
        for path, methods in paths.items():
            if path in _UNGATED_PATHS:
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                ok = responses.setdefault("200", {"description": "Successful Response"})
                ok_headers = ok.setdefault("headers", {})
                for name, description in _HEADER_DOCS.items():
                    ok_headers.setdefault(name, _header_schema(description))

                limited = responses.setdefault("429", {"description": "Rate limit exceeded"})
                limited_headers = limited.setdefault("headers", {})
                for name, description in _HEADER_DOCS.items():
                    limited_headers.setdefault(name, _header_schema(description))
                limited_headers.setdefault(
                    HEADER_RETRY_AFTER,
                    _header_schema("Seconds to wait before retrying."),
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
