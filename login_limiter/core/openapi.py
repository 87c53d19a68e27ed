"""OpenAPI documentation for the login limiter.

Tag descriptions are passed to the FastAPI constructor; the security scheme
is patched into the generated schema so that, when service keys are
enforced, the docs show ``X-API-Key`` on the rate limit operations only.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

RATE_LIMIT_PATH_PREFIX = "/rate-limit"

OPENAPI_TAGS = [
    {
        "name": "Rate Limit",
        "description": (
            "Check a login attempt before verifying credentials, record failures, "
            "reset after a successful login, and inspect the current state."
        ),
    },
    {
        "name": "Health",
        "description": "Liveness plus the shared store connection status.",
    },
]

API_KEY_SCHEME = {
    "type": "apiKey",
    "in": "header",
    "name": "X-API-Key",
    "description": "Service key of the calling login backend.",
}


def apply_openapi_customizations(app: FastAPI, *, api_key_required: bool = False) -> None:
    """Wrap ``app.openapi`` to add the ``ApiKeyAuth`` scheme.

    Args:
        app: Application whose schema generation is patched.
        api_key_required: Whether rate limit operations are marked as
            requiring the key.
    """
    generate = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = generate()
        schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schemes.setdefault("ApiKeyAuth", API_KEY_SCHEME)

        if api_key_required:
            for path, operations in schema.get("paths", {}).items():
                if not path.startswith(RATE_LIMIT_PATH_PREFIX):
                    continue
                for operation in operations.values():
                    if isinstance(operation, dict):
                        operation["security"] = [{"ApiKeyAuth": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
