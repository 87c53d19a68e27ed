"""Request correlation middleware.

A login attempt crosses three systems: the client app's backend, this
service and Redis. The backend can pass its own correlation id in
``X-Request-ID`` (header name configurable via ``LOG_REQUEST_ID_HEADER``);
otherwise one is generated. The id is bound to the logging context for the
duration of the request and echoed back, together with the handling time in
``X-Request-Duration-ms``.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from login_limiter.core.config import settings
from login_limiter.core.logging import clear_request_id, set_request_id

MAX_REQUEST_ID_LENGTH = 128


def _resolve_request_id(incoming: str | None) -> str:
    """Reuse the caller's id when it is present and of sane length."""
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    header_name = settings.log.request_id_header
    request_id = _resolve_request_id(request.headers.get(header_name))

    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{elapsed_ms:.2f}")
    return response
