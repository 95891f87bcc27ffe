"""
Access logging with a per-request ID.

The ID comes from the caller's X-Request-ID header when present. It is put
in request_id_var so every record logged while the request runs carries it,
and it is echoed back on the response.
"""
from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from debug_bridge.core.structured_logging import request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by the widget every few seconds
QUIET_PATHS = frozenset({"/api/health"})


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        token = request_id_var.set(request_id)
        started = time.monotonic()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            elapsed_ms = round((time.monotonic() - started) * 1000, 1)
            if status >= 500:
                log = logger.error
            elif request.url.path in QUIET_PATHS:
                log = logger.debug
            else:
                log = logger.info
            log(
                "request_completed",
                extra={
                    "http.method": request.method,
                    "http.path": request.url.path,
                    "http.status_code": status,
                    "duration_ms": elapsed_ms,
                },
            )
            request_id_var.reset(token)
