"""
Request body size guard.

Rejects requests whose declared Content-Length exceeds the configured
report size before the body is read. Screenshots arrive inline as base64,
so this is the main memory guard for /api/debug.
"""
from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from debug_bridge.core.errors.middleware import error_response

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_bytes: int) -> None:
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
            logger.warning(
                "payload_too_large",
                extra={"http.path": request.url.path, "content_length": int(content_length)},
            )
            return error_response(413, "Payload too large", "PAYLOAD_TOO_LARGE")
        return await call_next(request)
