"""
FastAPI exception handlers for DebugBridgeError and uncaught exceptions.

Looks up the registry and returns the `{success, error, code}` envelope the
browser widget expects. Unknown codes get a safe fallback.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from debug_bridge.core.errors import DebugBridgeError
from debug_bridge.core.errors.registry import error_registry

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, slug: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": slug},
    )


async def debug_bridge_error_handler(request: Request, exc: DebugBridgeError) -> JSONResponse:
    """Convert DebugBridgeError into a structured JSON response."""
    entry = error_registry.get(exc.code)

    if entry is None:
        logger.error(
            "unregistered_error_code",
            extra={"error.code": exc.code, "error.message": exc.detail},
        )
        return error_response(500, "An unexpected error occurred.", "INTERNAL_ERROR")

    log_extra = {
        "error.code": exc.code,
        "error.kind": type(exc).__name__,
        "error.message": exc.detail,
        "error.retryable": entry.retryable,
        "http.path": request.url.path,
        **{f"error.ctx.{k}": v for k, v in exc.context.items()},
    }
    _severity_to_log_fn(entry.severity)(entry.title, extra=log_extra)

    return error_response(entry.http_status, entry.safe_message, entry.slug)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON bodies get the same envelope as other validation failures."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg')}" if location else "Invalid request body"
    logger.warning("request_validation_failed", extra={"http.path": request.url.path, "errors": len(errors)})
    return error_response(400, message, "VALIDATION_ERROR")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_error", extra={"http.path": request.url.path})
    return error_response(500, "Internal server error", "INTERNAL_ERROR")


def _severity_to_log_fn(severity: str):
    """Map registry severity to logger method."""
    return {
        "DEBUG": logger.debug,
        "INFO": logger.info,
        "WARN": logger.warning,
        "ERROR": logger.error,
        "CRITICAL": logger.critical,
    }.get(severity, logger.error)
