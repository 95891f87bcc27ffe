"""
debug-bridge HTTP application.

create_app() wires the FastAPI app around one DebugServices instance:
routers under /api, the browser WebSocket at / and /ws, CORS for local
dev servers, request correlation and the structured error envelope.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from debug_bridge.config import Settings, load_settings
from debug_bridge.core.errors import DebugBridgeError
from debug_bridge.core.errors.middleware import (
    debug_bridge_error_handler,
    request_validation_handler,
    unhandled_error_handler,
)
from debug_bridge.core.errors.registry import error_registry
from debug_bridge.core.log_middleware import CorrelationMiddleware
from debug_bridge.core.request_limits import BodySizeLimitMiddleware
from debug_bridge.core.structured_logging import APP_VERSION
from debug_bridge.routers import debug, health, ws
from debug_bridge.services.container import DebugServices, build_services

logger = logging.getLogger(__name__)

API_TITLE = "debug-bridge"
API_DESCRIPTION = "Local bridge between a browser debug widget and a coding agent."

# Browser widget runs on a local dev server on any port
LOCAL_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Loads the error registry, prepares storage, sweeps old data and runs the
    periodic session cleanup until shutdown.
    """
    services: DebugServices = app.state.services
    logger.info("Starting debug-bridge v%s on port %d", APP_VERSION, services.settings.port)

    error_registry.load()
    await services.initialize()
    await services.run_retention()

    cleanup_task = asyncio.create_task(services.session_cleanup_loop())

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    services.sessions.shutdown()
    await services.notifier.drain()
    logger.info("debug-bridge stopped")


def create_app(settings: Optional[Settings] = None, services: Optional[DebugServices] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if services is None:
        services = build_services(settings or load_settings())

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=services.settings.max_report_size)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=LOCAL_ORIGIN_REGEX,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DebugBridgeError, debug_bridge_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(debug.router, prefix="/api", tags=["debug"])
    app.include_router(ws.router)  # WebSocket at / and /ws (no prefix)

    return app
