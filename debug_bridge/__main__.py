"""
Process entry point.

Invocation:
    python -m debug_bridge [--port 4000] [--storage-path ~/.debug-mcp] [--no-mcp]

Runs the HTTP/WebSocket server and the MCP stdio server on one event loop so
the Q&A coordinator is shared between them. stdout belongs to the MCP
transport; all logging goes to stderr and the rotating JSON log file.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

import uvicorn

from debug_bridge.config import Settings, load_settings
from debug_bridge.core.errors.registry import error_registry
from debug_bridge.core.structured_logging import setup_logging
from debug_bridge.main import create_app
from debug_bridge.mcp_server import create_mcp_server
from debug_bridge.services.container import build_services
from debug_bridge.services.debug_tools import DebugTools

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="debug-bridge", description="Browser debug bridge + MCP server")
    parser.add_argument("--host", help="HTTP bind address (default 127.0.0.1)")
    parser.add_argument("--port", type=int, help="HTTP/WebSocket port (default 4000)")
    parser.add_argument("--storage-path", help="Data directory (default ~/.debug-mcp)")
    parser.add_argument("--log-level", choices=["debug", "info", "warn", "error"])
    parser.add_argument("--no-mcp", action="store_true", help="Run the HTTP server only, without MCP stdio")
    return parser.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.storage_path:
        overrides["storage_path"] = args.storage_path
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.no_mcp:
        overrides["mcp_stdio"] = False
    return overrides


async def serve(settings: Settings) -> None:
    services = build_services(settings)
    app = create_app(services=services)

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,  # keep the structlog handlers installed by setup_logging
        log_level=logging.getLogger().level,
    ))

    if not settings.mcp_stdio:
        await server.serve()
        return

    # Tool errors are mapped through the registry even before HTTP startup finishes
    error_registry.load()
    mcp = create_mcp_server(DebugTools(services))

    http_task = asyncio.create_task(server.serve(), name="http")
    mcp_task = asyncio.create_task(mcp.run_stdio_async(), name="mcp-stdio")

    done, pending = await asyncio.wait({http_task, mcp_task}, return_when=asyncio.FIRST_COMPLETED)
    logger.info("%s finished, shutting down", next(iter(done)).get_name())

    if http_task in pending:
        server.should_exit = True
        await http_task
    for task in pending - {http_task}:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    for task in done:
        task.result()


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    settings = load_settings(**overrides_from_args(args))
    setup_logging(log_dir=str(settings.resolved_log_dir), log_level=settings.log_level)

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
