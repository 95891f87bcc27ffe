"""
Structured logging with structlog.

Every record, whether it comes from a structlog logger or from a plain
logging.getLogger(__name__) call, is rendered as one JSON line with the
service name, version and whichever correlation IDs (request, Q&A session,
report) are bound in the current context.

Console output goes to stderr: stdout carries the MCP stdio transport.
"""
from __future__ import annotations

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import List, Optional

import structlog

from debug_bridge import __version__

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)
report_id_var: ContextVar[str | None] = ContextVar("report_id", default=None)

APP_VERSION = __version__
SERVICE_NAME = "debug-bridge"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_CORRELATION_VARS = (
    ("request_id", request_id_var),
    ("session_id", session_id_var),
    ("report_id", report_id_var),
)

# Third-party loggers that drown the useful lines at INFO
_QUIET_LOGGERS = ("httpcore", "httpx", "asyncio", "uvicorn.access", "mcp")


def _inject_context(logger_name: str, method_name: str, event_dict: dict) -> dict:
    """Structlog processor: service identity plus correlation IDs."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", APP_VERSION)
    for key, var in _CORRELATION_VARS:
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def _lowercase_level(logger_name: str, method_name: str, event_dict: dict) -> dict:
    level = event_dict.get("level")
    if level:
        event_dict["level"] = level.lower()
    return event_dict


def _shared_processors() -> List:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _lowercase_level,
        structlog.stdlib.add_logger_name,
        _inject_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _json_formatter(shared: List) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        # ExtraAdder carries stdlib `extra={...}` fields into the JSON line
        foreign_pre_chain=[*shared, structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
    )


def _rotating_file_handler(
    log_dir: Path, log_file: str, max_bytes: int, backup_count: int,
) -> Optional[logging.Handler]:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            log_dir / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        # Unwritable log dir: stderr only
        print(f"debug-bridge: file logging disabled ({e})", file=sys.stderr)
        return None


def setup_logging(
    log_dir: str | Path | None = "logs",
    log_file: str = "debug-bridge.jsonl",
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    log_level: str | int = logging.INFO,
) -> None:
    """Route structlog and stdlib logging to JSON on stderr (+ rotating file).

    Call once at startup, before any logging calls. Pass ``log_dir=None`` to
    log to stderr only.
    """
    if isinstance(log_level, str):
        log_level = LOG_LEVELS.get(log_level.lower(), logging.INFO)

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    formatter = _json_formatter(shared)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir:
        file_handler = _rotating_file_handler(Path(log_dir), log_file, max_bytes, backup_count)
        if file_handler is not None:
            handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
