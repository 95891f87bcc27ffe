"""
MCP Server — stdio surface for the coding agent.

Uses FastMCP from the `mcp` SDK. Every tool delegates to DebugTools and
returns a JSON string; failures are raised as ValueError carrying a
`{"error": {"code", "message"}}` payload so the agent sees a structured
isError response.

Runs on the same event loop as the HTTP server (see __main__), so a blocked
ask_user_questions call is released by POST /api/questions/answer.
"""

import json
import logging
from typing import Any, Awaitable, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from debug_bridge.core.errors import DebugBridgeError
from debug_bridge.core.errors.registry import error_registry
from debug_bridge.models.backlog import BacklogPriority, BacklogStatus
from debug_bridge.services.debug_tools import DEFAULT_RETENTION_DAYS, DebugTools, questions_from_payload

logger = logging.getLogger(__name__)

SERVER_NAME = "debug-mcp-server"


def _format_error(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> str:
    """Format a structured error as JSON string for MCP isError responses."""
    return json.dumps({
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        },
    })


async def _run(name: str, call: Awaitable[Any]) -> str:
    try:
        result = await call
    except DebugBridgeError as e:
        raise ValueError(_format_error(error_registry.slug_for(e.code), e.detail or str(e), {"code": e.code}))
    except Exception:
        logger.exception("Unexpected error in %s", name)
        raise ValueError(_format_error("INTERNAL_ERROR", "An internal error occurred. Check debug-bridge logs for details."))
    return json.dumps(result)


def _status(value: str) -> Optional[BacklogStatus]:
    return BacklogStatus(value) if value else None


def _priority(value: str) -> Optional[BacklogPriority]:
    return BacklogPriority(value) if value else None


def create_mcp_server(tools: DebugTools) -> FastMCP:
    mcp = FastMCP(name=SERVER_NAME)

    # -- reports -------------------------------------------------------

    @mcp.tool()
    async def list_debug_reports() -> str:
        """List all stored debug reports with metadata, newest first."""
        return await _run("list_debug_reports", tools.list_debug_reports())

    @mcp.tool()
    async def get_debug_report(id: str) -> str:
        """Get a specific debug report by ID including full logs, error, and screenshot reference."""
        return await _run("get_debug_report", tools.get_debug_report(id))

    @mcp.tool()
    async def clear_old_reports(olderThanDays: float = DEFAULT_RETENTION_DAYS) -> str:
        """Delete debug reports older than the given number of days (default: 7)."""
        return await _run("clear_old_reports", tools.clear_old_reports(olderThanDays))

    # -- Q&A -----------------------------------------------------------

    @mcp.tool()
    async def ask_user_questions(questions: List[Dict[str, Any]], timeout: int = 0) -> str:
        """Send questions to the browser user and wait for answers. Opens an interactive Q&A modal in the browser.

        Each question needs id, text, type (text | multipleChoice | boolean) and required;
        options apply to multipleChoice. timeout is in milliseconds (0 = server default, 120000).
        """
        try:
            parsed = questions_from_payload(questions)
        except ValueError as e:
            raise ValueError(_format_error("VALIDATION_ERROR", str(e)))
        return await _run("ask_user_questions", tools.ask_user_questions(parsed, timeout or None))

    # -- backlog -------------------------------------------------------

    @mcp.tool()
    async def list_backlog(status: str = "", priority: str = "", projectPath: str = "", limit: int = 0) -> str:
        """List queued debug reports with statistics, sorted by priority (critical > high > medium > low) then newest first."""
        try:
            status_filter, priority_filter = _status(status), _priority(priority)
        except ValueError as e:
            raise ValueError(_format_error("VALIDATION_ERROR", str(e)))
        return await _run("list_backlog", tools.list_backlog(
            status=status_filter,
            priority=priority_filter,
            project_path=projectPath or None,
            limit=limit or None,
        ))

    @mcp.tool()
    async def add_to_backlog(
        reportId: str,
        comment: str,
        url: str,
        timestamp: int,
        projectPath: str = "",
        priority: str = "",
    ) -> str:
        """Queue a debug report for later processing."""
        try:
            priority_value = _priority(priority)
        except ValueError as e:
            raise ValueError(_format_error("VALIDATION_ERROR", str(e)))
        return await _run("add_to_backlog", tools.add_to_backlog(
            report_id=reportId,
            comment=comment,
            url=url,
            timestamp=timestamp,
            project_path=projectPath or None,
            priority=priority_value,
        ))

    @mcp.tool()
    async def get_next_backlog_item() -> str:
        """Get the next highest-priority pending backlog item to process."""
        return await _run("get_next_backlog_item", tools.get_next_backlog_item())

    @mcp.tool()
    async def process_backlog_item(id: str) -> str:
        """Start processing a backlog item. Marks it as in_progress and returns the associated debug report."""
        return await _run("process_backlog_item", tools.process_backlog_item(id))

    @mcp.tool()
    async def resolve_backlog_item(id: str) -> str:
        """Mark a backlog item as resolved (issue fixed)."""
        return await _run("resolve_backlog_item", tools.resolve_backlog_item(id))

    @mcp.tool()
    async def dismiss_backlog_item(id: str) -> str:
        """Dismiss a backlog item (not actionable or duplicate)."""
        return await _run("dismiss_backlog_item", tools.dismiss_backlog_item(id))

    @mcp.tool()
    async def update_backlog_item(id: str, status: str = "", priority: str = "", comment: str = "") -> str:
        """Update a backlog item's status, priority, or comment."""
        try:
            status_value, priority_value = _status(status), _priority(priority)
        except ValueError as e:
            raise ValueError(_format_error("VALIDATION_ERROR", str(e)))
        return await _run("update_backlog_item", tools.update_backlog_item(
            id, status=status_value, priority=priority_value, comment=comment or None,
        ))

    # -- resources -----------------------------------------------------

    @mcp.resource("debug://reports/latest", mime_type="application/json")
    async def latest_report() -> str:
        """Most recent debug report."""
        return await _run("debug://reports/latest", tools.get_latest_report())

    @mcp.resource("debug://reports/{report_id}", mime_type="application/json")
    async def report_by_id(report_id: str) -> str:
        """Debug report by ID."""
        return await _run("debug://reports/{id}", tools.get_debug_report(report_id))

    @mcp.resource("debug://screenshots/{report_id}", mime_type="image/png")
    async def screenshot_by_id(report_id: str) -> bytes:
        """Screenshot attached to a debug report (served as base64 PNG blob)."""
        try:
            return await tools.get_screenshot(report_id)
        except DebugBridgeError as e:
            raise ValueError(_format_error("NOT_FOUND", e.detail))

    return mcp
