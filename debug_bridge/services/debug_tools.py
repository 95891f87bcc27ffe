"""
Agent-facing tool layer.

Thin async facade over the stores and the session coordinator, returning
JSON-ready dicts. The MCP server registers these as tools/resources; keeping
them here lets tests drive the tool semantics without an MCP transport.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from debug_bridge.core.errors import BacklogItemNotFoundError, ReportNotFoundError
from debug_bridge.models.backlog import (
    BacklogItem,
    BacklogItemCreate,
    BacklogItemUpdate,
    BacklogPriority,
    BacklogStatus,
)
from debug_bridge.models.questions import Question
from debug_bridge.services.container import DebugServices

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7


class DebugTools:
    def __init__(self, services: DebugServices) -> None:
        self._s = services

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def list_debug_reports(self) -> Dict[str, Any]:
        logger.debug("MCP Tool: list_debug_reports")
        reports = await self._s.reports.list_reports()
        return {"reports": [r.to_json_dict() for r in reports]}

    async def get_debug_report(self, report_id: str) -> Dict[str, Any]:
        logger.debug("MCP Tool: get_debug_report", extra={"report_id": report_id})
        report = await self._s.reports.get_report(report_id)
        if report is None:
            raise ReportNotFoundError(detail=f"Report not found: {report_id}")
        return report.to_json_dict()

    async def clear_old_reports(self, older_than_days: float = DEFAULT_RETENTION_DAYS) -> Dict[str, Any]:
        logger.debug("MCP Tool: clear_old_reports", extra={"older_than_days": older_than_days})
        result = await self._s.reports.delete_old_reports(older_than_days)
        return result.to_json_dict()

    async def get_latest_report(self) -> Dict[str, Any]:
        report = await self._s.reports.get_latest_report()
        if report is None:
            raise ReportNotFoundError(detail="No reports found")
        return report.to_json_dict()

    async def get_screenshot(self, report_id: str) -> bytes:
        data = await self._s.screenshots.get_screenshot(report_id)
        if data is None:
            raise ReportNotFoundError(detail=f"Screenshot not found: {report_id}")
        return data

    # ------------------------------------------------------------------
    # Q&A
    # ------------------------------------------------------------------

    async def ask_user_questions(
        self,
        questions: Sequence[Question],
        timeout_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Push questions to the browser and block until answered or timed out."""
        logger.debug("MCP Tool: ask_user_questions", extra={"questions": len(questions)})
        answers = await self._s.sessions.ask(questions, timeout_ms)
        return {"answers": [a.to_json_dict() for a in answers]}

    # ------------------------------------------------------------------
    # Backlog
    # ------------------------------------------------------------------

    async def list_backlog(
        self,
        status: Optional[BacklogStatus] = None,
        priority: Optional[BacklogPriority] = None,
        project_path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        backlog = self._s.backlog
        items = await backlog.list_items(status=status, priority=priority, project_path=project_path, limit=limit)
        stats = await backlog.get_stats()
        return {"items": [i.to_json_dict() for i in items], "stats": stats.to_json_dict()}

    async def add_to_backlog(
        self,
        report_id: str,
        comment: str,
        url: str,
        timestamp: int,
        project_path: Optional[str] = None,
        priority: Optional[BacklogPriority] = None,
    ) -> Dict[str, Any]:
        item = await self._s.backlog.add_item(BacklogItemCreate(
            report_id=report_id,
            project_path=project_path,
            comment=comment,
            url=url,
            timestamp=timestamp,
            priority=priority or BacklogPriority.MEDIUM,
            status=BacklogStatus.PENDING,
        ))
        return item.to_json_dict()

    async def update_backlog_item(
        self,
        item_id: str,
        status: Optional[BacklogStatus] = None,
        priority: Optional[BacklogPriority] = None,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        item = await self._update(item_id, BacklogItemUpdate(status=status, priority=priority, comment=comment or None))
        return item.to_json_dict()

    async def get_next_backlog_item(self) -> Optional[Dict[str, Any]]:
        item = await self._s.backlog.get_next_item()
        return item.to_json_dict() if item else None

    async def process_backlog_item(self, item_id: str) -> Dict[str, Any]:
        """Mark an item in_progress and return it with its report (if still stored)."""
        item = await self._update(item_id, BacklogItemUpdate(status=BacklogStatus.IN_PROGRESS))
        report = await self._s.reports.get_report(item.report_id)
        return {
            "backlogItem": item.to_json_dict(),
            "report": report.to_json_dict() if report else None,
        }

    async def resolve_backlog_item(self, item_id: str) -> Dict[str, Any]:
        item = await self._update(item_id, BacklogItemUpdate(status=BacklogStatus.RESOLVED))
        return item.to_json_dict()

    async def dismiss_backlog_item(self, item_id: str) -> Dict[str, Any]:
        item = await self._update(item_id, BacklogItemUpdate(status=BacklogStatus.DISMISSED))
        return item.to_json_dict()

    async def _update(self, item_id: str, updates: BacklogItemUpdate) -> BacklogItem:
        item = await self._s.backlog.update_item(item_id, updates)
        if item is None:
            raise BacklogItemNotFoundError(detail=f"Backlog item not found: {item_id}")
        return item


def questions_from_payload(raw: List[Dict[str, Any]]) -> List[Question]:
    return [Question.model_validate(q) for q in raw]
