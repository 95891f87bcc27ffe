"""
Service wiring.

build_services() constructs every store, the session coordinator and the
browser push channel from one Settings object. The HTTP app and the MCP
server share the same DebugServices instance.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from debug_bridge.config import Settings
from debug_bridge.core.utils import format_bytes
from debug_bridge.services.backlog_store import BacklogStore
from debug_bridge.services.notifier import ConnectionRegistry, QuestionNotifier
from debug_bridge.services.question_sessions import QuestionSessionManager
from debug_bridge.services.report_store import ReportStore
from debug_bridge.services.screenshot_store import ScreenshotStore

logger = logging.getLogger(__name__)


@dataclass
class DebugServices:
    settings: Settings
    reports: ReportStore
    screenshots: ScreenshotStore
    backlog: BacklogStore
    sessions: QuestionSessionManager
    connections: ConnectionRegistry
    notifier: QuestionNotifier

    async def initialize(self) -> None:
        await self.reports.initialize()
        await self.screenshots.initialize()
        await self.backlog.initialize()

    async def run_retention(self) -> None:
        """Startup sweep of old reports and closed backlog items."""
        days = self.settings.retention_days
        result = await self.reports.delete_old_reports(days)
        if result.deleted_count:
            logger.info(
                "Cleaned up %d old reports, freed %s",
                result.deleted_count, format_bytes(result.freed_bytes),
            )
        removed = await self.backlog.cleanup_old_items(days)
        if removed:
            logger.info("Cleaned up %d old backlog items", removed)

    async def session_cleanup_loop(self) -> None:
        """Evict aged Q&A sessions every session_cleanup_interval_s."""
        while True:
            await asyncio.sleep(self.settings.session_cleanup_interval_s)
            self.sessions.cleanup(self.settings.session_max_age_ms)


def build_services(settings: Settings) -> DebugServices:
    storage = settings.storage_path
    sessions = QuestionSessionManager(default_timeout_ms=settings.question_timeout_ms)
    connections = ConnectionRegistry()
    notifier = QuestionNotifier(connections, sessions.get_session)
    sessions.set_notifier(notifier)

    return DebugServices(
        settings=settings,
        reports=ReportStore(storage),
        screenshots=ScreenshotStore(storage, max_bytes=settings.max_screenshot_size),
        backlog=BacklogStore(storage),
        sessions=sessions,
        connections=connections,
        notifier=notifier,
    )
