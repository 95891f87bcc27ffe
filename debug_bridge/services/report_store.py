"""
Report Store
============

Persists browser debug reports as pretty-printed JSON, one file per report,
partitioned by the report's own timestamp:

    <storage>/reports/YYYY-MM-DD/report-{id}.json

There is no secondary index: lookups scan partitions. Fine for a single-user
store with bounded retention.

All public methods are coroutines; filesystem work runs via run_sync so a
pending Q&A wait on the event loop is never starved.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from debug_bridge.core.async_utils import run_sync
from debug_bridge.core.errors import StorageError, ValidationError
from debug_bridge.core.utils import date_partition, days_ago_ms, ensure_dir, is_safe_id
from debug_bridge.models.reports import DebugReport, DeleteResult, ReportSummary

REPORTS_DIRNAME = "reports"
REPORT_PREFIX = "report-"
REPORT_SUFFIX = ".json"


def report_filename(report_id: str) -> str:
    return f"{REPORT_PREFIX}{report_id}{REPORT_SUFFIX}"


def _is_report_file(path: Path) -> bool:
    return path.is_file() and path.name.startswith(REPORT_PREFIX) and path.name.endswith(REPORT_SUFFIX)


class ReportStore:
    """File-per-report storage partitioned by day."""

    def __init__(self, storage_path: str | Path, logger: Optional[logging.Logger] = None):
        self._root = Path(storage_path) / REPORTS_DIRNAME
        self._log = logger or logging.getLogger(__name__)

    @property
    def reports_dir(self) -> Path:
        return self._root

    def partition_dir(self, timestamp_ms: int) -> Path:
        return self._root / date_partition(timestamp_ms)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await run_sync(ensure_dir, self._root)
        self._log.info("Report storage initialized at %s", self._root)

    async def save_report(self, report: DebugReport) -> None:
        """Write a report. Saving the same ID twice overwrites silently."""
        if not is_safe_id(report.id):
            raise ValidationError(detail=f"invalid report id {report.id!r}")
        try:
            path = await run_sync(self._write, report)
        except OSError as e:
            raise StorageError(detail=f"failed to write report {report.id}: {e}", context={"report_id": report.id}) from e
        self._log.info("Saved debug report: %s", report.id, extra={"path": str(path)})

    async def get_report(self, report_id: str) -> Optional[DebugReport]:
        """Return the report, or None when absent or unreadable."""
        if not is_safe_id(report_id):
            return None
        try:
            return await run_sync(self._find, report_id)
        except (OSError, ValueError) as e:
            self._log.error("Error getting report %s: %s", report_id, e)
            return None

    async def list_reports(self) -> List[ReportSummary]:
        """Summaries of every stored report, newest first."""
        try:
            summaries = await run_sync(self._scan_summaries)
        except OSError as e:
            self._log.error("Error listing reports: %s", e)
            return []
        summaries.sort(key=lambda s: s.timestamp, reverse=True)
        return summaries

    async def get_latest_report(self) -> Optional[DebugReport]:
        summaries = await self.list_reports()
        if not summaries:
            return None
        return await self.get_report(summaries[0].id)

    async def delete_old_reports(self, older_than_days: float) -> DeleteResult:
        """Delete reports whose own timestamp is older than the cutoff.

        Partitions left empty are removed. A file that cannot be processed is
        logged and skipped; the sweep carries on.
        """
        cutoff = days_ago_ms(older_than_days)
        try:
            result = await run_sync(self._sweep, cutoff)
        except OSError as e:
            self._log.error("Error deleting old reports: %s", e)
            return DeleteResult()

        self._log.info(
            "Deleted %d old reports, freed %d bytes",
            result.deleted_count, result.freed_bytes,
        )
        return result

    # ------------------------------------------------------------------
    # Blocking helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _partitions(self) -> List[Path]:
        if not self._root.is_dir():
            return []
        return sorted(p for p in self._root.iterdir() if p.is_dir())

    def _write(self, report: DebugReport) -> Path:
        directory = self.partition_dir(report.timestamp)
        ensure_dir(directory)
        path = directory / report_filename(report.id)
        path.write_text(json.dumps(report.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    def _find(self, report_id: str) -> Optional[DebugReport]:
        name = report_filename(report_id)
        for partition in self._partitions():
            candidate = partition / name
            if candidate.is_file():
                return DebugReport.model_validate_json(candidate.read_text(encoding="utf-8"))
        return None

    def _scan_summaries(self) -> List[ReportSummary]:
        summaries: List[ReportSummary] = []
        for partition in self._partitions():
            for path in partition.iterdir():
                if not _is_report_file(path):
                    continue
                try:
                    report = DebugReport.model_validate_json(path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as e:
                    self._log.warning("Failed to read report file %s: %s", path.name, e)
                    continue
                summaries.append(ReportSummary.from_report(report))
        return summaries

    def _sweep(self, cutoff: int) -> DeleteResult:
        result = DeleteResult()
        for partition in self._partitions():
            for path in list(partition.iterdir()):
                if not _is_report_file(path):
                    continue
                try:
                    data = json.loads(path.read_text(encoding="utf-8"))
                    timestamp = int(data["timestamp"])
                    if timestamp < cutoff:
                        size = path.stat().st_size
                        path.unlink()
                        result.deleted_count += 1
                        result.freed_bytes += size
                        self._log.info("Deleted old report: %s", data.get("id", path.stem))
                except (OSError, ValueError, KeyError, TypeError) as e:
                    self._log.warning("Failed to process report file %s: %s", path.name, e)

            try:
                if not any(partition.iterdir()):
                    shutil.rmtree(partition)
            except OSError as e:
                self._log.warning("Failed to remove partition %s: %s", partition.name, e)
        return result
