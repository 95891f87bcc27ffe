"""
Debug Report Models
===================

Pydantic models for browser-submitted debug reports and the summaries
returned by the report store.
"""

from typing import List, Literal, Optional

from pydantic import Field

from debug_bridge.models.base import CamelModel

LogLevel = Literal["log", "info", "warn", "error", "debug"]


class LogEntry(CamelModel):
    """One captured console line."""
    level: LogLevel
    message: str
    timestamp: int
    stack: Optional[str] = None


class ErrorInfo(CamelModel):
    """Uncaught JavaScript error captured by the widget."""
    message: str
    stack: str = ""
    file_name: Optional[str] = None
    line_number: Optional[int] = None
    column_number: Optional[int] = None


class AttachedFile(CamelModel):
    filename: str
    content: str  # base64
    mime_type: str


class DebugReport(CamelModel):
    """A stored debug report. Immutable once written."""
    id: str
    timestamp: int = Field(description="Creation instant, epoch ms; drives the date partition")
    url: str
    user_agent: str = "Unknown"
    logs: List[LogEntry] = Field(default_factory=list)
    error: Optional[ErrorInfo] = None
    screenshot: Optional[str] = Field(None, description="Screenshot filename, not inline bytes")
    comment: str = ""
    files: Optional[List[AttachedFile]] = None


class ReportSummary(CamelModel):
    id: str
    timestamp: int
    url: str
    has_error: bool
    has_screenshot: bool
    comment: str

    @classmethod
    def from_report(cls, report: DebugReport) -> "ReportSummary":
        return cls(
            id=report.id,
            timestamp=report.timestamp,
            url=report.url,
            has_error=report.error is not None,
            has_screenshot=bool(report.screenshot),
            comment=report.comment,
        )


class DeleteResult(CamelModel):
    deleted_count: int = 0
    freed_bytes: int = 0


class SubmitDebugReportRequest(CamelModel):
    """POST /api/debug body. Missing required fields are reported by the router."""
    logs: Optional[List[LogEntry]] = None
    url: Optional[str] = None
    timestamp: Optional[int] = None
    comment: str = ""
    user_agent: Optional[str] = None
    error: Optional[ErrorInfo] = None
    screenshot: Optional[str] = Field(None, description="base64 data URI")
    files: Optional[List[AttachedFile]] = None
