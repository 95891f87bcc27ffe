"""
Backlog Models
==============

Triage items queued from debug reports for later processing by the agent.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import Field

from debug_bridge.models.base import CamelModel


class BacklogPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BacklogStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# Lower rank sorts first
PRIORITY_RANK: Dict[BacklogPriority, int] = {
    BacklogPriority.CRITICAL: 0,
    BacklogPriority.HIGH: 1,
    BacklogPriority.MEDIUM: 2,
    BacklogPriority.LOW: 3,
}

CLOSED_STATUSES = frozenset({BacklogStatus.RESOLVED, BacklogStatus.DISMISSED})


class BacklogItemCreate(CamelModel):
    """Caller-supplied fields for a new backlog item."""
    report_id: str = Field(description="Weak reference; the report may since have been swept")
    project_path: Optional[str] = None
    comment: str = ""
    url: str = ""
    timestamp: int
    priority: BacklogPriority = BacklogPriority.MEDIUM
    status: BacklogStatus = BacklogStatus.PENDING


class BacklogItem(BacklogItemCreate):
    id: str
    created_at: int
    updated_at: int


class BacklogItemUpdate(CamelModel):
    """Partial update. Unset fields are left alone."""
    report_id: Optional[str] = None
    project_path: Optional[str] = None
    comment: Optional[str] = None
    url: Optional[str] = None
    timestamp: Optional[int] = None
    priority: Optional[BacklogPriority] = None
    status: Optional[BacklogStatus] = None


class BacklogStats(CamelModel):
    total: int = 0
    by_status: Dict[BacklogStatus, int] = Field(
        default_factory=lambda: {s: 0 for s in BacklogStatus}
    )
    by_priority: Dict[BacklogPriority, int] = Field(
        default_factory=lambda: {p: 0 for p in BacklogPriority}
    )
