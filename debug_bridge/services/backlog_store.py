"""
Backlog Store
=============

Queue of triage items derived from debug reports, one JSON file per item:

    <storage>/backlog/backlog-{id}.json

Items are mutated in place by read-merge-write. Two concurrent updates to the
same item can race (last write wins); the daemon is single-user so this is
accepted rather than locked.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from debug_bridge.core.async_utils import run_sync
from debug_bridge.core.errors import StorageError
from debug_bridge.core.utils import days_ago_ms, ensure_dir, is_safe_id, now_ms, random_base36
from debug_bridge.models.backlog import (
    CLOSED_STATUSES,
    PRIORITY_RANK,
    BacklogItem,
    BacklogItemCreate,
    BacklogItemUpdate,
    BacklogPriority,
    BacklogStats,
    BacklogStatus,
)

BACKLOG_DIRNAME = "backlog"
ITEM_PREFIX = "backlog-"
ITEM_SUFFIX = ".json"
NULLABLE_FIELDS = frozenset({"project_path"})


def item_filename(item_id: str) -> str:
    return f"{ITEM_PREFIX}{item_id}{ITEM_SUFFIX}"


def new_item_id(now: Optional[int] = None) -> str:
    return f"bl-{now if now is not None else now_ms()}-{random_base36(6)}"


class BacklogStore:
    def __init__(self, storage_path: str | Path, logger: Optional[logging.Logger] = None):
        self._root = Path(storage_path) / BACKLOG_DIRNAME
        self._log = logger or logging.getLogger(__name__)

    @property
    def backlog_dir(self) -> Path:
        return self._root

    def _path(self, item_id: str) -> Optional[Path]:
        if not is_safe_id(item_id):
            return None
        return self._root / item_filename(item_id)

    async def initialize(self) -> None:
        await run_sync(ensure_dir, self._root)
        self._log.info("Backlog storage initialized at %s", self._root)

    async def add_item(self, fields: BacklogItemCreate) -> BacklogItem:
        """Persist a new item with a time-derived ID and fresh timestamps."""
        now = now_ms()
        item = BacklogItem(
            **fields.model_dump(),
            id=new_item_id(now),
            created_at=now,
            updated_at=now,
        )
        await self._save(item)
        self._log.info("Added backlog item: %s", item.id, extra={"report_id": item.report_id})
        return item

    async def get_item(self, item_id: str) -> Optional[BacklogItem]:
        path = self._path(item_id)
        if path is None:
            return None
        try:
            return await run_sync(self._read, path)
        except (OSError, ValueError):
            return None

    async def update_item(self, item_id: str, updates: BacklogItemUpdate) -> Optional[BacklogItem]:
        """Merge the set fields of ``updates`` into the item; None if absent.

        An explicit None clears a nullable field (``project_path``); on any
        other field it is ignored.
        """
        item = await self.get_item(item_id)
        if item is None:
            return None

        changes = {
            k: v for k, v in updates.model_dump(exclude_unset=True).items()
            if v is not None or k in NULLABLE_FIELDS
        }
        merged = BacklogItem.model_validate({**item.model_dump(), **changes, "updated_at": now_ms()})
        await self._save(merged)
        self._log.info("Updated backlog item: %s", item_id, extra={"fields": sorted(changes)})
        return merged

    async def remove_item(self, item_id: str) -> bool:
        path = self._path(item_id)
        if path is None:
            return False
        try:
            await run_sync(path.unlink)
        except OSError:
            return False
        self._log.info("Removed backlog item: %s", item_id)
        return True

    async def list_items(
        self,
        status: Optional[BacklogStatus] = None,
        priority: Optional[BacklogPriority] = None,
        project_path: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[BacklogItem]:
        """Filtered items, most urgent first, newest first within a priority."""
        try:
            items = await run_sync(self._read_all)
        except OSError as e:
            self._log.error("Error listing backlog items: %s", e)
            return []

        if status is not None:
            items = [i for i in items if i.status == status]
        if priority is not None:
            items = [i for i in items if i.priority == priority]
        if project_path is not None:
            items = [i for i in items if i.project_path == project_path]

        items.sort(key=lambda i: (PRIORITY_RANK[i.priority], -i.created_at))

        if limit:
            return items[:limit]
        return items

    async def get_next_item(self) -> Optional[BacklogItem]:
        """Highest-priority pending item, or None."""
        items = await self.list_items(status=BacklogStatus.PENDING, limit=1)
        return items[0] if items else None

    async def get_stats(self) -> BacklogStats:
        items = await self.list_items()
        stats = BacklogStats(total=len(items))
        for item in items:
            stats.by_status[item.status] += 1
            stats.by_priority[item.priority] += 1
        return stats

    async def cleanup_old_items(self, older_than_days: float) -> int:
        """Remove resolved/dismissed items not touched since the cutoff."""
        cutoff = days_ago_ms(older_than_days)
        deleted = 0
        for item in await self.list_items():
            if item.status in CLOSED_STATUSES and item.updated_at < cutoff:
                if await self.remove_item(item.id):
                    deleted += 1

        self._log.info("Cleaned up %d old backlog items", deleted)
        return deleted

    # ------------------------------------------------------------------

    async def _save(self, item: BacklogItem) -> None:
        path = self._path(item.id)
        try:
            await run_sync(self._write, path, item)
        except OSError as e:
            raise StorageError(detail=f"failed to write backlog item {item.id}: {e}") from e

    @staticmethod
    def _read(path: Path) -> BacklogItem:
        return BacklogItem.model_validate_json(path.read_text(encoding="utf-8"))

    @staticmethod
    def _write(path: Path, item: BacklogItem) -> None:
        ensure_dir(path.parent)
        path.write_text(json.dumps(item.to_json_dict(), indent=2, ensure_ascii=False), encoding="utf-8")

    def _read_all(self) -> List[BacklogItem]:
        if not self._root.is_dir():
            return []
        items: List[BacklogItem] = []
        for path in self._root.iterdir():
            if not (path.name.startswith(ITEM_PREFIX) and path.name.endswith(ITEM_SUFFIX)):
                continue
            try:
                items.append(self._read(path))
            except (OSError, ValueError) as e:
                self._log.warning("Failed to read backlog file %s: %s", path.name, e)
        return items
