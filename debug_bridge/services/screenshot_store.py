"""
Screenshot Store — one PNG blob per report ID.

    <storage>/screenshots/screenshot-{reportId}.png

Saving under an existing report ID overwrites the previous image.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from debug_bridge.core.async_utils import run_sync
from debug_bridge.core.errors import InvalidDataUriError, PayloadTooLargeError, StorageError
from debug_bridge.core.utils import ensure_dir, extract_base64, is_safe_id

SCREENSHOTS_DIRNAME = "screenshots"


def screenshot_filename(report_id: str) -> str:
    return f"screenshot-{report_id}.png"


class ScreenshotStore:
    def __init__(
        self,
        storage_path: str | Path,
        max_bytes: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._root = Path(storage_path) / SCREENSHOTS_DIRNAME
        self._max_bytes = max_bytes
        self._log = logger or logging.getLogger(__name__)

    @property
    def screenshots_dir(self) -> Path:
        return self._root

    def _path(self, report_id: str) -> Optional[Path]:
        if not is_safe_id(report_id):
            return None
        return self._root / screenshot_filename(report_id)

    async def initialize(self) -> None:
        await run_sync(ensure_dir, self._root)
        self._log.info("Screenshot storage initialized at %s", self._root)

    async def save_screenshot(self, report_id: str, data_uri: str) -> str:
        """Decode a base64 image data URI and store it.

        Raises:
            InvalidDataUriError: malformed URI, bad base64, or non-image MIME type.
            PayloadTooLargeError: decoded image exceeds max_bytes.
            StorageError: the file could not be written.
        """
        path = self._path(report_id)
        if path is None:
            raise InvalidDataUriError(detail=f"invalid report id {report_id!r}")

        extracted = extract_base64(data_uri)
        if extracted is None:
            raise InvalidDataUriError(detail="Invalid base64 data URI")

        data, mime_type = extracted
        if not mime_type.startswith("image/"):
            raise InvalidDataUriError(
                detail=f"Invalid MIME type: {mime_type}. Expected image/*",
                context={"mime_type": mime_type},
            )
        if self._max_bytes is not None and len(data) > self._max_bytes:
            raise PayloadTooLargeError(
                detail=f"screenshot is {len(data)} bytes, limit {self._max_bytes}",
                context={"report_id": report_id},
            )

        try:
            await run_sync(self._write, path, data)
        except OSError as e:
            raise StorageError(detail=f"failed to write screenshot for {report_id}: {e}") from e

        self._log.info("Saved screenshot for report: %s", report_id, extra={"bytes": len(data)})
        return path.name

    async def get_screenshot(self, report_id: str) -> Optional[bytes]:
        path = self._path(report_id)
        if path is None:
            return None
        try:
            return await run_sync(path.read_bytes)
        except OSError:
            self._log.warning("Screenshot not found for report: %s", report_id)
            return None

    async def delete_screenshot(self, report_id: str) -> bool:
        path = self._path(report_id)
        if path is None:
            return False
        try:
            await run_sync(path.unlink)
        except OSError as e:
            self._log.warning("Failed to delete screenshot for report %s: %s", report_id, e)
            return False
        self._log.info("Deleted screenshot for report: %s", report_id)
        return True

    async def get_screenshot_size(self, report_id: str) -> int:
        path = self._path(report_id)
        if path is None:
            return 0
        try:
            stat = await run_sync(path.stat)
        except OSError:
            return 0
        return stat.st_size

    def _write(self, path: Path, data: bytes) -> None:
        ensure_dir(path.parent)
        path.write_bytes(data)
