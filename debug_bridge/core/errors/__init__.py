"""
Error code system.

DebugBridgeError is the base exception for all structured errors.
Raise one of the subclasses below (or the base with a registry code) and the
error middleware will produce a structured JSON response.

Usage:
    from debug_bridge.core.errors import InvalidDataUriError
    raise InvalidDataUriError(detail="missing ';base64,' marker")
"""

from __future__ import annotations

import re
from typing import ClassVar, Optional

CODE_PATTERN = re.compile(r"^DBG-[A-Z]{2,6}-\d{3}$")


class DebugBridgeError(Exception):
    """Structured application error tied to the error registry.

    Args:
        code: Registry error code, e.g. "DBG-SES-001". Subclasses carry a default.
        detail: Internal-only detail message (never exposed to users).
        context: Arbitrary key-value context for structured logging.
    """

    default_code: ClassVar[str] = "DBG-SYS-001"

    def __init__(
        self,
        code: Optional[str] = None,
        detail: str | None = None,
        context: dict | None = None,
    ) -> None:
        code = code or self.default_code
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class ValidationError(DebugBridgeError):
    """Caller supplied malformed input."""

    default_code = "DBG-VAL-001"


class InvalidDataUriError(ValidationError):
    default_code = "DBG-VAL-002"


class PayloadTooLargeError(ValidationError):
    default_code = "DBG-VAL-003"


class NotFoundError(DebugBridgeError):
    default_code = "DBG-NF-001"


class ReportNotFoundError(NotFoundError):
    default_code = "DBG-NF-002"


class BacklogItemNotFoundError(NotFoundError):
    default_code = "DBG-NF-003"


class SessionNotFoundError(NotFoundError):
    default_code = "DBG-SES-001"


class SessionTimeoutError(DebugBridgeError):
    """A Q&A session expired before it was answered."""

    default_code = "DBG-SES-002"


class StorageError(DebugBridgeError):
    """Filesystem failure during read/write/delete."""

    default_code = "DBG-STO-001"
