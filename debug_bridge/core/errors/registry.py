"""
Error registry.

registry.yaml is the single catalogue of DBG-* codes: the HTTP status, the
browser-safe message and the short slug (`SESSION_NOT_FOUND`, ...) that
appears in the `code` field of every error envelope. It is validated as a
whole on load; one bad entry rejects the file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping

import yaml

from debug_bridge.core.errors import CODE_PATTERN

logger = logging.getLogger(__name__)

BUNDLED_REGISTRY = Path(__file__).with_name("registry.yaml")

VALID_DOMAINS = frozenset({"VAL", "NF", "SES", "STO", "SYS"})
VALID_SEVERITIES = frozenset({"DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"})
REQUIRED_FIELDS = ("code", "domain", "title", "slug", "severity", "retryable", "http_status", "safe_message")

FALLBACK_SLUG = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ErrorEntry:
    code: str
    domain: str
    title: str
    slug: str
    severity: str
    retryable: bool
    http_status: int
    safe_message: str
    remediation: List[str] = field(default_factory=list)


class RegistryValidationError(Exception):
    """registry.yaml is structurally invalid."""


def _parse_entry(idx: int, raw: Mapping[str, Any]) -> ErrorEntry:
    if not isinstance(raw, Mapping):
        raise RegistryValidationError(f"entry #{idx} is not a mapping")

    missing = [name for name in REQUIRED_FIELDS if name not in raw]
    if missing:
        raise RegistryValidationError(f"entry #{idx} ({raw.get('code', '?')}) lacks {', '.join(missing)}")

    code = raw["code"]
    if not CODE_PATTERN.match(code):
        raise RegistryValidationError(f"entry #{idx}: malformed code {code!r}")

    domain = raw["domain"]
    if domain not in VALID_DOMAINS:
        raise RegistryValidationError(f"{code}: unknown domain {domain!r}")
    if code.split("-")[1] != domain:
        raise RegistryValidationError(f"{code}: domain {domain!r} does not match the code")

    if raw["severity"] not in VALID_SEVERITIES:
        raise RegistryValidationError(f"{code}: unknown severity {raw['severity']!r}")

    status = int(raw["http_status"])
    if not 400 <= status <= 599:
        raise RegistryValidationError(f"{code}: http_status {status} is not an error status")

    return ErrorEntry(
        code=code,
        domain=domain,
        title=raw["title"],
        slug=raw["slug"],
        severity=raw["severity"],
        retryable=bool(raw["retryable"]),
        http_status=status,
        safe_message=raw["safe_message"],
        remediation=list(raw.get("remediation") or []),
    )


class ErrorRegistry:
    """Code → ErrorEntry catalogue. Empty until load() is called."""

    def __init__(self) -> None:
        self._by_code: Dict[str, ErrorEntry] = {}
        self.schema_version = 0

    def load(self, path: str | Path | None = None) -> None:
        source = Path(path) if path is not None else BUNDLED_REGISTRY
        document = yaml.safe_load(source.read_text(encoding="utf-8")) or {}

        raw_entries = document.get("errors", [])
        if not isinstance(raw_entries, list):
            raise RegistryValidationError("'errors' must be a list")

        parsed: Dict[str, ErrorEntry] = {}
        for idx, raw in enumerate(raw_entries):
            entry = _parse_entry(idx, raw)
            if entry.code in parsed:
                raise RegistryValidationError(f"{entry.code} is listed twice")
            parsed[entry.code] = entry

        # Swap only after the whole file validated
        self._by_code = parsed
        self.schema_version = int(document.get("schema_version", 0))
        logger.info("error_registry_loaded", extra={"count": len(parsed), "source": source.name})

    def get(self, code: str) -> ErrorEntry | None:
        return self._by_code.get(code)

    def lookup(self, code: str) -> ErrorEntry:
        try:
            return self._by_code[code]
        except KeyError:
            raise KeyError(f"Unknown error code: {code!r}") from None

    def slug_for(self, code: str) -> str:
        entry = self._by_code.get(code)
        return entry.slug if entry else FALLBACK_SLUG

    def all_codes(self) -> List[str]:
        return sorted(self._by_code)

    def __iter__(self) -> Iterator[ErrorEntry]:
        return iter(self._by_code.values())

    def __len__(self) -> int:
        return len(self._by_code)


error_registry = ErrorRegistry()
