"""
Shared helpers for IDs, data URIs, paths and time.
"""

from __future__ import annotations

import base64
import binascii
import math
import re
import secrets
import string
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

MS_PER_DAY = 24 * 60 * 60 * 1000

DATA_URI_PATTERN = re.compile(r"^data:([^;]+);base64,(.+)$")

# Record IDs end up in filenames; anything else is treated as absent.
SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id(length: int = 8) -> str:
    """Random lowercase hex ID of ``length`` characters."""
    return secrets.token_hex(math.ceil(length / 2))[:length]


def random_base36(length: int = 6) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def is_safe_id(value: str) -> bool:
    return bool(value) and bool(SAFE_ID_PATTERN.match(value))


def extract_base64(data_uri: str) -> Optional[Tuple[bytes, str]]:
    """Split a ``data:<mime>;base64,<payload>`` URI into (bytes, mime).

    Returns None if the URI does not match or the payload is not valid base64.
    """
    match = DATA_URI_PATTERN.match(data_uri or "")
    if not match:
        return None

    mime_type, payload = match.group(1), match.group(2)
    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None
    return data, mime_type


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def date_partition(timestamp_ms: int) -> str:
    """YYYY-MM-DD (local time) for an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d")


def days_ago_ms(days: float, now: Optional[int] = None) -> int:
    """Epoch-millisecond cutoff ``days`` before ``now``."""
    return (now if now is not None else now_ms()) - int(days * MS_PER_DAY)


def format_bytes(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    idx = min(int(math.floor(math.log(num_bytes, 1024))), len(units) - 1)
    value = round(num_bytes / (1024 ** idx), 2)
    return f"{value:g} {units[idx]}"
