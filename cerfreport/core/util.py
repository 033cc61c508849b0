"""Miscellaneous helpers used across the app."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a ``Z`` suffix and millisecond precision."""
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def humanize_timestamp(ts: float) -> str:
    """Return a human readable timestamp string in UTC."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


def compute_etag(payload: Any) -> str:
    """Entity tag for a payload: sha1 of its canonical JSON (unquoted)."""
    return hashlib.sha1(canonical_json(payload).encode("utf-8")).hexdigest()
