"""Timestamp helpers shared by event logs, batch results, and JSON logging."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now_str() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
