"""Structured event logging for detection runs.

The detection engine never talks to ``logging`` directly; it emits named events
through an injected event logger exposing ``log(event, **fields)``.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, List, Optional, Set

from tonewatch.util.logging import current_call_id
from tonewatch.util.time import utc_now_str


class JsonlEventLogger:
    """Append detection events as JSON lines to one or more files.

    Each event carries the ``call_id`` of the enclosing ``call_context``, so
    worker threads sharing one logger stay distinguishable. ``start_call`` only
    supplies the id for events logged outside any call context.
    """

    def __init__(self, log_path: Path, mirror_paths: Optional[List[Path]] = None):
        self.log_path = log_path
        self.mirror_paths: List[Path] = []
        self._ensure_parent(self.log_path)
        seen: Set[str] = {str(self.log_path.absolute())}
        for mirror in mirror_paths or []:
            resolved = mirror
            if not resolved.is_absolute():
                resolved = (Path.cwd() / resolved).absolute()
            if str(resolved) in seen:
                continue
            self._ensure_parent(resolved)
            self.mirror_paths.append(resolved)
            seen.add(str(resolved))
        self.run_id = f"run-{int(time.time() * 1000)}-pid{os.getpid()}"
        self.current_call: Optional[str] = None
        self._lock = threading.Lock()

    @staticmethod
    def _ensure_parent(path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

    def start_call(self, call_id: str, **metadata: Any) -> None:
        self.current_call = call_id
        self.log("call_start", **metadata)

    def log(self, event: str, **fields: Any) -> None:
        record = {
            "ts": utc_now_str(),
            "run_id": self.run_id,
            "call_id": current_call_id() or self.current_call,
            "event": event,
            **fields,
        }
        line = json.dumps(record, default=float) + "\n"
        with self._lock:
            for target in [self.log_path] + self.mirror_paths:
                try:
                    with target.open("a", encoding="utf-8") as fh:
                        fh.write(line)
                except OSError:
                    continue


class LoggingEventLogger:
    """Forward detection events to a standard library logger."""

    def __init__(self, logger: logging.Logger, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level

    def log(self, event: str, **fields: Any) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        detail = " ".join(f"{key}={_format_field(value)}" for key, value in fields.items())
        self.logger.log(self.level, "%s %s", event, detail)


class RecordingEventLogger:
    """Keep events in memory; handy for callers that post-process a run."""

    def __init__(self) -> None:
        self.events: List[tuple] = []

    def log(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


def _format_field(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)
