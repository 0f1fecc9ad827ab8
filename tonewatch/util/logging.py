"""Logging setup for tonewatch.

Everything logs under the ``tonewatch`` logger. Console output goes to stderr;
an optional JSON-lines file captures the same records for machine parsing.
While a call is being analysed, ``call_context`` tags every record with its
``call_id`` so interleaved worker output can be told apart.

Usage:
    from tonewatch.util.logging import call_context, configure_logging, get_logger

    configure_logging(level="DEBUG", json_file="tonewatch.log.jsonl")
    logger = get_logger(__name__)
    with call_context("call-1234"):
        logger.info("analysing")
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import sys
import traceback
from typing import Any, Dict, Iterator, Optional

from tonewatch.util.time import utc_now_str

ROOT_LOGGER = "tonewatch"
CONTEXT_FIELDS = ("call_id", "tone_set_id", "profile", "error_type", "duration_ms")

_configured = False
_current_call: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("tonewatch_call_id", default=None)


@contextlib.contextmanager
def call_context(call_id: str) -> Iterator[None]:
    """Tag records logged inside the block with ``call_id``."""
    token = _current_call.set(call_id)
    try:
        yield
    finally:
        _current_call.reset(token)


def current_call_id() -> Optional[str]:
    """The ``call_id`` of the enclosing ``call_context``, if any."""
    return _current_call.get()


class CallContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "call_id", None) is None:
            call_id = current_call_id()
            if call_id is not None:
                record.call_id = call_id
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": utc_now_str(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """``[time] LEVEL [module] message (call=...)``, colored on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"
        module = record.name[len(ROOT_LOGGER) + 1:] if record.name.startswith(ROOT_LOGGER + ".") else record.name
        line = f"[{self.formatTime(record, self.datefmt)}] {level} [{module}] {record.getMessage()}"
        call_id = getattr(record, "call_id", None)
        if call_id is not None:
            line += f" (call={call_id})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _level_from_env() -> str:
    if os.environ.get("TONEWATCH_DEBUG", "").strip().lower() in ("1", "true", "yes"):
        return "DEBUG"
    return os.environ.get("TONEWATCH_LOG_LEVEL", "INFO")


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[str] = None,
    use_color: bool = True,
) -> None:
    """(Re)configure the ``tonewatch`` logger.

    ``level`` defaults to TONEWATCH_LOG_LEVEL, or DEBUG when TONEWATCH_DEBUG is
    set. Calling again replaces the previous handlers.
    """
    global _configured

    numeric_level = getattr(logging, str(level or _level_from_env()).upper(), logging.INFO)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = []
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ConsoleFormatter(use_color=use_color))
    handlers.append(console)
    json_error: Optional[OSError] = None
    if json_file:
        try:
            json_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
        except OSError as exc:
            json_error = exc
        else:
            json_handler.setFormatter(JSONFormatter())
            handlers.append(json_handler)

    context = CallContextFilter()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.addFilter(context)
        logger.addHandler(handler)
    logger.propagate = False
    _configured = True

    if json_error is not None:
        logger.warning("cannot open JSON log file %s: %s", json_file, json_error)


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` under the tonewatch namespace, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    if name == "__main__":
        name = f"{ROOT_LOGGER}.main"
    elif name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    error_type: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log the exception being handled, with structured context.

    Only meaningful inside an ``except`` block.
    """
    fields = dict(extra)
    if error_type:
        fields["error_type"] = error_type
    logger.exception(message, extra=fields)
