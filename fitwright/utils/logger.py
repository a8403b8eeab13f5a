# fitwright/utils/logger.py
from __future__ import annotations

"""Logging
----------
Rich console output plus JSON lines for files. Every record carries the run
context (batch, script, run id, row, command) so a run.log can be filtered
per row without parsing messages.

    log = get_logger(__name__)
    bind(script="login", run_id="2026-10-18_12-00-00")
    with_context(log, row=3, command="click").info("running")
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from rich.console import Console
from rich.highlighter import NullHighlighter
from rich.logging import RichHandler

from fitwright.utils.config import LogLevel, Settings, get_settings

__all__ = [
    "CONTEXT_FIELDS",
    "configure",
    "get_logger",
    "set_log_level",
    "bind",
    "unbind",
    "with_context",
    "attach_run_log",
    "detach_run_log",
]

# Context keys emitted as top-level JSON fields, in this order.
CONTEXT_FIELDS = ("batch_id", "script", "run_id", "row", "command")

_RUN_LOG_BYTES = 5 * 1024 * 1024
_QUIET_LOGGERS = ("asyncio", "playwright")

_lock = threading.Lock()
_configured = False
_bound: Dict[str, Any] = {}


class ContextAdapter(logging.LoggerAdapter):
    """Attaches bound context, plus the adapter's own keys, as `record.context`."""

    def process(self, msg, kwargs):
        context = dict(_bound)
        context.update(self.extra or {})
        kwargs.setdefault("extra", {})["context"] = context
        return msg, kwargs


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: time, level, logger, message, run context, error."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        context = _context_of(record)
        for key in CONTEXT_FIELDS:
            if context.get(key) is not None:
                payload[key] = context[key]
        rest = {k: v for k, v in context.items() if k not in CONTEXT_FIELDS}
        if rest:
            payload["context"] = rest
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Prefixes console lines with `[script row:command]` while a script runs."""

    def format(self, record: logging.LogRecord) -> str:
        context = _context_of(record)
        where = []
        if context.get("script"):
            where.append(str(context["script"]))
        if context.get("row") is not None:
            where.append(f"#{context['row']}" + (f":{context['command']}" if context.get("command") else ""))
        message = record.getMessage()
        return f"[{' '.join(where)}] {message}" if where else message


def _level_number(level: LogLevel | str) -> int:
    name = level.value if isinstance(level, LogLevel) else str(level)
    return getattr(logging, name.upper(), logging.INFO)


def configure(settings: Optional[Settings] = None, *, force: bool = False) -> None:
    """Install the console (and optional LOG_FILE) handlers on the root logger once."""
    global _configured
    with _lock:
        if _configured and not force:
            return
        s = settings or get_settings()
        level = _level_number(s.LOG_LEVEL)

        root = logging.getLogger()
        root.setLevel(level)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        console = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
            highlighter=None if s.COLORIZED_OUTPUT else NullHighlighter(),
        )
        console.setFormatter(ConsoleFormatter())
        root.addHandler(console)

        if s.LOG_TO_FILE:
            root.addHandler(_json_file_handler(s.LOG_FILE, level, backups=5))

        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))
        _configured = True


def _json_file_handler(path: os.PathLike | str, level: int, *, backups: int) -> logging.Handler:
    p = os.fspath(path)
    os.makedirs(os.path.dirname(p) or ".", exist_ok=True)
    handler = RotatingFileHandler(p, maxBytes=_RUN_LOG_BYTES, backupCount=backups, encoding="utf-8", delay=True)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def get_logger(name: Optional[str] = None) -> ContextAdapter:
    configure()
    return ContextAdapter(logging.getLogger(name or "fitwright"), {})


def set_log_level(level: LogLevel | str) -> None:
    configure()
    number = _level_number(level)
    root = logging.getLogger()
    root.setLevel(number)
    for handler in root.handlers:
        handler.setLevel(number)


def bind(**context: Any) -> None:
    """Add keys to the context of every following record."""
    _bound.update(context)


def unbind(*keys: str) -> None:
    for key in keys:
        _bound.pop(key, None)


def with_context(logger: logging.LoggerAdapter, **context: Any) -> ContextAdapter:
    """Logger for a scoped section (e.g. one row) with extra context keys."""
    return ContextAdapter(logger.logger, context)


def attach_run_log(path: os.PathLike | str) -> logging.Handler:
    """Mirror all records as JSON lines into `path` until `detach_run_log`."""
    configure()
    root = logging.getLogger()
    handler = _json_file_handler(path, root.level, backups=3)
    root.addHandler(handler)
    return handler


def detach_run_log(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()
