"""
Logging for the 123pan offline driver.

Records are tagged with the task being worked on through ``LogContext``.
The tags live in a ``ContextVar``, so every asyncio task (a poll cycle, an
admin request) carries its own and overlapping operations never see each
other's. Output goes to stdout and an optional rotating file, as text or
JSON lines, and into the in-memory buffer served by ``GET /api/logs``.
"""

import json
import logging
import logging.handlers
import sys
from collections import deque
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Deque, Dict, List, Mapping, Optional

from .config import Settings

# Fields LogContext may attach to a record
TASK_FIELDS = ("task_id", "task_name", "save_path", "folder_id", "operation")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "aiohttp": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}

# Never mutated in place; LogContext always sets a fresh mapping
_task_context: ContextVar[Mapping[str, Any]] = ContextVar("pan123_task_context", default={})


def current_context() -> Dict[str, Any]:
    return dict(_task_context.get())


class LogContext:
    """
    Tag every record logged inside the block with task fields.

    Nested blocks add to the enclosing tags. Leaving a block restores exactly
    what was there on entry, whatever other coroutines did in between.

    Usage:
        with LogContext(task_id="5000", operation="reconcile"):
            logger.info("Moving files")
    """

    def __init__(self, **fields):
        unknown = sorted(set(fields) - set(TASK_FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context fields: {', '.join(unknown)}")
        self.fields = fields
        self._token = None

    def __enter__(self):
        self._token = _task_context.set({**_task_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _task_context.reset(self._token)
        self._token = None
        return False


class TaskContextFilter(logging.Filter):
    """Copy the current task tags onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _task_context.get().items():
            setattr(record, key, value)
        return True


def _task_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {}
    for name in TASK_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


def _utc_timestamp(created: float) -> str:
    stamp = datetime.fromtimestamp(created, timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, with the task tags as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_task_fields(record),
        }
        if record.exc_info and record.exc_info[0]:
            line["exception_type"] = record.exc_info[0].__name__
            line["exception"] = self.formatException(record.exc_info)
        # File names are often CJK; keep them readable
        return json.dumps(line, default=str, ensure_ascii=False)


class TaskTextFormatter(logging.Formatter):
    """Plain text line followed by ``[task_id=..., operation=...]`` when tagged."""

    def __init__(self):
        super().__init__(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        tags = _task_fields(record)
        suffix = ", ".join(f"{key}={tags[key]}" for key in ("task_id", "operation") if key in tags)
        return f"{message} [{suffix}]" if suffix else message


class ActivityLogHandler(logging.Handler):
    """Keeps the most recent records as plain dicts for the admin API."""

    def __init__(self, capacity: int = 1000, level: int = logging.INFO):
        super().__init__(level=level)
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        # Handler.handle() holds self.lock around emit
        try:
            entry = {
                "timestamp": _utc_timestamp(record.created),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            for name in TASK_FIELDS:
                entry[name] = getattr(record, name, None)
            self._entries.append(entry)
        except Exception:
            self.handleError(record)

    def recent(
        self,
        limit: int = 100,
        level: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Newest entries, oldest first.

        Args:
            limit: Maximum number of entries to return
            level: Only entries at or above this level name
            task_id: Only entries tagged with this offline task id
        """
        if limit <= 0:
            return []
        threshold = logging.getLevelName(level.upper()) if level else logging.NOTSET
        if not isinstance(threshold, int):
            threshold = logging.NOTSET

        with self.lock:
            entries = list(self._entries)

        matched = [
            entry for entry in entries
            if logging.getLevelName(entry["level"]) >= threshold
            and (task_id is None or entry["task_id"] == task_id)
        ]
        return [dict(entry) for entry in matched[-limit:]]


def setup_logging(settings: Settings) -> ActivityLogHandler:
    """
    Replace the root handlers with stdout, an optional rotating file and the
    activity buffer, all tagged by ``TaskContextFilter``. Returns the buffer.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_size_mb * 1024 * 1024,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        ))
    for handler in handlers:
        handler.setFormatter(JsonLineFormatter() if settings.log_format == "json" else TaskTextFormatter())

    activity = ActivityLogHandler(capacity=settings.activity_log_size)
    handlers.append(activity)

    context_filter = TaskContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).info(
        f"Logging configured: level={settings.log_level}, format={settings.log_format}, "
        f"file={settings.log_file or 'none'}"
    )
    return activity
