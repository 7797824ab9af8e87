"""Structured JSON logger for notionpress.

Each record is one JSON object per line so sync runs can be shipped to a
log pipeline as-is.  Batch workers run on threads, so the thread name is
part of every record.

Typical output::

    {"ts": "2026-01-05T09:30:00.000000+00:00", "level": "INFO",
     "logger": "notionpress.sync", "thread": "notionpress-batch_0",
     "message": "sync complete", "op": "sync_one",
     "source_id": "75424b1c35d0476b836cbb0e776f3f7c", "target_id": "42"}

Usage::

    from notionpress.observability import get_logger

    log = get_logger("notionpress.sync")
    log.info("post created", extra={"extra_fields": {"target_id": "42"}})
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Render log records as single-line JSON.

    Guaranteed keys: ``ts`` (UTC, ISO-8601), ``level``, ``logger``,
    ``thread`` and ``message``.  Structured fields passed through
    ``extra={"extra_fields": {...}}`` are merged into the top level; they
    may not overwrite the guaranteed keys.
    """

    _RESERVED = frozenset({"ts", "level", "logger", "thread", "message"})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(record, "extra_fields", None)
        if extra_fields:
            entry.update(
                (k, v) for k, v in extra_fields.items() if k not in self._RESERVED
            )

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


# One handler per configured logger name; guarded because batch worker
# threads may request loggers concurrently.
_configured_loggers: set[str] = set()
_configure_lock = threading.Lock()


def get_logger(
    name: str = "notionpress",
    *,
    level: int | str = logging.INFO,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Sub-module loggers (``"notionpress.sync"``,
        ``"notionpress.converter"``...) are configured independently.
    level:
        Minimum level, as an ``int`` or a case-insensitive name.  Only
        applied the first time *name* is configured.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        The logger.  Repeated calls with the same *name* never add a second
        handler.
    """
    logger = logging.getLogger(name)

    with _configure_lock:
        if name in _configured_loggers:
            return logger

        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
        logger.setLevel(level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        _configured_loggers.add(name)

    return logger


def set_level(level: int | str) -> None:
    """Change the level of every logger configured through :func:`get_logger`."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    with _configure_lock:
        for name in _configured_loggers:
            logging.getLogger(name).setLevel(level)
