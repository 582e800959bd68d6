"""Logging setup for memento.

Library modules only ever call `logging.getLogger(__name__)` (or get_logger
for a context-carrying adapter); handlers and formatting are installed once by
the application through configure_logging.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes every LogRecord carries; anything else came from `extra` or an adapter
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class StructuredJSONFormatter(logging.Formatter):
    """Render each record as a single JSON line.

    Shape:
    {
        "level": "WARNING",
        "message": "Evicting unreadable cache entry ...",
        "timestamp": "2026-01-29T12:00:00.000000+00:00",
        "context": {"logger_name": ..., "module": ..., "function": ..., "line": ..., ...}
    }

    Adapter context and `extra=` fields are merged into "context". Values
    without a JSON form are rendered with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        context = self._record_context(record)
        if record.exc_info:
            context.update(self._exception_context(record))
        context.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )

        return json.dumps(
            {
                "level": record.levelname,
                "message": record.getMessage(),
                "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "context": context,
            },
            default=str,
        )

    @staticmethod
    def _record_context(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "logger_name": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.thread,
            "thread_name": record.threadName,
            "process": record.process,
        }

    def _exception_context(self, record: logging.LogRecord) -> dict[str, Any]:
        exc_type, exc_value, _ = record.exc_info or (None, None, None)
        return {
            "error_type": exc_type.__name__ if exc_type else None,
            "error_message": str(exc_value) if exc_value else None,
            "stack_trace": record.exc_text or self.formatException(record.exc_info),
        }


def _quiet_http_loggers() -> None:
    # httpx logs every request at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.ERROR)


def configure_logging(
    level: str = "INFO",
    format_string: str | None = None,
    filename: str | None = None,
    structured: bool = False,
) -> None:
    """Install a single root handler, replacing any previous configuration.

    Args:
        level: Level name, case-insensitive (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Text format; defaults to DEFAULT_FORMAT, ignored when structured
        filename: Append to this file instead of stdout
        structured: Emit JSON lines via StructuredJSONFormatter

    Examples:
        >>> configure_logging(level="debug")
        >>> configure_logging(structured=True, filename="memento.jsonl")
    """
    handler: logging.Handler = (
        logging.FileHandler(filename) if filename else logging.StreamHandler(sys.stdout)
    )
    handler.setFormatter(
        StructuredJSONFormatter()
        if structured
        else logging.Formatter(format_string or DEFAULT_FORMAT)
    )

    logging.basicConfig(level=getattr(logging, level.upper()), handlers=[handler], force=True)
    _quiet_http_loggers()


def get_logger(name: str, **context: Any) -> logging.Logger | logging.LoggerAdapter:
    """Return a logger, wrapped in a LoggerAdapter when context is given.

    Example:
        >>> log = get_logger(__name__, memoized="reports.build")
        >>> log.warning("Cache read failed")  # record carries memoized="reports.build"
    """
    logger = logging.getLogger(name)
    if context:
        return logging.LoggerAdapter(logger, context)
    return logger
