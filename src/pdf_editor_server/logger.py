"""Structured JSON logger for the PDF editor pipeline.

Every record is written to stdout as a single JSON object:
{"time":"2026-02-03T14:06:20.829529-05:00","level":"INFO","source":{"function":"parse_bytes","file":"pdf_parser.py","line":88},"msg":"pdf parsed","total_pages":3}
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

# Fields attached to every record emitted in the current context (e.g. file_name during a parse)
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.now(timezone.utc).astimezone().isoformat(),
            "level": record.levelname,
            "source": {
                "function": record.funcName,
                "file": os.path.basename(record.pathname),
                "line": record.lineno,
            },
            "msg": record.getMessage(),
        }

        ctx_fields = _log_context.get()
        if ctx_fields:
            entry.update(ctx_fields)

        if hasattr(record, "extra_fields"):
            entry.update(record.extra_fields)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class StructuredLogger:
    """Logger emitting structured JSON records with keyword fields."""

    def __init__(self, name: str = "pdf_editor_server", level: str | None = None):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level or os.getenv("LOG_LEVEL", "INFO").upper())

        self._logger.handlers.clear()
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        self._logger.addHandler(handler)

        # pytest's caplog hooks the root logger, so keep propagation on
        self._logger.propagate = True

    def set_level(self, level: str) -> None:
        """Change the minimum level, e.g. from the CLI."""
        self._logger.setLevel(level.upper())

    def _log(
        self,
        level: int,
        msg: str,
        stacklevel: int = 3,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        extra = {"extra_fields": fields} if fields else {}
        self._logger.log(level, msg, stacklevel=stacklevel, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, **fields)

    def warn(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, **fields)

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        """Log an error; pass exc_info=True inside an except block to attach the traceback."""
        self._log(logging.ERROR, msg, exc_info=exc_info, **fields)


def set_context(**fields: Any) -> None:
    """Attach fields to all subsequent records in this context.

    Example:
        set_context(file_name="report.pdf")
        logger.info("parsing page", page_number=2)  # includes file_name
    """
    current = _log_context.get()
    _log_context.set({**current, **fields})


def clear_context() -> None:
    """Drop all context fields."""
    _log_context.set({})


def get_context() -> dict[str, Any]:
    """Return a copy of the current context fields."""
    return _log_context.get().copy()


def restore_context(fields: dict[str, Any]) -> None:
    """Replace the context with fields saved earlier by get_context()."""
    _log_context.set(dict(fields))


logger = StructuredLogger("pdf_editor_server")
