"""
Logging formatters for graph_link.

Log calls attach connection context through ``extra=`` (``operation_id`` for
frames, ``state`` for transitions). The structured formatter groups those
fields under ``context``; the console formatter appends the operation id to
the line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else came from ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record through ``extra=``."""
    return {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        context = record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name and tags operation ids."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: Optional[bool] = None,
    ) -> None:
        """
        Args:
            fmt: Log format string
            datefmt: Date format string
            use_colors: Force colors on or off; detected from stderr when None
        """
        super().__init__(fmt, datefmt)
        if use_colors is None:
            use_colors = sys.platform != "win32" and getattr(sys.stderr, "isatty", lambda: False)()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color:
            record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            line = super().format(record)
        finally:
            record.levelname = levelname

        operation_id = getattr(record, "operation_id", None)
        if operation_id:
            tag = f"[{operation_id}]"
            line = f"{line} {self.DIM}{tag}{self.RESET}" if self.use_colors else f"{line} {tag}"
        return line
