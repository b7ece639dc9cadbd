"""Structured JSON logging for the query engine.

Every entry is written as a single JSON line so offline query activity can be
grepped and replayed alongside the transport layer's own logs.

Key features:
- JSON structured entries with a UTC timestamp and level
- Level resolution from names such as ``DEBUG``
- Environment defaults for the log directory and level
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAME = "docquery"


def _resolve_level(level_name: Optional[str]) -> int:
    """Map a level name such as 'DEBUG' to its numeric value."""
    if not level_name:
        return logging.INFO
    level = logging.getLevelName(str(level_name).upper())
    return level if isinstance(level, int) else logging.INFO


class StructuredLogger:
    """Base for JSON-line loggers; subclasses decide where entries go."""

    level: int = logging.INFO

    def _build_entry(self, level: int, message: str, **kwargs) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": logging.getLevelName(level),
            "message": message,
            **kwargs
        }
        return json.dumps(entry, default=str)

    def _log(self, level: int, message: str, **kwargs):
        raise NotImplementedError

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.level

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self._log(logging.ERROR, message, **kwargs)


def default_log_dir() -> str:
    return os.getenv("LOG_DIR", "logs")


def default_log_level() -> int:
    return _resolve_level(os.getenv("LOG_LEVEL"))
