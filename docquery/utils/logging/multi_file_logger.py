"""Component-based log file separation.

Each component gets its own log file, with an additional error log that
captures all ERROR level messages across components.

Log Files:
- query.log: Criteria construction, joins and local evaluation
- system.log: Configuration and everything without a known component
- errors.log: All ERROR level messages (cross-component)
"""

import logging
import logging.handlers
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Union

from .logger import LOGGER_NAME, StructuredLogger, _resolve_level, default_log_dir, default_log_level


class MultiFileLogger(StructuredLogger):
    """Logger that routes messages to different files based on component."""

    # Component to log file mapping
    COMPONENT_FILES = {
        'query': 'query.log',
        'evaluator': 'query.log',
        'serializer': 'query.log',
        'system': 'system.log',
        'config': 'system.log',
    }

    def __init__(self, log_dir: str = "logs", level: int = logging.INFO):
        """Initialize multi-file logger.

        Args:
            log_dir: Directory for log files
            level: Logging level (default: INFO)
        """
        self.log_dir = Path(log_dir)
        self.level = level
        self.handlers: Dict[str, logging.Handler] = {}
        self.lock = Lock()

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level)
        self.logger.handlers.clear()
        self.logger.propagate = False

        self._setup_handlers()
        self._setup_error_handler()

    def _setup_handlers(self):
        """Create one handler per log file, shared by aliased components."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

        by_filename: Dict[str, logging.Handler] = {}
        for component, filename in self.COMPONENT_FILES.items():
            handler = by_filename.get(filename)
            if handler is None:
                handler = logging.handlers.RotatingFileHandler(
                    self.log_dir / filename,
                    maxBytes=10*1024*1024,  # 10MB
                    backupCount=5,
                    encoding='utf-8'
                )
                handler.setFormatter(logging.Formatter('%(message)s'))
                handler.setLevel(self.level)
                by_filename[filename] = handler
            self.handlers[component] = handler

    def _setup_error_handler(self):
        """Create special handler for all ERROR level messages."""
        error_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / 'errors.log',
            maxBytes=10*1024*1024,
            backupCount=10,
            encoding='utf-8'
        )
        error_handler.setFormatter(logging.Formatter('%(message)s'))
        error_handler.setLevel(logging.ERROR)
        self.handlers['_errors'] = error_handler

    def _get_handler(self, component: Optional[str]) -> logging.Handler:
        """Get the appropriate handler for a component."""
        if component and component in self.handlers:
            return self.handlers[component]
        return self.handlers['system']

    def _log(self, level: int, message: str, **kwargs):
        """Route a JSON entry to the component file (and errors.log)."""
        if level < self.level:
            return

        record = logging.LogRecord(
            name=self.logger.name,
            level=level,
            pathname="",
            lineno=0,
            msg=self._build_entry(level, message, **kwargs),
            args=(),
            exc_info=None
        )

        with self.lock:
            handler = self._get_handler(kwargs.get('component'))
            if level >= handler.level:
                handler.emit(record)

            if level >= logging.ERROR:
                self.handlers['_errors'].emit(record)

    def configure(self, log_dir: Optional[str] = None, level: Union[int, str, None] = None):
        """Apply settings loaded after startup (e.g. from UnifiedConfig).

        Changing the directory reopens every log file there.
        """
        with self.lock:
            if level is not None:
                self.level = level if isinstance(level, int) else _resolve_level(level)
                self.logger.setLevel(self.level)
                for name, handler in self.handlers.items():
                    if name != '_errors':
                        handler.setLevel(self.level)

            if log_dir is not None and Path(log_dir) != self.log_dir:
                for handler in set(self.handlers.values()):
                    handler.close()
                self.handlers = {}
                self.log_dir = Path(log_dir)
                self._setup_handlers()
                self._setup_error_handler()

    def close(self):
        """Close every file handler (used by tests and at shutdown)."""
        with self.lock:
            for handler in set(self.handlers.values()):
                handler.close()


# Global multi-file logger instance
_multi_logger = None
_multi_logger_lock = Lock()


def get_multi_file_logger() -> MultiFileLogger:
    """Get the global multi-file logger instance (singleton).

    It starts from ``LOG_DIR`` and ``LOG_LEVEL`` because the config layer
    itself logs while loading; once a UnifiedConfig is loaded its
    ``logging`` section is applied on top.
    """
    global _multi_logger
    if _multi_logger is None:
        with _multi_logger_lock:
            if _multi_logger is None:
                _multi_logger = MultiFileLogger(default_log_dir(), default_log_level())
                _apply_loaded_config(_multi_logger)
    return _multi_logger


def _apply_loaded_config(multi_logger: MultiFileLogger):
    from ..config.unified_config import loaded_config

    config = loaded_config()
    if config is not None:
        multi_logger.configure(log_dir=config.log_dir, level=config.log_level)


def reset_multi_file_logger():
    """Drop the singleton so the next call re-reads the logging settings."""
    global _multi_logger

    with _multi_logger_lock:
        if _multi_logger is not None:
            _multi_logger.close()
        _multi_logger = None
