"""Logging framework with context managers and auto-detection.

- Smart loggers that inject correlation and operation context
- Context managers for scoped operations
- Auto component detection from module paths
"""

import inspect
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Optional

from .multi_file_logger import get_multi_file_logger

# Thread-local storage for context
_local = threading.local()

def _get_component_from_module(module_name: str) -> str:
    """Auto-detect component from module path."""
    # Checked in order, most specific first
    component_map = {
        'utils.config': 'config',
        'query.evaluator': 'evaluator',
        'query.serializer': 'serializer',
        'docquery.query': 'query',
    }

    for pattern, component in component_map.items():
        if pattern in module_name:
            return component

    return 'system'


def _get_correlation_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return getattr(_local, 'correlation_id', None)


def _set_correlation_id(correlation_id: Optional[str]):
    """Set correlation ID for current context."""
    _local.correlation_id = correlation_id


def _get_operation_context() -> Dict[str, Any]:
    """Get current operation context."""
    return getattr(_local, 'operation_context', {})


def _update_operation_context(context: Dict[str, Any]):
    """Update operation context."""
    current = dict(getattr(_local, 'operation_context', {}))
    current.update(context)
    _local.operation_context = current


class SmartLogger:
    """Logger bound to a component that injects scoped context."""

    def __init__(self, component: str = 'system'):
        self._component = component

    @property
    def component(self) -> str:
        return self._component

    def _log(self, level: str, message: str, **kwargs):
        """Internal logging with automatic context injection."""
        kwargs.setdefault('component', self._component)

        correlation_id = _get_correlation_id()
        if correlation_id:
            kwargs['correlation_id'] = correlation_id

        for key, value in _get_operation_context().items():
            kwargs.setdefault(key, value)

        # Resolved per call so a reset singleton (tests) is picked up
        getattr(get_multi_file_logger(), level)(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with auto-context."""
        self._log('info', message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with auto-context."""
        self._log('error', message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with auto-context."""
        self._log('debug', message, **kwargs)

    def isEnabledFor(self, level: int) -> bool:
        """Check if the underlying logger is enabled for ``level``."""
        return get_multi_file_logger().isEnabledFor(level)


@contextmanager
def log_operation(component: Optional[str] = None, operation: str = "operation",
                  correlation_id: Optional[str] = None, **context):
    """Context manager for scoped operation logging with automatic correlation.

    Args:
        component: Component name (auto-detected if not provided)
        operation: Operation name
        correlation_id: Correlation ID (generated if not provided)
        **context: Additional context to include in all logs within scope

    Example:
        with log_operation("evaluator", "process", records=len(records)):
            ...
    """
    if not component:
        frame = inspect.currentframe()
        try:
            # frame.f_back is contextmanager's helper, one more hop reaches the caller
            caller_frame = frame.f_back.f_back or frame.f_back
            module_name = caller_frame.f_globals.get('__name__', 'unknown')
            component = _get_component_from_module(module_name)
        finally:
            del frame

    if not correlation_id:
        correlation_id = str(uuid.uuid4())[:8]

    op_logger = SmartLogger(component)

    prev_correlation_id = _get_correlation_id()
    prev_context = dict(_get_operation_context())

    _set_correlation_id(correlation_id)
    _update_operation_context({'operation': operation, **context})
    op_logger.debug(f"operation_start_{operation}")
    start_time = time.time()

    try:
        yield correlation_id
    except Exception as e:
        op_logger.error(f"operation_error_{operation}",
                        duration_seconds=round(time.time() - start_time, 3),
                        success=False,
                        error=str(e),
                        error_type=type(e).__name__)
        raise
    else:
        op_logger.debug(f"operation_complete_{operation}",
                        duration_seconds=round(time.time() - start_time, 3),
                        success=True)
    finally:
        _set_correlation_id(prev_correlation_id)
        _local.operation_context = prev_context


def get_smart_logger(component: Optional[str] = None) -> SmartLogger:
    """Get a smart logger instance with optional component override.

    Args:
        component: Component name (auto-detected if not provided)

    Returns:
        SmartLogger instance
    """
    if component:
        return SmartLogger(component)

    frame = inspect.currentframe()
    try:
        module_name = frame.f_back.f_globals.get('__name__', 'unknown')
    finally:
        del frame
    return SmartLogger(_get_component_from_module(module_name))
