"""Cross-cutting utilities: configuration and structured logging."""

from .logging import get_smart_logger, log_operation
from .config import get_config

__all__ = ["get_smart_logger", "log_operation", "get_config"]
