"""Unified configuration system for docquery."""

from .unified_config import UnifiedConfig, ConfigError, get_config, reset_config

# Star import acceptable for config constants
from .constants import *  # noqa: F403

__all__ = [
    'UnifiedConfig',
    'ConfigError',
    'get_config',
    'reset_config',
]
