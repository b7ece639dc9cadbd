"""Unified configuration system with clear precedence."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv

from .constants import (
    CONFIG_FILE_ENV_VAR,
    DEFAULT_CONFIG_FILE,
    DEFAULT_MAX_POLYGON_POINTS,
    UNSUPPORTED_OFFLINE_OPERATORS,
)

# Import logger lazily to avoid circular imports
logger = None


def _get_logger():
    """Lazy logger initialization to avoid circular imports."""
    global logger
    if logger is None:
        from ..logging import get_smart_logger
        logger = get_smart_logger()
    return logger


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


class UnifiedConfig:
    """Unified configuration with clear precedence:

    Precedence (highest to lowest):
    1. Environment variables (``.env`` is loaded first, without overriding)
    2. query_config.json
    3. Code defaults
    """

    def __init__(self, config_file: Optional[str] = None):
        load_dotenv(override=False)

        self._config_file = config_file or os.getenv(CONFIG_FILE_ENV_VAR, DEFAULT_CONFIG_FILE)
        self._config: Dict[str, Any] = {}
        self._defaults = self._get_code_defaults()

        self._load_json_config()
        self._apply_env_overrides()

        _get_logger().info("unified_config_loaded",
                           config_file=self._config_file,
                           config_sections=list(self._config.keys()))

    def _get_code_defaults(self) -> Dict[str, Any]:
        """Code defaults as fallback."""
        return {
            "query": {
                "unsupported_offline_operators": list(UNSUPPORTED_OFFLINE_OPERATORS),
                "recursive_offline_check": False,
                "max_polygon_points": DEFAULT_MAX_POLYGON_POINTS,
            },
            "logging": {
                "level": "INFO",
                "external_logs_dir": "logs",
            },
        }

    def _load_json_config(self):
        """Load configuration from JSON file."""
        config_path = Path(self._config_file)
        if not config_path.exists():
            _get_logger().debug("config_file_not_found",
                                path=str(config_path),
                                using_defaults=True)
            self._config = self._deep_merge(self._defaults, {})
            return

        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            _get_logger().error("config_file_load_error",
                                path=str(config_path),
                                error=str(e),
                                using_defaults=True)
            self._config = self._deep_merge(self._defaults, {})
            return

        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a JSON object")

        self._config = self._deep_merge(self._defaults, file_config)
        _get_logger().info("config_file_loaded",
                           path=str(config_path),
                           sections=list(file_config.keys()))

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        env_mappings = {
            'QUERY_RECURSIVE_OFFLINE_CHECK': 'query.recursive_offline_check',
            'QUERY_MAX_POLYGON_POINTS': 'query.max_polygon_points',

            'LOG_LEVEL': 'logging.level',
            'LOG_DIR': 'logging.external_logs_dir',
        }

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                converted_value = self._convert_env_value(value)
                self._set_nested_value(self._config, config_path, converted_value)
                _get_logger().debug("env_override_applied",
                                    env_var=env_var,
                                    config_path=config_path,
                                    value=converted_value)

    def _convert_env_value(self, value: str) -> Union[str, int, float, bool]:
        """Convert environment variable string to appropriate type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            if '.' not in value:
                return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dictionaries."""
        result = {
            key: self._deep_merge(value, {}) if isinstance(value, dict) else value
            for key, value in base.items()
        }

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _set_nested_value(self, config: Dict, path: str, value: Any):
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            path: Dot-separated path like 'query.max_polygon_points'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        current = self._config

        try:
            for key in path.split('.'):
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def to_dict(self) -> Dict[str, Any]:
        return self._deep_merge(self._config, {})

    # Property shortcuts for common values
    @property
    def unsupported_offline_operators(self) -> List[str]:
        operators = self.get('query.unsupported_offline_operators', list(UNSUPPORTED_OFFLINE_OPERATORS))
        if isinstance(operators, str):
            operators = [operators]
        if not isinstance(operators, (list, tuple)):
            raise ConfigError("query.unsupported_offline_operators must be a list of operator names")
        return list(operators)

    @property
    def recursive_offline_check(self) -> bool:
        return bool(self.get('query.recursive_offline_check', False))

    @property
    def max_polygon_points(self) -> int:
        value = self.get('query.max_polygon_points', DEFAULT_MAX_POLYGON_POINTS)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"query.max_polygon_points must be a positive integer, got {value!r}")
        return value

    @property
    def log_level(self) -> Union[str, int]:
        return self.get('logging.level', 'INFO')

    @property
    def log_dir(self) -> str:
        return str(self.get('logging.external_logs_dir', 'logs'))


_config: Optional[UnifiedConfig] = None


def get_config() -> UnifiedConfig:
    """Get the process-wide configuration (singleton).

    The ``logging`` section is pushed to the file logger on first load.
    """
    global _config
    if _config is None:
        _config = UnifiedConfig()
        from ..logging import get_multi_file_logger
        get_multi_file_logger().configure(log_dir=_config.log_dir, level=_config.log_level)
    return _config


def loaded_config() -> Optional[UnifiedConfig]:
    """The cached configuration, without loading it."""
    return _config


def reset_config():
    """Forget the cached configuration so the next access reloads it."""
    global _config
    _config = None
