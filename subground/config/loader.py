"""Configuration loading and parsing."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

# Both fallbacks are shared with the backend's development setup
DEFAULT_API_BASE_URL = "http://localhost:3001"
DEFAULT_ENCRYPTION_KEY = "subculture-ground-encryption-key-2024"

DEFAULT_CONFIG: Dict[str, Any] = {
    'api': {
        'base_url': DEFAULT_API_BASE_URL,
        'request_timeout': 30,
    },
    'security': {
        'encryption_key': None,
    },
    'runtime': {
        'environment': 'development',
    },
    'logging': {
        'level': 'INFO',
        'console': True,
        'file': None,
    },
}

# Environment variable -> dotted config path
ENV_OVERRIDES = {
    'SUBGROUND_API_BASE_URL': 'api.base_url',
    'SUBGROUND_ENCRYPTION_KEY': 'security.encryption_key',
    'SUBGROUND_ENV': 'runtime.environment',
}


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _set_config_value(config: Dict[str, Any], path: str, value: Any) -> None:
    keys = path.split('.')
    section = config
    for key in keys[:-1]:
        section = section.setdefault(key, {})
    section[keys[-1]] = value


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and parse configuration file.

    Values missing from the file fall back to DEFAULT_CONFIG. Environment
    variables listed in ENV_OVERRIDES win over both.

    Args:
        config_path: Path to config.yaml file. If None, ./config.yaml is used
            when present, otherwise defaults only.

    Returns:
        Parsed configuration dictionary

    Raises:
        ConfigError: If config file cannot be loaded or parsed
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is None:
        candidate = Path.cwd() / "config.yaml"
        path = candidate if candidate.exists() else None
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(
                f"Configuration file not found: {path}\n"
                f"Copy config.yaml.example to config.yaml and configure it."
            )

    if path is not None:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file: {e}")

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration file must contain a YAML dictionary")
        config = _merge(config, loaded)

    for env_name, config_key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            _set_config_value(config, config_key, value)

    return config


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., 'api.base_url')
        default: Default value if path not found

    Returns:
        Configuration value or default

    Example:
        >>> get_config_value(config, 'runtime.environment')
        'development'
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def get_encryption_key(config: Dict[str, Any]) -> str:
    """Configured envelope secret, or the shared development default."""
    return get_config_value(config, 'security.encryption_key') or DEFAULT_ENCRYPTION_KEY


def get_api_base_url(config: Dict[str, Any]) -> str:
    """Configured API origin, or the local development backend."""
    return get_config_value(config, 'api.base_url') or DEFAULT_API_BASE_URL


def is_production(config: Dict[str, Any]) -> bool:
    """True when running as a production build."""
    environment = get_config_value(config, 'runtime.environment', 'development')
    return str(environment).lower() == 'production'
