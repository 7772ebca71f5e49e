"""Configuration validation."""

import logging
from typing import Dict, Any, List
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ['development', 'test', 'production']
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class ValidationError(Exception):
    """Configuration validation errors."""
    pass


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary from loader

    Raises:
        ValidationError: If configuration is invalid
    """
    errors = []

    errors.extend(_validate_api(config.get('api', {})))
    errors.extend(_validate_security(config.get('security', {})))
    errors.extend(_validate_runtime(config.get('runtime', {})))
    errors.extend(_validate_logging(config.get('logging', {})))

    if errors:
        raise ValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )


def _validate_api(section: Dict[str, Any]) -> List[str]:
    """Validate api section."""
    errors = []

    base_url = section.get('base_url')
    if base_url is not None:
        if not isinstance(base_url, str):
            errors.append("api.base_url must be a string")
        else:
            parsed = urlparse(base_url)
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                errors.append(f"api.base_url must be an http(s) URL: {base_url}")

    timeout = section.get('request_timeout', 30)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        errors.append("api.request_timeout must be a number")
    elif timeout <= 0:
        errors.append("api.request_timeout must be positive")

    return errors


def _validate_security(section: Dict[str, Any]) -> List[str]:
    """Validate security section."""
    errors = []

    key = section.get('encryption_key')
    if key is not None and not isinstance(key, str):
        errors.append("security.encryption_key must be a string")
    elif not key:
        # Value intentionally not logged
        logger.warning("security.encryption_key not set, using the shared development default")

    return errors


def _validate_runtime(section: Dict[str, Any]) -> List[str]:
    """Validate runtime section."""
    errors = []

    environment = section.get('environment', 'development')
    if environment not in VALID_ENVIRONMENTS:
        errors.append(
            f"runtime.environment must be one of {VALID_ENVIRONMENTS}, got: {environment}"
        )

    return errors


def _validate_logging(section: Dict[str, Any]) -> List[str]:
    """Validate logging section."""
    errors = []

    level = section.get('level', 'INFO')
    if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"logging.level must be one of {VALID_LOG_LEVELS}")

    log_file = section.get('file')
    if log_file is not None and not isinstance(log_file, str):
        errors.append("logging.file must be a path string")

    return errors
