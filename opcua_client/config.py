"""
OPC UA client configuration loader.

This module provides the configuration model for the client: request
timeouts, default subscription and monitored-item parameters, and logging.
"""

import copy
import json
from pathlib import Path
from typing import Any, Optional

from .logging import log_info, log_error


def get_default_config() -> dict:
    """
    Get default client configuration.

    Subscription and monitoring defaults match the usual OPC UA client
    defaults (500 ms publishing, 250 ms sampling, queue size 1).

    Returns:
        Default configuration dictionary
    """
    return {
        "client": {
            "request_timeout_s": 4.0,
            "drive_timeout_ms": 1000,
        },
        "subscription": {
            "publishing_interval_ms": 500.0,
            "lifetime_count": 10000,
            "max_keepalive_count": 10,
            "max_notifications_per_publish": 0,
            "priority": 0,
            "extended_decoding": False,
        },
        "monitoring": {
            "sampling_interval_ms": 250.0,
            "queue_size": 1,
        },
        "logging": {
            "level": "INFO",
            "json": False,
            "library_level": "WARNING",
        },
    }


def load_config(config_path: str) -> Optional[dict]:
    """
    Load client configuration from a JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary or None if loading fails
    """
    try:
        path = Path(config_path)
        if not path.exists():
            log_error(f"Configuration file not found: {config_path}")
            return None

        with open(path, 'r') as f:
            raw_config = json.load(f)

        config = build_config(raw_config)
        if config is None:
            return None

        log_info(f"Configuration loaded from {config_path}")
        return config

    except json.JSONDecodeError as e:
        log_error(f"Invalid JSON in configuration file: {e}")
        return None
    except OSError as e:
        log_error(f"Failed to load configuration: {e}")
        return None


def build_config(raw_config: Optional[dict] = None) -> Optional[dict]:
    """
    Merge a partial configuration over the defaults and validate it.

    Args:
        raw_config: Partial configuration, or None for pure defaults

    Returns:
        Complete configuration dictionary or None if validation fails
    """
    config = _normalize_config(raw_config or {})
    if not _validate_config(config):
        return None
    return config


def _normalize_config(raw_config: Any) -> dict:
    """
    Fill missing sections and keys from the defaults.

    Handles both a bare configuration dictionary and the wrapper format
    ``{"config": {...}}``. Unknown sections are dropped.
    """
    if isinstance(raw_config, dict) and "config" in raw_config:
        raw_config = raw_config["config"]

    config = get_default_config()
    if not isinstance(raw_config, dict):
        return config

    for section, defaults in config.items():
        overrides = raw_config.get(section)
        if isinstance(overrides, dict):
            defaults.update(copy.deepcopy(overrides))

    return config


def _validate_config(config: dict) -> bool:
    """
    Validate configuration values.

    Returns:
        True if configuration is valid
    """
    positive = [
        ("client", "request_timeout_s"),
        ("client", "drive_timeout_ms"),
        ("subscription", "publishing_interval_ms"),
        ("subscription", "lifetime_count"),
        ("subscription", "max_keepalive_count"),
    ]
    for section, key in positive:
        value = config[section][key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            log_error(f"{section}.{key} must be a positive number, got {value!r}")
            return False

    non_negative = [
        ("subscription", "max_notifications_per_publish"),
        ("subscription", "priority"),
        ("monitoring", "sampling_interval_ms"),
        ("monitoring", "queue_size"),
    ]
    for section, key in non_negative:
        value = config[section][key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            log_error(f"{section}.{key} must be a non-negative number, got {value!r}")
            return False

    if not isinstance(config["subscription"]["extended_decoding"], bool):
        log_error("subscription.extended_decoding must be true or false")
        return False

    return True
