"""
Configuration loading.

Configuration is a plain dict. Defaults are overridden by ``ATHENA_*``
environment variables (a ``.env`` file is honoured), which are in turn
overridden by an explicit dict such as one loaded from ``--config``.
"""

import json
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .core.exceptions import ConfigurationError


DEFAULT_CONFIG: Dict[str, Any] = {
    "store_type": "sqlite",
    "store_config": {"database_path": "athena.db"},
    "max_workers": 4,
    "auto_refresh": True,
    "max_in_values": 30,
    "max_watched_scopes": 256,
    "rest_host": "0.0.0.0",
    "rest_port": 8000,
    "log_level": "INFO",
}

# Environment variable -> (config key, parser)
_ENVIRONMENT = {
    "ATHENA_STORE_TYPE": ("store_type", str),
    "ATHENA_DATABASE_PATH": ("database_path", str),
    "ATHENA_MAX_WORKERS": ("max_workers", int),
    "ATHENA_AUTO_REFRESH": ("auto_refresh", lambda value: value.strip().lower() in ("1", "true", "yes", "on")),
    "ATHENA_MAX_IN_VALUES": ("max_in_values", int),
    "ATHENA_MAX_WATCHED_SCOPES": ("max_watched_scopes", int),
    "ATHENA_REST_HOST": ("rest_host", str),
    "ATHENA_REST_PORT": ("rest_port", int),
    "ATHENA_LOG_LEVEL": ("log_level", str),
}


def load_config(overrides: Optional[Dict[str, Any]] = None, env_file: Optional[str] = None) -> Dict[str, Any]:
    """Build the effective configuration."""
    load_dotenv(env_file)

    config = dict(DEFAULT_CONFIG)
    config["store_config"] = dict(DEFAULT_CONFIG["store_config"])

    for variable, (key, parse) in _ENVIRONMENT.items():
        raw = os.getenv(variable)
        if raw is None or raw == "":
            continue
        try:
            value = parse(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid value for {variable}: {raw!r}")
        if key == "database_path":
            config["store_config"]["database_path"] = value
        else:
            config[key] = value

    for key, value in (overrides or {}).items():
        if key == "store_config" and isinstance(value, dict):
            config["store_config"].update(value)
        else:
            config[key] = value

    if config["store_type"] == "memory":
        config["store_config"].pop("database_path", None)
    if int(config["max_workers"]) < 0:
        raise ConfigurationError("max_workers cannot be negative")
    if int(config["max_watched_scopes"]) < 1:
        raise ConfigurationError("max_watched_scopes must be at least 1")
    return config


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a JSON configuration file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {str(e)}")
