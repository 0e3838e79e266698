"""
Configuration management for site archive dumps.
Simple YAML-based configuration with sensible defaults.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

ENV_PREFIX = "SITE_ARCHIVE_"

CONFIG_FILE_NAMES = ("site-archive.yml", ".site-archive.yml")

DEFAULT_CONFIG = {
    "site": {
        "root": ".",
        "docroot_names": ["web", "docroot"],
        "files_path": None,
    },
    "staging": {
        "base_directory": "~/site-archive-backups",
    },
    "database": {
        # sqlite, command or none
        "driver": "none",
        "path": None,
        "command": [],
        "timeout": None,
    },
    "manifest": {
        "generator": None,
        "generator_version": None,
    },
    "code": {
        "exclude_paths": [],
    },
}


def load_config(
    config_path: Optional[str] = None, search_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Load configuration from YAML file with fallback to defaults.

    Args:
        config_path: Optional path to config file (must exist when given)
        search_dir: Directory searched for site-archive.yml when no path is
            given (defaults to the current directory)

    Returns:
        Configuration dictionary
    """
    if config_path:
        config_file = Path(config_path)
        if not config_file.is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        base = Path(search_dir) if search_dir else Path.cwd()
        config_file = None
        for name in CONFIG_FILE_NAMES:
            if (base / name).is_file():
                config_file = base / name
                break

    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_file is not None:
        with open(config_file, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}

        if not isinstance(user_config, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")

        config = _deep_merge(config, user_config)
        logger.debug("Configuration loaded from %s", config_file)

    return _apply_env_overrides(config)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge into base

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to config.

    Variables follow the pattern SITE_ARCHIVE_<SECTION>_<KEY>=value, where
    the section is the first underscore-separated word and the rest is the
    key. Example: SITE_ARCHIVE_STAGING_BASE_DIRECTORY=/var/backups
    """
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue

        section, _, key = env_key[len(ENV_PREFIX) :].lower().partition("_")
        if not section or not key:
            continue

        config.setdefault(section, {})
        if not isinstance(config[section], dict):
            continue
        config[section][key] = _convert_env_value(env_value)

    return config


def _convert_env_value(value: str) -> Any:
    """
    Convert environment variable string to appropriate Python type.

    Args:
        value: Environment variable value

    Returns:
        Converted value
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    elif value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    # List conversion (comma-separated)
    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]

    return value
