"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars

The project config lives in the warehouse home, so the home is settled
first: explicit argument, then STOCKROOM_HOME, then the current directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import StockroomConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: StockroomConfig | None = None

# Env var -> dotted config key
ENV_OVERRIDES = {
    "STOCKROOM_HOME": "home",
    "STOCKROOM_REMOTE": "remote",
    "STOCKROOM_AUTHOR_NAME": "author.name",
    "STOCKROOM_AUTHOR_EMAIL": "author.email",
    "STOCKROOM_LOG_LEVEL": "log_level",
}


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/stockroom/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "stockroom" / "config.json"


def get_project_config_path(home: Path) -> Path:
    """Get path to the configuration file of the warehouse at home."""
    return home / ".stockroom.json"


def resolve_home(home: Path | None = None) -> Path:
    """Settle the warehouse home: explicit value, then STOCKROOM_HOME, then cwd."""
    if home is not None:
        return home
    if env_home := os.environ.get("STOCKROOM_HOME"):
        return Path(env_home)
    return Path.cwd()


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`; nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 30}})
        {'a': 1, 'b': {'x': 10, 'y': 30}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: top level is not an object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        STOCKROOM_HOME - overrides home
        STOCKROOM_REMOTE - overrides remote
        STOCKROOM_AUTHOR_NAME - overrides author.name
        STOCKROOM_AUTHOR_EMAIL - overrides author.email
        STOCKROOM_LOG_LEVEL - overrides log_level

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        section, _, field = key.rpartition(".")
        if section:
            nested = dict(result.get(section) or {})
            nested[field] = value
            result[section] = nested
        else:
            result[field] = value

    return result


def get_default_config(home: Path) -> dict[str, Any]:
    """Get hardcoded default configuration."""
    return {
        "home": str(home),
        "remote": "origin",
        "log_level": "WARNING",
    }


def load_config(home: Path | None = None, use_cache: bool = True) -> StockroomConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Explicit home argument (for `home` only)
        2. Environment variables (STOCKROOM_*)
        3. Project config (<home>/.stockroom.json)
        4. User config (~/.config/stockroom/config.json)
        5. Hardcoded defaults

    Args:
        home: Warehouse home (defaults to STOCKROOM_HOME, then cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated StockroomConfig instance

    Raises:
        pydantic.ValidationError: If the merged config fails validation

    Example:
        >>> config = load_config(Path("/home/ada/stock"))
        >>> config.remote
        'origin'
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    base = resolve_home(home)
    merged = get_default_config(base)

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(base)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    if home is not None:
        merged["home"] = str(home)

    config = StockroomConfig(**merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
