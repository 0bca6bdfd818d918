"""
.env loading for a warehouse home.

Two files are read, lowest priority first:

- `$XDG_CONFIG_HOME/stockroom/.env` (per user)
- `<home>/.env` (per warehouse)

The warehouse file wins over the user file. Neither ever replaces a variable
that was already set in the process environment.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values

from .loader import get_xdg_config_home

ENV_FILE = ".env"


def get_user_env_path() -> Path:
    return get_xdg_config_home() / "stockroom" / ENV_FILE


def get_home_env_path(home: Path) -> Path:
    return home / ENV_FILE


def read_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file, skipping keys without a value. Missing files are empty."""
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if key and value is not None}


def load_layered_env(home: Path) -> dict[str, Path]:
    """
    Export the .env variables that apply to a warehouse home.

    Args:
        home: Warehouse home directory

    Returns:
        Variable name -> file it was loaded from, for every variable exported
    """
    layered: dict[str, tuple[str, Path]] = {}
    for path in (get_user_env_path(), get_home_env_path(home)):
        for key, value in read_env_file(path).items():
            layered[key] = (value, path)

    exported: dict[str, Path] = {}
    for key, (value, path) in layered.items():
        if key in os.environ:
            continue
        os.environ[key] = value
        exported[key] = path
    return exported
