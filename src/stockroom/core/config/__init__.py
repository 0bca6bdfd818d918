"""
Configuration models and loading.

This module provides Pydantic models for stockroom configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .env import load_layered_env
from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
    resolve_home,
)
from .models import AuthorConfig, StockroomConfig

__all__ = [
    # Models
    "AuthorConfig",
    "StockroomConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
    "resolve_home",
]
