"""
Configuration data models for stockroom.

These models define the structure of `<home>/.stockroom.json` and
`~/.config/stockroom/config.json` files, with validation via Pydantic.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stockroom.core.vcs import AuthorIdentity

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AuthorConfig(BaseModel):
    """
    Identity used for merge commits.

    When name or email is missing, clean merges are left staged instead of
    committed.
    """
    name: str = Field(
        default="",
        description="Author name for merge commits"
    )
    email: str = Field(
        default="",
        description="Author email for merge commits"
    )

    def identity(self) -> AuthorIdentity:
        return AuthorIdentity(name=self.name, email=self.email)


class StockroomConfig(BaseModel):
    """
    Top-level stockroom configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = StockroomConfig(
        ...     home=Path("/home/ada/stock"),
        ...     author=AuthorConfig(name="Ada", email="ada@example.com"),
        ... )
        >>> config.remote
        'origin'
    """
    home: Path = Field(
        default_factory=Path.cwd,
        description="Warehouse home directory"
    )
    remote: str = Field(
        default="origin",
        min_length=1,
        description="Remote every repository pulls from"
    )
    author: Optional[AuthorConfig] = Field(
        default=None,
        description="Identity for merge commits"
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the level name and reject unknown ones."""
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {v!r}")
        return level
