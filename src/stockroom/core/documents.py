"""JSON document persistence for the models in stockroom.core.catalog.models."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from stockroom.core.errors import CorruptionError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def load_document(path: Path, model: type[ModelT], *, what: str = "Document") -> ModelT:
    """
    Load and validate a JSON document.

    Args:
        path: Path to the JSON file
        model: Pydantic model the document must satisfy
        what: Label used in error messages

    Returns:
        The validated model instance

    Raises:
        CorruptionError: If the file is missing, unreadable or invalid
    """
    if not path.is_file():
        raise CorruptionError(f"{what} missing: {path}")
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, PydanticValidationError) as e:
        raise CorruptionError(f"{what} corrupted: {path}: {e}") from e


def save_document(path: Path, document: BaseModel) -> None:
    """Write a document atomically via a temp file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    try:
        temp_path.write_text(
            document.model_dump_json(by_alias=True, exclude_none=True, indent=4) + "\n",
            encoding="utf-8",
        )
        temp_path.replace(path)
    except OSError:
        # Clean up temp file on failure
        if temp_path.exists():
            temp_path.unlink()
        raise
    logger.debug("Wrote %s", path)
