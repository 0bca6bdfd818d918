"""
Tests for identifier validation and on-disk layout helpers.
"""

from pathlib import Path

import pytest

from stockroom.core.errors import ValidationError
from stockroom.core.layout import (
    DISALLOWED_CHARACTERS,
    make_reference,
    require_value,
    stock_dir,
    temp_dir,
    validate_name,
    warehouse_dir,
    workspaces_dir,
)


class TestValidateName:
    """Tests for validate_name."""

    @pytest.mark.parametrize("char", list(DISALLOWED_CHARACTERS))
    def test_rejects_disallowed_character(self, char: str) -> None:
        """Every disallowed character is rejected and named in the message."""
        with pytest.raises(ValidationError) as exc_info:
            validate_name(f"mod{char}ule")
        assert f"'{char}'" in str(exc_info.value)

    @pytest.mark.parametrize("name", ["core", "render-2", "lib_x", "Core.Utils", "ünïcode", ""])
    def test_accepts_clean_names(self, name: str) -> None:
        assert validate_name(name) == name

    def test_names_first_offending_character(self) -> None:
        with pytest.raises(ValidationError, match="Invalid character ' '"):
            validate_name("a b/c")


class TestRequireValue:
    def test_rejects_empty(self) -> None:
        with pytest.raises(ValidationError, match="Uri cannot be empty"):
            require_value("", "Uri")

    def test_returns_value(self) -> None:
        assert require_value("x", "Name") == "x"


def test_make_reference() -> None:
    assert make_reference("nw", "core") == "nw.core"


def test_layout_paths() -> None:
    home = Path("/srv/stock")
    assert warehouse_dir(home) == home / ".stockroom"
    assert temp_dir(home) == home / ".stockroom" / "Temp"
    assert stock_dir(home) == home / ".stockroom" / "Stock"
    assert workspaces_dir(home) == home / ".stockroom" / "Ws"
