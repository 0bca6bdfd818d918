"""
Tests for Cabinet: fetching, editing and updating a module catalog.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest
from git_helpers import commit_file, make_module_repo, write_cabinet_manifest

from stockroom.core.catalog import Cabinet
from stockroom.core.errors import AggregateError, CorruptionError, FetchFailed, GitError, ValidationError
from stockroom.core.vcs import GitBackend


@pytest.fixture
def cabinet_home(tmp_path: Path) -> Path:
    return tmp_path / "staged"


@pytest.fixture
def cabinet(catalog: dict[str, Path], cabinet_home: Path, backend: GitBackend) -> Cabinet:
    return Cabinet.fetch(cabinet_home, str(catalog["cabinet"]), backend)


class TestFetch:
    def test_registers_declared_modules(self, cabinet: Cabinet, cabinet_home: Path) -> None:
        assert cabinet.namespace == "nw"
        assert [module.id for module in cabinet] == ["core", "render", "app"]
        assert (cabinet_home / "Modules" / "core" / "info.json").exists()
        assert not cabinet.get("core").is_full

    def test_clone_failure_removes_home(
        self, cabinet_home: Path, backend: GitBackend, tmp_path: Path
    ) -> None:
        with pytest.raises(GitError):
            Cabinet.fetch(cabinet_home, str(tmp_path / "missing"), backend)
        assert not cabinet_home.exists()

    def test_missing_manifest_removes_home(
        self, cabinet_home: Path, backend: GitBackend, upstream: Path
    ) -> None:
        with pytest.raises(CorruptionError, match="Cabinet manifest missing"):
            Cabinet.fetch(cabinet_home, str(upstream), backend)
        assert not cabinet_home.exists()

    def test_invalid_namespace(self, cabinet_home: Path, backend: GitBackend, upstream: Path) -> None:
        write_cabinet_manifest(upstream, "bad/ns", [])
        with pytest.raises(CorruptionError):
            Cabinet.fetch(cabinet_home, str(upstream), backend)
        assert not cabinet_home.exists()

    def test_duplicate_module(self, cabinet_home: Path, backend: GitBackend, upstream: Path) -> None:
        module = {"id": "core", "uri": "u", "usr": "Core"}
        write_cabinet_manifest(upstream, "nw", [module, module])
        with pytest.raises(CorruptionError, match="Duplicated module name"):
            Cabinet.fetch(cabinet_home, str(upstream), backend)
        assert not cabinet_home.exists()


class TestOpen:
    def test_reopen(self, cabinet: Cabinet, cabinet_home: Path, backend: GitBackend) -> None:
        reopened = Cabinet.open(cabinet_home, backend)
        assert [module.id for module in reopened] == ["core", "render", "app"]

    def test_picks_up_added_modules(self, cabinet: Cabinet, cabinet_home: Path, backend: GitBackend) -> None:
        cabinet.add("extra", "https://example.com/extra.git")
        reopened = Cabinet.open(cabinet_home, backend)
        assert "extra" in reopened

    def test_skips_removed_modules(self, cabinet: Cabinet, cabinet_home: Path, backend: GitBackend) -> None:
        cabinet.remove("app")
        reopened = Cabinet.open(cabinet_home, backend)
        assert "app" not in reopened
        assert len(reopened) == 2

    def test_corrupt_module_metadata(self, cabinet: Cabinet, cabinet_home: Path, backend: GitBackend) -> None:
        (cabinet_home / "Modules" / "core" / "info.json").write_text("{}")
        with pytest.raises(CorruptionError):
            Cabinet.open(cabinet_home, backend)


class TestEdit:
    def test_add(self, cabinet: Cabinet) -> None:
        module = cabinet.add("extra", "https://example.com/extra.git", "Extra")
        assert cabinet.get("extra") is module
        assert module.display == "Extra"

    def test_add_defaults_display_to_name(self, cabinet: Cabinet) -> None:
        assert cabinet.add("extra", "https://example.com/extra.git").display == "extra"

    @pytest.mark.parametrize(
        "name,uri,message",
        [
            ("core", "u", "already used"),
            ("", "u", "Name cannot be empty"),
            ("a/b", "u", "Invalid character"),
            ("extra", "", "Uri cannot be empty"),
        ],
    )
    def test_add_rejects(self, cabinet: Cabinet, name: str, uri: str, message: str) -> None:
        with pytest.raises(ValidationError, match=message):
            cabinet.add(name, uri)

    def test_remove(self, cabinet: Cabinet, cabinet_home: Path) -> None:
        cabinet.remove("core")
        assert cabinet.get("core") is None
        assert not (cabinet_home / "Modules" / "core").exists()

    def test_remove_unknown_is_noop(self, cabinet: Cabinet) -> None:
        cabinet.remove("nope")
        assert len(cabinet) == 3


class TestUpdate:
    def test_updates_every_module(self, cabinet: Cabinet) -> None:
        outcomes = cabinet.update()

        assert sorted(outcomes) == ["app", "core", "render"]
        assert all(module.is_full for module in cabinet)
        assert all(module.last_update is not None for module in cabinet)

    def test_registers_new_upstream_modules(
        self, cabinet: Cabinet, catalog: dict[str, Path], tmp_path: Path
    ) -> None:
        extra = make_module_repo(tmp_path / "remotes" / "extra")
        manifest = json.loads((catalog["cabinet"] / "info.json").read_text())
        manifest["modules"].append({"id": "extra", "uri": str(extra), "usr": "Extra"})
        commit_file(catalog["cabinet"], "info.json", json.dumps(manifest))

        cabinet.update()

        assert cabinet.get("extra") is not None
        assert cabinet.get("extra").is_full

    def test_module_failures_are_collected(self, cabinet: Cabinet, catalog: dict[str, Path]) -> None:
        shutil.rmtree(catalog["core"])

        with pytest.raises(AggregateError) as exc_info:
            cabinet.update()

        assert len(exc_info.value.errors) == 1
        assert cabinet.get("render").is_full
        assert cabinet.get("app").is_full

    def test_cabinet_fetch_failure_stops(self, cabinet: Cabinet, catalog: dict[str, Path]) -> None:
        shutil.rmtree(catalog["cabinet"])

        with pytest.raises(FetchFailed):
            cabinet.update()

        assert not any(module.is_full for module in cabinet)


def test_destruct(cabinet: Cabinet, cabinet_home: Path) -> None:
    cabinet.destruct()
    cabinet.destruct()
    assert not cabinet_home.exists()
