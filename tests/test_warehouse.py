"""
Tests for Warehouse: importing, updating and persisting cabinets.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from git_helpers import commit_file, make_cabinet_repo, run_git, write_cabinet_manifest

from stockroom.core.errors import (
    AggregateError,
    CorruptionError,
    FetchFailed,
    GitError,
    NotFoundError,
    ValidationError,
)
from stockroom.core.sync import SyncOutcomeKind
from stockroom.core.vcs import AuthorIdentity, GitBackend
from stockroom.core.warehouse import Warehouse
from stockroom.core.workspace import CheckoutArgs, CheckoutRequest


@pytest.fixture
def warehouse(warehouse_home: Path, backend: GitBackend, author: AuthorIdentity) -> Warehouse:
    return Warehouse(warehouse_home, backend, author=author)


def staging_dir(home: Path) -> Path:
    return home / ".stockroom" / "Temp" / "FetchProgress"


class TestConstruction:
    def test_creates_layout(self, warehouse: Warehouse, warehouse_home: Path) -> None:
        for name in ("Temp", "Stock", "Ws"):
            assert (warehouse_home / ".stockroom" / name).is_dir()
        assert warehouse.cabinets == {}
        assert warehouse.workspaces == {}

    def test_reloads_cabinets(
        self, warehouse: Warehouse, warehouse_home: Path, backend: GitBackend, catalog: dict[str, Path]
    ) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))

        reopened = Warehouse(warehouse_home, backend)

        assert sorted(reopened.cabinets) == ["nw"]
        assert sorted(reopened.module_index()) == ["nw.app", "nw.core", "nw.render"]

    def test_skips_corrupt_cabinets(
        self, warehouse_home: Path, backend: GitBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        (warehouse_home / ".stockroom" / "Stock" / "broken").mkdir(parents=True)

        warehouse = Warehouse(warehouse_home, backend)

        assert warehouse.cabinets == {}
        assert "Skipping cabinet broken" in caplog.text


class TestImport:
    def test_import(self, warehouse: Warehouse, warehouse_home: Path, catalog: dict[str, Path]) -> None:
        cabinet = warehouse.import_cabinet(str(catalog["cabinet"]))

        assert cabinet.namespace == "nw"
        assert cabinet.home == warehouse_home / ".stockroom" / "Stock" / "nw"
        assert warehouse.get_cabinet("nw") is cabinet
        assert not staging_dir(warehouse_home).exists()

    def test_namespace_conflict(
        self, warehouse: Warehouse, warehouse_home: Path, catalog: dict[str, Path], tmp_path: Path
    ) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))
        twin = make_cabinet_repo(tmp_path / "twin", "nw", [])

        with pytest.raises(ValidationError, match="already exists"):
            warehouse.import_cabinet(str(twin))

        assert not staging_dir(warehouse_home).exists()
        assert len(warehouse.get_cabinet("nw")) == 3

    def test_clone_failure_leaves_no_trace(
        self, warehouse: Warehouse, warehouse_home: Path, tmp_path: Path
    ) -> None:
        with pytest.raises(GitError):
            warehouse.import_cabinet(str(tmp_path / "missing"))

        assert not staging_dir(warehouse_home).exists()
        assert list((warehouse_home / ".stockroom" / "Stock").iterdir()) == []

    def test_corrupt_manifest_leaves_no_trace(
        self, warehouse: Warehouse, warehouse_home: Path, upstream: Path
    ) -> None:
        with pytest.raises(CorruptionError):
            warehouse.import_cabinet(str(upstream))

        assert not staging_dir(warehouse_home).exists()
        assert warehouse.cabinets == {}

    def test_empty_uri(self, warehouse: Warehouse) -> None:
        with pytest.raises(ValidationError):
            warehouse.import_cabinet("")


class TestRemove:
    def test_remove_deletes_from_disk(
        self, warehouse: Warehouse, warehouse_home: Path, catalog: dict[str, Path]
    ) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))

        warehouse.remove_cabinet("nw")

        assert warehouse.get_cabinet("nw") is None
        assert not (warehouse_home / ".stockroom" / "Stock" / "nw").exists()

    def test_remove_unknown_is_noop(self, warehouse: Warehouse) -> None:
        warehouse.remove_cabinet("nope")


class TestUpdate:
    def test_update_all(self, warehouse: Warehouse, catalog: dict[str, Path]) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))

        warehouse.update_cabinets()

        assert all(module.is_full for module in warehouse.module_index().values())

    def test_update_unknown_cabinet(self, warehouse: Warehouse) -> None:
        with pytest.raises(NotFoundError):
            warehouse.update_cabinet("nope")

    def test_failures_are_aggregated(
        self, warehouse: Warehouse, catalog: dict[str, Path], tmp_path: Path
    ) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))
        other = make_cabinet_repo(tmp_path / "other", "ot", [])
        warehouse.import_cabinet(str(other))
        shutil.rmtree(other)

        with pytest.raises(AggregateError) as exc_info:
            warehouse.update_cabinets()

        leaves = list(exc_info.value.leaves())
        assert len(leaves) == 1
        assert isinstance(leaves[0], FetchFailed)
        # The healthy cabinet was still updated
        assert all(module.is_full for module in warehouse.get_cabinet("nw"))

    def test_update_module(self, warehouse: Warehouse, catalog: dict[str, Path]) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))
        target = commit_file(catalog["core"], "a.txt", "a\n")

        first = warehouse.update_module("nw.core")
        commit_file(catalog["core"], "b.txt", "b\n")
        second = warehouse.update_module("nw.core")

        assert first.kind == SyncOutcomeKind.NO_CHANGE
        assert second.kind == SyncOutcomeKind.FAST_FORWARDED
        content = warehouse.find_module("nw.core").content_path
        assert run_git(content, "rev-parse", "HEAD^") == target

    def test_update_unknown_module(self, warehouse: Warehouse) -> None:
        with pytest.raises(NotFoundError):
            warehouse.update_module("nw.nope")

    def test_update_reloads_workspaces(
        self, warehouse: Warehouse, catalog: dict[str, Path]
    ) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))
        warehouse.create_workspace(
            CheckoutArgs(name="game", modules=[CheckoutRequest(reference="nw.app")])
        )
        # Upstream drops "core"; the cabinet keeps its installed copy
        write_cabinet_manifest(
            catalog["cabinet"],
            "nw",
            [{"id": "app", "uri": str(catalog["app"]), "usr": "App"}],
        )

        warehouse.update_cabinets()

        assert "nw.core" in warehouse.get_workspace("game").modules

    def test_reload_failure_is_aggregated(self, warehouse: Warehouse, catalog: dict[str, Path]) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))
        warehouse.create_workspace(
            CheckoutArgs(name="game", modules=[CheckoutRequest(reference="nw.core")])
        )
        (warehouse.home / ".stockroom" / "Ws" / "game" / "info.json").write_text("{")

        with pytest.raises(AggregateError) as exc_info:
            warehouse.update_cabinets()

        leaves = list(exc_info.value.leaves())
        assert [type(leaf) for leaf in leaves] == [CorruptionError]


class TestModuleIndex:
    def test_references(self, warehouse: Warehouse, catalog: dict[str, Path]) -> None:
        warehouse.import_cabinet(str(catalog["cabinet"]))
        assert sorted(warehouse.module_index()) == ["nw.app", "nw.core", "nw.render"]

    def test_ambiguous_reference_is_left_out(
        self, warehouse: Warehouse, catalog: dict[str, Path], tmp_path: Path, caplog
    ) -> None:
        for namespace, module_id in (("x", "y.z"), ("x.y", "z")):
            cabinet = make_cabinet_repo(
                tmp_path / f"cabinet-{namespace}",
                namespace,
                [{"id": module_id, "uri": str(catalog["core"]), "usr": module_id}],
            )
            warehouse.import_cabinet(str(cabinet))

        with caplog.at_level("WARNING", logger="stockroom.core.warehouse"):
            index = warehouse.module_index()

        assert "x.y.z" not in index
        assert "ambiguous" in caplog.text
        with pytest.raises(NotFoundError, match="Ambiguous module reference: x.y.z"):
            warehouse.find_module("x.y.z")
