"""
Tests for Module: metadata, on-demand cloning and updates.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from git_helpers import commit_file, run_git

from stockroom.core.catalog import Module, ModuleInfo
from stockroom.core.documents import save_document
from stockroom.core.errors import CorruptionError, GitError
from stockroom.core.sync import SyncOutcomeKind
from stockroom.core.vcs import GitBackend


@pytest.fixture
def module_home(tmp_path: Path, upstream: Path) -> Path:
    home = tmp_path / "Modules" / "core"
    save_document(home / "info.json", ModuleInfo(id="core", uri=str(upstream), display="Core"))
    return home


class TestModuleLoad:
    def test_loads_metadata(self, module_home: Path, backend: GitBackend, upstream: Path) -> None:
        module = Module(module_home, backend)

        assert module.id == "core"
        assert module.uri == str(upstream)
        assert module.display == "Core"
        assert not module.is_full
        assert module.last_update is None

    def test_missing_directory(self, tmp_path: Path, backend: GitBackend) -> None:
        with pytest.raises(CorruptionError, match="Module directory missing"):
            Module(tmp_path / "nope", backend)

    def test_missing_metadata(self, tmp_path: Path, backend: GitBackend) -> None:
        (tmp_path / "core").mkdir()
        with pytest.raises(CorruptionError, match="Module info missing"):
            Module(tmp_path / "core", backend)

    def test_malformed_metadata(self, tmp_path: Path, backend: GitBackend) -> None:
        home = tmp_path / "core"
        home.mkdir()
        (home / "info.json").write_text(json.dumps({"id": "core"}))
        with pytest.raises(CorruptionError):
            Module(home, backend)


class TestModuleUpdate:
    def test_first_update_clones(self, module_home: Path, backend: GitBackend, upstream: Path) -> None:
        module = Module(module_home, backend)

        outcome = module.update()

        assert module.is_full
        assert (module.content_path / "README.md").exists()
        assert outcome.kind == SyncOutcomeKind.NO_CHANGE

    def test_update_records_time(self, module_home: Path, backend: GitBackend) -> None:
        module = Module(module_home, backend)
        before = datetime.now(timezone.utc).replace(microsecond=0)

        module.update()

        assert module.last_update is not None
        assert module.last_update >= before
        assert module.last_update.microsecond == 0
        assert module.last_commit is None
        saved = json.loads(module.info_path.read_text())
        assert "lup" in saved
        assert "lcm" not in saved

    def test_update_is_idempotent(self, module_home: Path, backend: GitBackend, upstream: Path) -> None:
        module = Module(module_home, backend)
        module.ensure_content()
        target = commit_file(upstream, "a.txt", "a\n")

        first = module.update()
        second = module.update()

        assert first.kind == SyncOutcomeKind.FAST_FORWARDED
        assert second.kind == SyncOutcomeKind.NO_CHANGE
        assert run_git(module.content_path, "rev-parse", "HEAD") == target

    def test_update_keeps_last_commit(self, tmp_path: Path, backend: GitBackend, upstream: Path) -> None:
        last_commit = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        home = tmp_path / "Modules" / "core"
        save_document(
            home / "info.json",
            ModuleInfo(id="core", uri=str(upstream), display="Core", last_commit=last_commit),
        )
        module = Module(home, backend)
        commit_file(upstream, "a.txt", "a\n")

        module.update()
        module.update()

        assert module.last_commit == last_commit
        assert Module(home, backend).last_commit == last_commit
        saved = json.loads(module.info_path.read_text())
        assert saved["lcm"] == "Fri,-02-Jan-2026-03:04:05-+0000"

    def test_clone_failure(self, tmp_path: Path, backend: GitBackend) -> None:
        home = tmp_path / "broken"
        save_document(home / "info.json", ModuleInfo(id="broken", uri=str(tmp_path / "gone"), display="x"))
        module = Module(home, backend)

        with pytest.raises(GitError):
            module.update()
        assert module.last_update is None


class TestDependencyDocument:
    def test_absent_document_is_empty(self, module_home: Path, backend: GitBackend) -> None:
        module = Module(module_home, backend)
        module.ensure_content()

        document = module.dependency_document()

        assert document.depends == []

    def test_reads_document(self, module_home: Path, backend: GitBackend, upstream: Path) -> None:
        commit_file(upstream, "module.json", json.dumps({"depends": ["nw.core"]}))
        module = Module(module_home, backend)
        module.ensure_content()

        assert module.dependency_document().depends == ["nw.core"]


def test_destruct_is_idempotent(module_home: Path, backend: GitBackend) -> None:
    module = Module(module_home, backend)
    module.destruct()
    module.destruct()
    assert not module_home.exists()
