"""
Pytest configuration and shared fixtures.

Provides an isolated git environment, a started git backend, and upstream
module and cabinet repositories built in temporary directories.
"""

from pathlib import Path

import pytest
from git_helpers import make_cabinet_repo, make_module_repo

from stockroom.core.config import clear_cache
from stockroom.core.vcs import AuthorIdentity, GitBackend

# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_git(tmp_path_factory, monkeypatch):
    """Keep git and config lookups away from the real user environment."""
    home = tmp_path_factory.mktemp("user-home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    for name in (
        "STOCKROOM_HOME",
        "STOCKROOM_REMOTE",
        "STOCKROOM_AUTHOR_NAME",
        "STOCKROOM_AUTHOR_EMAIL",
        "STOCKROOM_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def backend():
    """Provide a started git backend."""
    with GitBackend() as started:
        yield started


@pytest.fixture
def author() -> AuthorIdentity:
    return AuthorIdentity(name="Merge Bot", email="merge@example.com")


# ==============================================================================
# Upstream Fixtures
# ==============================================================================


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    """Provide an upstream repository with an initial commit on main."""
    return make_module_repo(tmp_path / "upstream")


@pytest.fixture
def catalog(tmp_path: Path) -> dict[str, Path]:
    """
    Provide upstream repositories for a small cabinet.

    Cabinet "nw" declares three modules:
    - core: no dependencies
    - render: depends on core through an import alias, plus an unknown module
    - app: depends on render
    """
    remotes = tmp_path / "remotes"
    core = make_module_repo(remotes / "core")
    render = make_module_repo(
        remotes / "render",
        {"imports": {"lib.": "nw."}, "depends": ["lib.core", "other.missing"]},
    )
    app = make_module_repo(remotes / "app", {"depends": ["nw.render"]})
    cabinet = make_cabinet_repo(
        remotes / "cabinet",
        "nw",
        [
            {"id": "core", "uri": str(core), "usr": "Core"},
            {"id": "render", "uri": str(render), "usr": "Render"},
            {"id": "app", "uri": str(app), "usr": "App"},
        ],
    )
    return {"cabinet": cabinet, "core": core, "render": render, "app": app}


@pytest.fixture
def warehouse_home(tmp_path: Path) -> Path:
    home = tmp_path / "stock"
    home.mkdir()
    return home
