"""Shared test fixtures."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Iterable
from pathlib import Path

import pytest

from workspace_changes.graph import graph_from_members
from workspace_changes.models import DependencyGraph, WorkspaceMember

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class GitRepo:
    """A throwaway git repository holding a uv workspace."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str, cwd: Path | None = None) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd or self.path,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def write(self, files: dict[str, str]) -> None:
        for rel, content in files.items():
            target = self.path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

    def commit(self, message: str, files: dict[str, str] | None = None) -> str:
        """Write files (if any), commit everything, and return the new commit."""
        if files:
            self.write(files)
        self.git("add", "-A")
        self.git("commit", "--allow-empty", "-q", "-m", message)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")

    def tag(self, name: str) -> None:
        self.git("tag", name)

    def package(self, name: str) -> Path:
        return self.path / "packages" / name

    def add_package(
        self, name: str, version: str = "1.0.0", deps: Iterable[str] = ()
    ) -> None:
        """Write packages/<name>/pyproject.toml (not committed)."""
        dep_list = ", ".join(f'"{d}>={version}"' for d in deps)
        self.write(
            {
                f"packages/{name}/pyproject.toml": (
                    f'[project]\nname = "{name}"\nversion = "{version}"\n'
                    f"dependencies = [{dep_list}]\n"
                )
            }
        )

    def release(self, name: str, version: str, message: str | None = None) -> str:
        """Set a package's version, commit, and tag it like a release tool would."""
        path = self.package(name) / "pyproject.toml"
        text = path.read_text()
        old = text.split('version = "', 1)[1].split('"', 1)[0]
        path.write_text(text.replace(f'version = "{old}"', f'version = "{version}"', 1))
        sha = self.commit(message or f"chore(release): {version}")
        self.tag(f"{name}@{version}")
        return sha


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GitRepo:
    """An initialized repo with one empty commit and a uv workspace root."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")

    # Keep the user's git config (signing, hooks, ...) out of the tests
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Test")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "test@example.com")

    root = tmp_path / "repo"
    root.mkdir()
    repo = GitRepo(root)
    repo.git("init", "-q")
    repo.commit("first")
    repo.write({"pyproject.toml": '[tool.uv.workspace]\nmembers = ["packages/*"]\n'})
    return repo


def make_graph(
    root: Path, packages: dict[str, tuple[str, list[str]]], version: str = "1.0.0"
) -> DependencyGraph:
    """Build a graph from {name: (relative path, deps)} without touching disk."""
    members = [
        WorkspaceMember(name=name, cwd=root / path, version=version, dependencies=deps)
        for name, (path, deps) in packages.items()
    ]
    return graph_from_members(root, members)
