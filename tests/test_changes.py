"""Tests for workspace_changes.changes."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import GitRepo, make_graph

from workspace_changes.cache import GitCache
from workspace_changes.changes import (
    build_change_graph,
    display_name,
    list_changed_packages,
    package_pathspecs,
)
from workspace_changes.errors import CommandError
from workspace_changes.models import PackageNode, ReleaseRange

ROOT = Path("/ws")


def _releases(tagged: set[str]):
    """commits_since_last_release stand-in: packages in ``tagged`` have a tag."""

    def since(node: PackageNode, **kwargs) -> ReleaseRange:
        if node.name in tagged:
            return ReleaseRange(from_commit=f"{node.name}-tag", since_tag=node.release_tag)
        return ReleaseRange(from_commit="root")

    return since


def _diff(changed: set[str]):
    """has_changes stand-in: only packages in ``changed`` have a diff."""

    def has_changes(from_commit: str, to_commit: str, **kwargs) -> bool:
        return from_commit.removesuffix("-tag") in changed

    return has_changes


@patch("workspace_changes.changes.current_commit", return_value="headsha")
class TestBuildChangeGraph:
    def test_nothing_changed(self, mock_head: MagicMock) -> None:
        graph = make_graph(ROOT, {"a": ("a", ["b"]), "b": ("b", [])})
        with (
            patch("workspace_changes.changes.commits_since_last_release", _releases({"a", "b"})),
            patch("workspace_changes.changes.has_changes", _diff(set())),
        ):
            verdicts = build_change_graph(graph)

        assert [(v.package, v.has_direct_changes, v.is_changed) for v in verdicts] == [
            ("a", False, False),
            ("b", False, False),
        ]

    def test_dependency_change_propagates(self, mock_head: MagicMock) -> None:
        graph = make_graph(ROOT, {"app": ("app", ["dep"]), "dep": ("dep", []), "x": ("x", [])})
        with (
            patch(
                "workspace_changes.changes.commits_since_last_release",
                _releases({"app", "dep", "x"}),
            ),
            patch("workspace_changes.changes.has_changes", _diff({"dep"})),
        ):
            verdicts = {v.package: v for v in build_change_graph(graph)}

        assert verdicts["dep"].has_direct_changes
        assert not verdicts["app"].has_direct_changes
        assert verdicts["app"].is_changed
        assert not verdicts["x"].is_changed
        assert verdicts["app"].dag is graph["app"]

    def test_untagged_package_is_changed(self, mock_head: MagicMock) -> None:
        graph = make_graph(ROOT, {"new": ("new", [])})
        diff = MagicMock(return_value=False)
        with (
            patch("workspace_changes.changes.commits_since_last_release", _releases(set())),
            patch("workspace_changes.changes.has_changes", diff),
        ):
            (verdict,) = build_change_graph(graph)

        assert verdict.has_direct_changes
        assert verdict.is_changed
        diff.assert_not_called()

    def test_cycle(self, mock_head: MagicMock) -> None:
        graph = make_graph(ROOT, {"a": ("a", ["b"]), "b": ("b", ["a"]), "c": ("c", [])})
        with (
            patch(
                "workspace_changes.changes.commits_since_last_release",
                _releases({"a", "b", "c"}),
            ),
            patch("workspace_changes.changes.has_changes", _diff({"a"})),
        ):
            verdicts = build_change_graph(graph)

        assert [v.package for v in verdicts if v.is_changed] == ["a", "b"]

    def test_diffs_against_resolved_head(self, mock_head: MagicMock) -> None:
        graph = make_graph(ROOT, {"root": (".", []), "a": ("packages/a", [])})
        diff = MagicMock(return_value=False)
        with (
            patch(
                "workspace_changes.changes.commits_since_last_release",
                _releases({"root", "a"}),
            ),
            patch("workspace_changes.changes.has_changes", diff),
        ):
            build_change_graph(graph)

        mock_head.assert_called_once_with(ROOT)
        root_call = diff.call_args_list[0]
        assert root_call.args == ("root-tag", "headsha")
        assert root_call.kwargs["pathspecs"] == [".", ":(exclude)packages/a"]
        assert diff.call_args_list[1].kwargs["pathspecs"] == ["."]

    def test_jobs_keep_graph_order(self, mock_head: MagicMock) -> None:
        names = [f"p{i}" for i in range(8)]
        graph = make_graph(ROOT, {n: (n, []) for n in names})
        with (
            patch("workspace_changes.changes.commits_since_last_release", _releases(set(names))),
            patch("workspace_changes.changes.has_changes", _diff({"p1", "p6"})),
        ):
            serial = build_change_graph(graph, jobs=1)
            parallel = build_change_graph(graph, jobs=4)

        assert parallel == serial
        assert [v.package for v in parallel if v.is_changed] == ["p1", "p6"]

    def test_git_failure_propagates(self, mock_head: MagicMock) -> None:
        graph = make_graph(ROOT, {"a": ("a", [])})
        with patch(
            "workspace_changes.changes.commits_since_last_release",
            side_effect=CommandError(["rev-list"], ROOT, 128, "fatal: boom"),
        ):
            with pytest.raises(CommandError):
                build_change_graph(graph)

    def test_empty_graph(self, mock_head: MagicMock) -> None:
        assert build_change_graph(make_graph(ROOT, {})) == []
        mock_head.assert_not_called()


class TestPackagePathspecs:
    def test_root_excludes_members(self) -> None:
        graph = make_graph(ROOT, {"root": (".", []), "a": ("packages/a", [])})
        assert package_pathspecs(graph, graph["root"]) == [".", ":(exclude)packages/a"]

    def test_member(self) -> None:
        graph = make_graph(ROOT, {"root": (".", []), "a": ("packages/a", [])})
        assert package_pathspecs(graph, graph["a"]) == ["."]


class TestDisplayName:
    def test_root_package_uses_package_name(self) -> None:
        node = PackageNode(name="monorepo", cwd=ROOT, version="1.0.0")
        assert display_name(node, ROOT) == "monorepo"

    def test_member_uses_directory_name(self) -> None:
        node = PackageNode(name="my-lib", cwd=ROOT / "packages" / "lib-dir", version="1.0.0")
        assert display_name(node, ROOT) == "lib-dir"


class TestListChangedPackages:
    @pytest.fixture
    def released(self, repo: GitRepo) -> GitRepo:
        """my-app depends on my-dep; both released at 1.0.0."""
        repo.add_package("my-dep")
        repo.add_package("my-app", deps=["my-dep"])
        repo.commit("feat: initial packages")
        repo.tag("my-dep@1.0.0")
        repo.tag("my-app@1.0.0")
        return repo

    def test_nothing_changed(self, released: GitRepo) -> None:
        assert list_changed_packages(released.path) == []

    def test_direct_change(self, released: GitRepo) -> None:
        released.commit("fix: app", {"packages/my-app/app.py": "x = 1\n"})
        assert list_changed_packages(released.path) == ["my-app"]

    def test_dependency_change_marks_dependent(self, released: GitRepo) -> None:
        released.commit("fix: dep", {"packages/my-dep/dep.py": "x = 1\n"})
        assert list_changed_packages(released.path) == ["my-app", "my-dep"]

    def test_same_answer_from_any_directory(self, released: GitRepo) -> None:
        released.add_package("other")
        released.commit("feat: other")
        released.tag("other@1.0.0")
        released.commit("fix: dep", {"packages/my-dep/dep.py": "x = 1\n"})

        expected = ["my-app", "my-dep"]
        assert list_changed_packages(released.package("other")) == expected
        assert list_changed_packages(released.package("my-app")) == expected

    def test_unreleased_package(self, released: GitRepo) -> None:
        released.add_package("brand-new")
        released.commit("feat: brand new")
        assert list_changed_packages(released.path) == ["brand-new"]

    def test_version_bump_without_tag_is_changed(self, released: GitRepo) -> None:
        path = released.package("my-dep") / "pyproject.toml"
        bumped = path.read_text().replace("1.0.0", "1.1.0")
        released.commit("chore: bump", {"packages/my-dep/pyproject.toml": bumped})
        assert list_changed_packages(released.path) == ["my-app", "my-dep"]

    def test_root_package_ignores_member_changes(self, repo: GitRepo) -> None:
        repo.write(
            {
                "pyproject.toml": '[project]\nname = "monorepo"\nversion = "1.0.0"\n\n'
                '[tool.uv.workspace]\nmembers = ["packages/*"]\n',
                "packages/lib-dir/pyproject.toml": (
                    '[project]\nname = "my-lib"\nversion = "1.0.0"\n'
                ),
            }
        )
        repo.commit("feat: workspace")
        repo.tag("monorepo@1.0.0")
        repo.tag("my-lib@1.0.0")

        repo.commit("fix: lib", {"packages/lib-dir/lib.py": "x = 1\n"})
        assert list_changed_packages(repo.path) == ["lib-dir"]

        repo.commit("docs: readme", {"README.md": "hello\n"})
        assert list_changed_packages(repo.path) == ["monorepo", "lib-dir"]

    def test_cache_gives_same_answer(self, released: GitRepo, tmp_path: Path) -> None:
        released.commit("fix: dep", {"packages/my-dep/dep.py": "x = 1\n"})
        cache = GitCache(tmp_path / "cache")

        first = list_changed_packages(released.path, cache=cache)
        second = list_changed_packages(released.path, cache=GitCache(tmp_path / "cache"))

        assert first == second == ["my-app", "my-dep"]
        assert cache.misses > 0
