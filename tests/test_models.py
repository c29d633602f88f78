"""Tests for workspace_changes.models and workspace_changes.paths."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_graph
from pydantic import ValidationError

from workspace_changes.models import PackageNode, ReleaseRange
from workspace_changes.paths import canonical_path, same_path


class TestPackageNode:
    def test_release_tag(self) -> None:
        node = PackageNode(name="my-app", cwd=Path("/r"), version="1.2.3")
        assert node.release_tag == "my-app@1.2.3"
        assert node.tag_prefix == "my-app@"

    def test_release_tag_ignores_detached_suffix(self) -> None:
        node = PackageNode(name="my-app", cwd=Path("/r"), version="1.2.3-detached.abc")
        assert node.release_tag == "my-app@1.2.3"

    def test_frozen(self) -> None:
        node = PackageNode(name="my-app", cwd=Path("/r"), version="1.0.0")
        with pytest.raises(ValidationError):
            node.version = "2.0.0"  # type: ignore[misc]


class TestDependencyGraph:
    def test_container_protocol(self, tmp_path: Path) -> None:
        graph = make_graph(tmp_path, {"b": ("b", []), "a": ("a", ["b"])})
        assert len(graph) == 2
        assert "a" in graph
        assert "zzz" not in graph
        assert graph["a"].dependencies == {"b"}
        # Discovery order is kept
        assert [n.name for n in graph] == ["b", "a"]

    def test_is_root(self, tmp_path: Path) -> None:
        graph = make_graph(tmp_path, {"root": (".", []), "a": ("packages/a", [])})
        assert graph.is_root(graph["root"])
        assert not graph.is_root(graph["a"])

    def test_find_by_path_prefers_deepest(self, tmp_path: Path) -> None:
        graph = make_graph(tmp_path, {"root": (".", []), "a": ("packages/a", [])})
        assert graph.find_by_path(tmp_path / "packages" / "a" / "src").name == "a"
        assert graph.find_by_path(tmp_path / "packages" / "a").name == "a"
        assert graph.find_by_path(tmp_path / "docs").name == "root"

    def test_find_by_path_does_not_match_name_prefix(self, tmp_path: Path) -> None:
        graph = make_graph(tmp_path, {"a": ("packages/a", [])})
        assert graph.find_by_path(tmp_path / "packages" / "ab") is None

    def test_member_paths(self, tmp_path: Path) -> None:
        graph = make_graph(
            tmp_path,
            {"root": (".", []), "a": ("packages/a", []), "b": ("libs/b", [])},
        )
        assert graph.member_paths(graph["root"]) == ["packages/a", "libs/b"]
        assert graph.member_paths(graph["a"]) == []


class TestReleaseRange:
    def test_rev_range(self) -> None:
        assert ReleaseRange(from_commit="abc", to_commit="def").rev_range == "abc..def"

    def test_rev_range_from_start(self) -> None:
        assert ReleaseRange(from_commit=None, to_commit="a@1.0.0").rev_range == "a@1.0.0"

    def test_defaults(self) -> None:
        r = ReleaseRange(from_commit="abc")
        assert r.to_commit == "HEAD"
        assert r.tag is None
        assert r.since_tag is None


class TestPaths:
    def test_symlink_is_same_path(self, tmp_path: Path) -> None:
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real)
        assert same_path(real, link)
        assert canonical_path(link) == canonical_path(real)

    def test_relative_paths_are_absolute(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert canonical_path("x") == canonical_path(tmp_path / "x")
        assert canonical_path("x").is_absolute()

    def test_different_paths(self, tmp_path: Path) -> None:
        assert not same_path(tmp_path / "a", tmp_path / "b")
