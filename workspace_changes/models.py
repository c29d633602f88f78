"""Data models for workspace-changes.

These Pydantic models represent the core data structures: the workspace
members reported by a metadata provider, the dependency graph built from
them, the per-package change verdicts, and the commit ranges used for change
checks and changelogs. Everything built from the workspace is frozen; it is
created once per run and only read afterwards.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .paths import canonical_path, same_path
from .versions import release_tag_name, tag_prefix


class WorkspaceMember(BaseModel):
    """A package as reported by a workspace metadata provider.

    Attributes:
        name: Canonical package name.
        cwd: Absolute path to the package directory.
        version: Declared version string.
        dependencies: Names of internal (workspace) dependencies. External
              deps are not tracked here since they never affect change status.
    """

    name: str
    cwd: Path
    version: str
    dependencies: list[str] = Field(default_factory=list)


class PackageNode(BaseModel):
    """A single workspace package in the dependency graph.

    Attributes:
        name: Unique package name.
        cwd: Absolute path to the package directory.
        version: Declared version string.
        dependencies: Workspace packages this one depends on.
        dependents: Workspace packages that depend on this one.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    cwd: Path
    version: str
    dependencies: frozenset[str] = frozenset()
    dependents: frozenset[str] = frozenset()

    @property
    def release_tag(self) -> str:
        """Tag of the release matching the declared version."""
        return release_tag_name(self.name, self.version)

    @property
    def tag_prefix(self) -> str:
        return tag_prefix(self.name)


class DependencyGraph(BaseModel):
    """All workspace packages plus the workspace root.

    Packages keep discovery order, which is the order every report uses.
    Dependency cycles are allowed.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    packages: dict[str, PackageNode]

    def __iter__(self) -> Iterator[PackageNode]:  # type: ignore[override]
        return iter(self.packages.values())

    def __len__(self) -> int:
        return len(self.packages)

    def __getitem__(self, name: str) -> PackageNode:
        return self.packages[name]

    def __contains__(self, name: object) -> bool:
        return name in self.packages

    def is_root(self, node: PackageNode) -> bool:
        """Whether the node is the package living at the workspace root."""
        return same_path(node.cwd, self.root)

    def find_by_path(self, path: Path | str) -> PackageNode | None:
        """Find the package whose directory contains ``path``.

        The deepest matching package wins, so a path inside a member is
        attributed to that member rather than to the root package.
        """
        target = canonical_path(path)
        best: PackageNode | None = None
        best_depth = -1
        for node in self:
            node_path = canonical_path(node.cwd)
            if target == node_path or node_path in target.parents:
                depth = len(node_path.parts)
                if depth > best_depth:
                    best, best_depth = node, depth
        return best

    def member_paths(self, node: PackageNode) -> list[str]:
        """Relative paths of other packages nested inside ``node``'s directory.

        Used to keep the root package's change check from seeing every
        member's changes.
        """
        base = canonical_path(node.cwd)
        nested: list[str] = []
        for other in self:
            if other.name == node.name:
                continue
            other_path = canonical_path(other.cwd)
            if base in other_path.parents:
                nested.append(other_path.relative_to(base).as_posix())
        return nested


class ChangeVerdict(BaseModel):
    """The changed/unchanged decision for one package.

    Attributes:
        package: Package name.
        has_direct_changes: Files under the package changed since its last
            release, or the package has never been released.
        is_changed: has_direct_changes, or any dependency is changed
            (transitively).
        dag: The package's graph node.
    """

    model_config = ConfigDict(frozen=True)

    package: str
    has_direct_changes: bool
    is_changed: bool
    dag: PackageNode


class ReleaseRange(BaseModel):
    """A commit interval covered by one change check or changelog entry.

    Attributes:
        from_commit: Exclusive lower bound. None means "from the first
            commit", inclusive.
        to_commit: Inclusive upper bound.
        tag: Release tag that closes the range. None for unreleased commits.
        since_tag: Release tag found at the lower bound, when there is one.
    """

    model_config = ConfigDict(frozen=True)

    from_commit: str | None = None
    to_commit: str = "HEAD"
    tag: str | None = None
    since_tag: str | None = None

    @property
    def rev_range(self) -> str:
        """Revision range argument for git log."""
        if self.from_commit is None:
            return self.to_commit
        return f"{self.from_commit}..{self.to_commit}"


class Commit(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha: str
    subject: str
    body: str = ""
