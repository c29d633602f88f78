"""Change detection: which packages changed since their last release.

A package has direct changes if:
1. It has no release tag for its declared version (never released), or
2. Any file in its directory changed between that tag and HEAD.

A package is changed if it has direct changes or any of its dependencies is
changed (transitive, see graph.propagate_changes).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .cache import GitCache
from .git import commits_since_last_release, current_commit, has_changes, workspace_root
from .graph import build_dependency_graph, propagate_changes
from .models import ChangeVerdict, DependencyGraph, PackageNode
from .paths import same_path
from .workspace import WorkspaceProvider

logger = logging.getLogger(__name__)


def package_pathspecs(graph: DependencyGraph, node: PackageNode) -> list[str]:
    """Pathspecs (relative to the package dir) covering only this package.

    Members nested under the package's directory are excluded; in practice
    this only matters for the root package, which contains every member.
    """
    return ["."] + [f":(exclude){p}" for p in graph.member_paths(node)]


def has_direct_changes(
    graph: DependencyGraph,
    node: PackageNode,
    head: str,
    cache: GitCache | None = None,
) -> bool:
    """Whether ``node`` changed between its last release and ``head``.

    A package without a release tag counts as changed: with nothing to diff
    against there is no evidence that it is unchanged.
    """
    since = commits_since_last_release(node, cache=cache)
    if since.since_tag is None or since.from_commit is None:
        logger.debug("  %s: new package", node.name)
        return True

    changed = has_changes(
        since.from_commit,
        head,
        cwd=node.cwd,
        pathspecs=package_pathspecs(graph, node),
        cache=cache,
    )
    if changed:
        logger.debug("  %s: changed since %s", node.name, since.since_tag)
    return changed


def build_change_graph(
    graph: DependencyGraph,
    *,
    cache: GitCache | None = None,
    jobs: int = 1,
) -> list[ChangeVerdict]:
    """Compute a change verdict for every package in the graph.

    HEAD is resolved to a commit once, up front, so that every package is
    compared against the same commit and the diff queries can be cached.

    Args:
        graph: The dependency graph.
        cache: Optional git cache.
        jobs: Number of packages to check concurrently.

    Returns:
        One verdict per package, in graph order.

    Raises:
        CommandError: If a git query fails.
        LockTimeoutError: If a persistent cache entry stays locked too long.
    """
    nodes = list(graph)
    if not nodes:
        return []

    head = current_commit(graph.root)

    def check(node: PackageNode) -> bool:
        return has_direct_changes(graph, node, head, cache)

    if jobs > 1 and len(nodes) > 1:
        # map() keeps input order, so output stays deterministic
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            flags = list(pool.map(check, nodes))
    else:
        flags = [check(node) for node in nodes]

    direct = {node.name for node, flag in zip(nodes, flags) if flag}
    changed = propagate_changes(graph, direct)

    return [
        ChangeVerdict(
            package=node.name,
            has_direct_changes=node.name in direct,
            is_changed=node.name in changed,
            dag=node,
        )
        for node in nodes
    ]


def display_name(node: PackageNode, root: Path | str) -> str:
    """Name to report for a changed package.

    The package at the workspace root reports its package name; every other
    package reports its directory name.
    """
    return node.name if same_path(node.cwd, root) else Path(node.cwd).name


def list_changed_packages(
    cwd: Path | str | None = None,
    *,
    cache: GitCache | None = None,
    provider: WorkspaceProvider | None = None,
    jobs: int = 1,
) -> list[str]:
    """Names of all changed packages in the workspace containing ``cwd``.

    Raises:
        CommandError: If a git query fails.
        WorkspaceMetadataError: If workspace discovery fails.
    """
    root = workspace_root(cwd if cwd is not None else Path.cwd())
    graph = build_dependency_graph(root, provider)
    verdicts = build_change_graph(graph, cache=cache, jobs=jobs)
    return [display_name(v.dag, root) for v in verdicts if v.is_changed]
