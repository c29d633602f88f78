"""Dependency graph utilities.

Builds the workspace dependency graph and propagates "changed" status through
it. The graph is a general directed graph: dependency cycles between workspace
packages do happen, so every traversal keeps a visited set instead of
assuming a DAG.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from pathlib import Path

from .errors import WorkspaceMetadataError
from .models import DependencyGraph, PackageNode, WorkspaceMember
from .workspace import UvWorkspace, WorkspaceProvider

logger = logging.getLogger(__name__)


def graph_from_members(root: Path, members: Iterable[WorkspaceMember]) -> DependencyGraph:
    """Build a DependencyGraph from provider output.

    Forward edges are restricted to names that are themselves members; the
    reverse edges are derived from the forward ones in the same pass so every
    "A depends on B" has a matching "B is depended on by A".

    Raises:
        WorkspaceMetadataError: If two members share a name.
    """
    members = list(members)
    by_name: dict[str, WorkspaceMember] = {}
    for member in members:
        if member.name in by_name:
            raise WorkspaceMetadataError(f"Duplicate workspace package name {member.name!r}")
        by_name[member.name] = member

    forward: dict[str, list[str]] = {name: [] for name in by_name}
    # Track reverse dependencies (who depends on each package)
    reverse: dict[str, list[str]] = {name: [] for name in by_name}
    for name, member in by_name.items():
        for dep in member.dependencies:
            # External packages are not nodes
            if dep in by_name and dep not in forward[name]:
                forward[name].append(dep)
                reverse[dep].append(name)

    packages = {
        name: PackageNode(
            name=name,
            cwd=member.cwd,
            version=member.version,
            dependencies=frozenset(forward[name]),
            dependents=frozenset(reverse[name]),
        )
        for name, member in by_name.items()
    }
    return DependencyGraph(root=Path(root), packages=packages)


def build_dependency_graph(
    root: Path, provider: WorkspaceProvider | None = None
) -> DependencyGraph:
    """Discover the workspace at ``root`` and build its dependency graph.

    Args:
        root: Workspace root directory.
        provider: Metadata provider; defaults to UvWorkspace.

    Raises:
        WorkspaceMetadataError: If discovery fails.
    """
    provider = provider or UvWorkspace()
    graph = graph_from_members(root, provider.discover(Path(root)))
    for node in graph:
        deps = f" → [{', '.join(sorted(node.dependencies))}]" if node.dependencies else ""
        logger.debug("  %s %s (%s)%s", node.name, node.version, node.cwd, deps)
    return graph


def propagate_changes(graph: DependencyGraph, direct: Iterable[str]) -> set[str]:
    """Mark every package that (transitively) depends on a changed package.

    Breadth-first over reverse edges starting from the directly changed
    packages. Each package is enqueued at most once, so cycles terminate and
    a cycle containing a changed package ends up entirely changed.

    Args:
        graph: The dependency graph.
        direct: Names of packages with direct changes.

    Returns:
        Names of all changed packages (direct plus propagated).
    """
    dirty = set(direct)
    queue = deque(dirty)
    while queue:
        node = queue.popleft()
        for dependent in sorted(graph[node].dependents):
            if dependent not in dirty:
                logger.debug("  %s: changed (depends on %s)", dependent, node)
                dirty.add(dependent)
                queue.append(dependent)
    return dirty


def dependency_closure(graph: DependencyGraph, name: str) -> set[str]:
    """All packages ``name`` depends on, directly or transitively.

    The package itself is only included when it sits on a cycle.
    """
    seen: set[str] = set()
    stack = list(graph[name].dependencies)
    while stack:
        dep = stack.pop()
        if dep in seen:
            continue
        seen.add(dep)
        stack.extend(graph[dep].dependencies - seen)
    return seen
