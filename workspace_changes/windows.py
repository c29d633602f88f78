"""Changelog windows: which commit ranges a package's changelog covers.

A changelog is a list of release blocks, newest first. Each block covers the
commits between two consecutive release tags of the package (the oldest one
starts at the first commit), plus an "unreleased" block from the last release
to HEAD when the package has changed since then.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from .cache import GitCache
from .changelog import ChangelogFormatter, ConventionalChangelog
from .changes import build_change_graph, package_pathspecs
from .errors import WorkspaceMetadataError
from .git import (
    commit_at_tag,
    commits_since_last_release,
    common_ancestor,
    current_commit,
    has_changes,
    is_ancestor,
    release_tags,
    workspace_root,
)
from .graph import build_dependency_graph, dependency_closure
from .models import DependencyGraph, PackageNode, ReleaseRange
from .versions import strip_detached_suffix
from .workspace import WorkspaceProvider

logger = logging.getLogger(__name__)


def release_history(
    package: PackageNode,
    *,
    head: str,
    cache: GitCache | None = None,
) -> list[str]:
    """The package's release tags reachable from ``head``, newest first.

    Tags cut on other branches are left out since they are not part of this
    history.
    """
    tags = release_tags(package.tag_prefix, cwd=package.cwd)
    return [t for t in tags if is_ancestor(t, head, cwd=package.cwd, cache=cache)]


def changelog_ranges(
    package: PackageNode,
    *,
    from_commit: str | None = None,
    release_count: int | None = None,
    is_changed: bool | None = None,
    pathspecs: Sequence[str] = (".",),
    cache: GitCache | None = None,
) -> list[ReleaseRange]:
    """Compute the ranges a package's changelog should cover, newest first.

    Args:
        package: The package.
        from_commit: Only cover commits after this one (a single unreleased
            range). A commit that isn't an ancestor of HEAD is replaced by
            its merge-base with HEAD.
        release_count: Cover the unreleased commits (if any) plus up to this
            many past releases. Stops at the first commit when there are
            fewer releases.
        is_changed: Whether the package counts as changed since its last
            release, e.g. because a dependency changed. When None only the
            package's own files are checked.
        pathspecs: Pathspecs limiting the package's files (relative to its
            directory).
        cache: Optional git cache.

    By default a single range is returned: the commits since the last
    release. If the package hasn't changed since then (HEAD is the release),
    the range of that release is returned instead.

    Raises:
        ValueError: If release_count is less than 1.
        CommandError: If a git query fails.
    """
    if release_count is not None and release_count < 1:
        raise ValueError(f"release_count must be at least 1, got {release_count}")

    cwd = package.cwd
    head = current_commit(cwd)
    since = commits_since_last_release(package, cache=cache)

    if from_commit is not None:
        start = from_commit
        if not is_ancestor(from_commit, head, cwd=cwd, cache=cache):
            start = common_ancestor(from_commit, head, cwd=cwd, cache=cache)
            logger.debug("%s is not an ancestor of HEAD, using %s", from_commit, start)
        return [ReleaseRange(from_commit=start, to_commit=head, since_tag=since.since_tag)]

    if since.since_tag is None or since.from_commit is None:
        # Never released: everything from the first commit is unreleased
        unreleased = ReleaseRange(from_commit=None, to_commit=head)
        changed = True
    else:
        unreleased = ReleaseRange(
            from_commit=since.from_commit, to_commit=head, since_tag=since.since_tag
        )
        if is_changed is None:
            is_changed = has_changes(
                since.from_commit, head, cwd=cwd, pathspecs=pathspecs, cache=cache
            )
        changed = is_changed

    history = release_history(package, head=head, cache=cache)
    ranges: list[ReleaseRange] = []
    if release_count is None:
        if changed:
            return [unreleased]
        # HEAD is the last release: show that release
        if since.since_tag in history:
            history = history[history.index(since.since_tag) :]
        count = 1
    else:
        if changed:
            ranges.append(unreleased)
        count = release_count

    for i, tag in enumerate(history[:count]):
        previous = history[i + 1] if i + 1 < len(history) else None
        start = commit_at_tag(previous, cwd=cwd, cache=cache) if previous else None
        ranges.append(
            ReleaseRange(from_commit=start, to_commit=tag, tag=tag, since_tag=previous)
        )

    return ranges or [unreleased]


def generate(
    package: PackageNode,
    *,
    graph: DependencyGraph | None = None,
    from_commit: str | None = None,
    release_count: int | None = None,
    is_changed: bool | None = None,
    cache: GitCache | None = None,
    formatter: ChangelogFormatter | None = None,
) -> str:
    """Generate a package's changelog text.

    Each range from changelog_ranges() is formatted independently and the
    blocks are joined newest first.
    """
    formatter = formatter or ConventionalChangelog()
    pathspecs = package_pathspecs(graph, package) if graph is not None else ["."]
    ranges = changelog_ranges(
        package,
        from_commit=from_commit,
        release_count=release_count,
        is_changed=is_changed,
        pathspecs=pathspecs,
        cache=cache,
    )
    blocks = [
        formatter.format(
            package.cwd,
            release_range,
            tag_prefix=package.tag_prefix,
            version=strip_detached_suffix(package.version),
            pathspecs=pathspecs,
            cache=cache,
        )
        for release_range in ranges
    ]
    return "\n".join(blocks)


def get_changelog(
    cwd: Path | str | None = None,
    *,
    from_commit: str | None = None,
    release_count: int | None = None,
    cache: GitCache | None = None,
    provider: WorkspaceProvider | None = None,
    formatter: ChangelogFormatter | None = None,
    jobs: int = 1,
) -> str:
    """Changelog for the workspace package whose directory contains ``cwd``.

    The package's change status includes changes propagated from its
    dependencies, so a package whose dependency changed gets an unreleased
    block even without commits of its own.

    Raises:
        WorkspaceMetadataError: If no workspace package contains ``cwd``.
        CommandError: If a git query fails.
    """
    cwd = Path(cwd) if cwd is not None else Path.cwd()
    root = workspace_root(cwd)
    graph = build_dependency_graph(root, provider)
    package = graph.find_by_path(cwd)
    if package is None:
        raise WorkspaceMetadataError(f"No workspace package contains {cwd}")

    is_changed = None
    if from_commit is None:
        verdicts = build_change_graph(graph, cache=cache, jobs=jobs)
        verdict = next(v for v in verdicts if v.package == package.name)
        is_changed = verdict.is_changed
        if is_changed and not verdict.has_direct_changes:
            changed_deps = dependency_closure(graph, package.name) & {
                v.package for v in verdicts if v.has_direct_changes
            }
            logger.debug(
                "%s changed through its dependencies: %s",
                package.name,
                ", ".join(sorted(changed_deps)),
            )

    return generate(
        package,
        graph=graph,
        from_commit=from_commit,
        release_count=release_count,
        is_changed=is_changed,
        cache=cache,
        formatter=formatter,
    )
