"""Git access layer.

Every git query the change and changelog logic needs, as small functions on
top of execute(). Functions that accept a ``cache`` only pass it through for
queries whose answer can't change once computed (e.g. the commit a release
tag points at, or a diff between two fixed commits). Queries about moving
targets (HEAD, the tag list) always run git.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from pathlib import Path

from .cache import GitCache
from .errors import CommandError, UnknownRevision
from .models import Commit, PackageNode, ReleaseRange
from .shell import run_git
from .versions import sort_tags

logger = logging.getLogger(__name__)

# Exit codes of `merge-base --is-ancestor` that mean "no": 1 is a plain
# "not an ancestor", 128 is a commit that doesn't exist (e.g. shallow clone)
_NOT_ANCESTOR_EXIT_CODES = (1, 128)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x1f%s%x1f%b%x1e"


def execute(
    args: Sequence[str], *, cwd: Path | str, cache: GitCache | None = None
) -> str:
    """Run git, going through ``cache`` when one is given.

    Raises:
        CommandError: If git exits non-zero.
        LockTimeoutError: If a persistent cache entry stays locked too long.
    """
    args = list(args)
    if cache is None:
        return run_git(args, cwd)
    return cache.fetch(str(cwd), args, lambda: run_git(args, cwd))


def get_lines(output: str) -> list[str]:
    """Split command output into non-empty lines."""
    return [line for line in re.split(r"\r?\n", output) if line]


def current_branch(cwd: Path | str) -> str:
    return execute(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd).strip()


def current_commit(cwd: Path | str) -> str:
    return execute(["rev-parse", "HEAD"], cwd=cwd).strip()


def workspace_root(cwd: Path | str) -> Path:
    """Top-level directory of the repository containing ``cwd``."""
    return Path(execute(["rev-parse", "--show-toplevel"], cwd=cwd).strip())


def commit_at_tag(tag: str, *, cwd: Path | str, cache: GitCache | None = None) -> str:
    """Commit a tag points at.

    Raises:
        UnknownRevision: If the tag doesn't exist.
    """
    return execute(["rev-list", "-1", tag, "--"], cwd=cwd, cache=cache).strip()


def first_commit(*, cwd: Path | str, cache: GitCache | None = None) -> str:
    """Oldest parentless commit reachable from HEAD.

    With several root commits (merged unrelated histories) this is the first
    one git lists, not a re-sorted choice.
    """
    # https://stackoverflow.com/a/5189296
    roots = execute(["rev-list", "--max-parents=0", "HEAD"], cwd=cwd, cache=cache)
    return get_lines(roots)[0]


def is_ancestor(
    ancestor: str,
    descendant: str,
    *,
    cwd: Path | str,
    cache: GitCache | None = None,
) -> bool:
    """Whether ``ancestor`` is in the history of ``descendant``.

    Raises:
        CommandError: For exit codes other than 0, 1 and 128.
    """
    try:
        execute(
            ["merge-base", "--is-ancestor", ancestor, descendant], cwd=cwd, cache=cache
        )
    except CommandError as err:
        if err.exit_code not in _NOT_ANCESTOR_EXIT_CODES:
            raise
        return False
    return True


def common_ancestor(
    commit_a: str, commit_b: str, *, cwd: Path | str, cache: GitCache | None = None
) -> str:
    return execute(["merge-base", commit_a, commit_b], cwd=cwd, cache=cache).strip()


def file_at_commit(file_path: str, commit: str, cwd: Path | str) -> str:
    """Contents of ``file_path`` (relative to the repo root) at ``commit``."""
    return execute(["show", f"{commit}:{file_path}"], cwd=cwd)


def commits_since_last_release(
    package: PackageNode,
    *,
    cwd: Path | str | None = None,
    cache: GitCache | None = None,
) -> ReleaseRange:
    """Range of commits since the package's release tag.

    The tag is "<name>@<version>" for the package's declared version (minus
    any "-detached" suffix). If that tag doesn't exist the package has never
    been released at this version, and the range falls back to starting at
    the first commit, with ``since_tag`` left unset.

    Raises:
        CommandError: If the tag lookup fails for any reason other than the
            tag not existing.
    """
    cwd = cwd if cwd is not None else package.cwd
    tag = package.release_tag
    try:
        commit = commit_at_tag(tag, cwd=cwd, cache=cache)
    except UnknownRevision:
        logger.debug("%s: no tag %s, using first commit", package.name, tag)
        return ReleaseRange(from_commit=first_commit(cwd=cwd, cache=cache))
    return ReleaseRange(from_commit=commit, since_tag=tag)


def has_changes(
    from_commit: str,
    to_commit: str,
    *,
    cwd: Path | str,
    pathspecs: Sequence[str] = (".",),
    cache: GitCache | None = None,
) -> bool:
    """Whether any file matching ``pathspecs`` differs between two commits.

    Pathspecs are relative to ``cwd``.
    """
    output = execute(
        ["diff", "--name-only", from_commit, to_commit, "--", *pathspecs],
        cwd=cwd,
        cache=cache,
    )
    return bool(output.strip())


def release_tags(prefix: str, *, cwd: Path | str) -> list[str]:
    """Tags starting with ``prefix``, newest version first."""
    output = execute(["tag", "--list", f"{prefix}*"], cwd=cwd)
    return sort_tags(get_lines(output), prefix)


def commit_date(ref: str, *, cwd: Path | str, cache: GitCache | None = None) -> str:
    """Committer date of ``ref`` as YYYY-MM-DD."""
    return execute(
        ["log", "-1", "--format=%cd", "--date=short", ref, "--"], cwd=cwd, cache=cache
    ).strip()


def log(
    rev_range: str,
    *,
    cwd: Path | str,
    pathspecs: Sequence[str] = (".",),
    cache: GitCache | None = None,
) -> list[Commit]:
    """Commits in ``rev_range`` touching ``pathspecs``, newest first."""
    output = execute(
        ["log", f"--format={_LOG_FORMAT}", rev_range, "--", *pathspecs],
        cwd=cwd,
        cache=cache,
    )
    commits: list[Commit] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\r\n")
        if not record:
            continue
        sha, subject, body = (record.split(_FIELD_SEP, 2) + ["", ""])[:3]
        commits.append(Commit(sha=sha, subject=subject, body=body.strip()))
    return commits
