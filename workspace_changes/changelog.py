"""Conventional-commit changelog text.

Turns the commits in one release range into a markdown block laid out like
conventional-changelog output:

    ### [1.0.1] (2024-05-02)

    ### Bug Fixes

    * **parser:** handle empty input (1a2b3c4)

The block's version is the closing tag's version for a released range. For
unreleased commits it is inferred: the last released version bumped by the
highest-ranking commit type (breaking → major, feat → minor, else patch), or
the declared version when the package has never been released.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from . import git
from .cache import GitCache
from .models import Commit, ReleaseRange
from .versions import bump_version, parse_version

logger = logging.getLogger(__name__)

_HEADER = re.compile(
    r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^()]*)\))?(?P<breaking>!)?: (?P<subject>.+)$"
)
_BREAKING_NOTE = re.compile(r"^BREAKING[ -]CHANGE: *(?P<note>.+)", re.MULTILINE | re.DOTALL)

# Commit type → section title, in output order
SECTIONS = (
    ("feat", "Features"),
    ("fix", "Bug Fixes"),
    ("perf", "Performance Improvements"),
    ("revert", "Reverts"),
)


class ChangelogFormatter(Protocol):
    """Renders the changelog text for one release range."""

    def format(
        self,
        cwd: Path,
        release_range: ReleaseRange,
        *,
        tag_prefix: str,
        version: str,
        pathspecs: Sequence[str] = (".",),
        cache: GitCache | None = None,
    ) -> str:
        """Render one markdown block.

        Args:
            cwd: Package directory; commits are limited to ``pathspecs``
                relative to it.
            release_range: Commits to summarize.
            tag_prefix: Prefix of the package's release tags ("name@").
            version: The package's declared version, used when the range
                has never been released.
        """
        ...


class ConventionalCommit(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha: str
    type: str
    scope: str | None = None
    subject: str
    breaking: bool = False
    breaking_note: str | None = None


def parse_commit(commit: Commit) -> ConventionalCommit | None:
    """Parse a commit message as a conventional commit.

    Returns None for messages that don't follow the "type(scope): subject"
    convention.
    """
    match = _HEADER.match(commit.subject.strip())
    if not match:
        return None
    note_match = _BREAKING_NOTE.search(commit.body)
    note = note_match.group("note").strip() if note_match else None
    return ConventionalCommit(
        sha=commit.sha,
        type=match.group("type").lower(),
        scope=match.group("scope") or None,
        subject=match.group("subject").strip(),
        breaking=bool(match.group("breaking")) or note is not None,
        breaking_note=note,
    )


def release_type(commits: Sequence[ConventionalCommit]) -> str:
    """Release type implied by a set of commits.

    Anything that reaches a changelog is at least a patch, including a
    package that only changed through a dependency.
    """
    if any(c.breaking for c in commits):
        return "major"
    if any(c.type == "feat" for c in commits):
        return "minor"
    return "patch"


def _item(commit: ConventionalCommit, text: str) -> str:
    scope = f"**{commit.scope}:** " if commit.scope else ""
    return f"* {scope}{text} ({commit.sha[:7]})"


def _heading(version: str) -> str:
    # conventional-changelog uses a smaller heading for patch releases
    try:
        return "###" if parse_version(version).micro else "##"
    except ValueError:
        return "##"


def render(version: str, day: str, commits: Sequence[ConventionalCommit]) -> str:
    """Render a release block."""
    heading = _heading(version)
    lines = [f"{heading} [{version}] ({day})", ""]

    breaking = [c for c in commits if c.breaking]
    if breaking:
        lines += ["### ⚠ BREAKING CHANGES", ""]
        lines += [_item(c, c.breaking_note or c.subject) for c in breaking]
        lines.append("")

    for commit_type, title in SECTIONS:
        items = [_item(c, c.subject) for c in commits if c.type == commit_type]
        if items:
            lines += [f"### {title}", "", *items, ""]

    return "\n".join(lines)


class ConventionalChangelog:
    """Default ChangelogFormatter.

    Args:
        today: Date used for unreleased blocks.
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        self.today = today

    def format(
        self,
        cwd: Path,
        release_range: ReleaseRange,
        *,
        tag_prefix: str,
        version: str,
        pathspecs: Sequence[str] = (".",),
        cache: GitCache | None = None,
    ) -> str:
        commits = git.log(release_range.rev_range, cwd=cwd, pathspecs=pathspecs, cache=cache)
        parsed = [c for c in map(parse_commit, commits) if c is not None]

        if release_range.tag is not None:
            new_version = release_range.tag[len(tag_prefix) :]
            day = git.commit_date(release_range.tag, cwd=cwd, cache=cache)
        else:
            if release_range.since_tag is not None:
                last = release_range.since_tag[len(tag_prefix) :]
                new_version = _next_version(last, release_type(parsed), fallback=version)
            else:
                new_version = version
            day = self.today().isoformat()

        return render(new_version, day, parsed)


def _next_version(last: str, bump: str, *, fallback: str) -> str:
    """Bump the last released version, or fall back to the declared one."""
    try:
        return bump_version(last, bump)
    except ValueError:
        logger.warning("Cannot bump version %r; using declared version %s", last, fallback)
        return fallback
