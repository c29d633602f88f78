"""Version parsing, bumping and release tag naming.

Release tags are named "<package-name>@<version>". Versions may carry a
"-detached..." suffix (e.g. "1.2.0-detached.3") that marks a build which was
never released under its own tag; it is stripped before composing the tag.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)

_DETACHED_SUFFIX = re.compile(r"^(.*)-detached.*$")

RELEASE_TYPES = ("major", "minor", "patch")


def strip_detached_suffix(version_str: str) -> str:
    """Remove a "-detached..." suffix from a version string.

    Examples:
        "1.2.3-detached" → "1.2.3"
        "1.2.3-detached.4f2a" → "1.2.3"
        "1.2.3-beta.1" → "1.2.3-beta.1"
    """
    match = _DETACHED_SUFFIX.match(version_str)
    return match.group(1) if match else version_str


def tag_prefix(name: str) -> str:
    return f"{name}@"


def release_tag_name(name: str, version_str: str) -> str:
    """Compose the release tag for a package version.

    Examples:
        release_tag_name("my-app", "1.0.0-detached") → "my-app@1.0.0"
    """
    return f"{tag_prefix(name)}{strip_detached_suffix(version_str)}"


def parse_version(version_str: str) -> Version:
    """Parse a PEP 440 version string.

    Accepts anything uv accepts for a workspace member: "1.2", "0.1.0a1",
    "1.0rc1", "1.0.0.dev1", "2.0.post1", "1.2+local". Semver-style
    pre-releases such as "1.2.3-rc.1" are normalized by packaging.

    Raises:
        ValueError: If the string is not a version (InvalidVersion is a
            ValueError subclass).
    """
    return Version(version_str)


def _release(version: Version) -> tuple[int, int, int]:
    """First three release components, padded with zeros."""
    major, minor, micro = (*version.release, 0, 0)[:3]
    return major, minor, micro


def bump_version(version_str: str, release_type: str) -> str:
    """Increment a version by release type ("major", "minor" or "patch").

    The result is always a plain three-part release. A pre-release or dev
    version finalizes to its own release when the bump would not go past it.

    Examples:
        bump_version("1.2.3", "minor") → "1.3.0"
        bump_version("1.2", "major") → "2.0.0"
        bump_version("1.0rc1", "patch") → "1.0.0"
        bump_version("1.1.0rc1", "minor") → "1.1.0"
        bump_version("1.1.1rc1", "minor") → "1.2.0"
        bump_version("2.0.0.post1", "patch") → "2.0.1"

    Raises:
        ValueError: If the release type or the version is invalid.
    """
    if release_type not in RELEASE_TYPES:
        raise ValueError(f"Unknown release type: {release_type!r}")
    version = parse_version(version_str)
    major, minor, micro = _release(version)
    unfinished = version.is_prerelease

    if release_type == "major":
        if not (unfinished and minor == 0 and micro == 0):
            major, minor, micro = major + 1, 0, 0
    elif release_type == "minor":
        if not (unfinished and micro == 0):
            minor, micro = minor + 1, 0
    elif not unfinished:
        micro += 1
    return f"{major}.{minor}.{micro}"


def sort_tags(tags: Iterable[str], prefix: str) -> list[str]:
    """Sort release tags newest first by the version after ``prefix``.

    Ordering follows PEP 440, so "1.1.0rc1" sorts between "1.0.0" and
    "1.1.0". Tags that don't start with the prefix, or whose remainder isn't
    a version (e.g. "my-app@latest"), are dropped.
    """
    versioned: list[tuple[Version, str]] = []
    for tag in tags:
        if not tag.startswith(prefix):
            continue
        try:
            versioned.append((parse_version(tag[len(prefix) :]), tag))
        except InvalidVersion:
            logger.debug("Ignoring tag %s: not a version", tag)
    versioned.sort(key=lambda item: item[0], reverse=True)
    return [tag for _, tag in versioned]
