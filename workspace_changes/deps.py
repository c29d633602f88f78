"""Dependency string handling.

Provides functions for parsing PEP 508 dependency strings and picking out the
ones that refer to other workspace members.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

logger = logging.getLogger(__name__)


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Handles version specifiers, extras, and normalizes the name per PEP 503
    (lowercase, hyphens instead of underscores).

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"

    Raises:
        InvalidRequirement: If the string is not valid PEP 508.
    """
    return canonicalize_name(Requirement(dep_str).name)


def internal_dependencies(
    dep_strings: Iterable[str], workspace_names: Collection[str]
) -> list[str]:
    """Pick the workspace members out of a package's dependency strings.

    Keeps first-seen order and drops duplicates (a dependency often appears
    in several groups). Strings that aren't valid PEP 508 are skipped.

    Args:
        dep_strings: Raw dependency strings from a pyproject.toml.
        workspace_names: Canonical names of all workspace members.
    """
    found: list[str] = []
    seen: set[str] = set()
    for dep_str in dep_strings:
        try:
            name = dep_canonical_name(dep_str)
        except InvalidRequirement:
            logger.debug("Skipping unparsable dependency %r", dep_str)
            continue
        # Only track internal deps, ignore external packages
        if name in workspace_names and name not in seen:
            found.append(name)
            seen.add(name)
    return found
