"""TOML reading utilities.

Uses tomlkit to read pyproject.toml files: the workspace root (for uv
workspace members and [tool.workspace-changes] settings) and each member
(for name, version and dependencies).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import TOMLKitError

from .errors import WorkspaceMetadataError


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Raises:
        WorkspaceMetadataError: If the file is missing or not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except FileNotFoundError as exc:
        raise WorkspaceMetadataError(f"No pyproject.toml found at {path}") from exc
    except TOMLKitError as exc:
        raise WorkspaceMetadataError(f"Invalid TOML in {path}: {exc}") from exc


def has_project_table(doc: tomlkit.TOMLDocument) -> bool:
    """Whether the document declares a package ([project] table)."""
    return "project" in doc


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to use if name is not specified.
    """
    return canonicalize_name(str(doc.get("project", {}).get("name", fallback)))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect all dependency strings from a pyproject.toml.

    Gathers dependencies from three locations:
    - [project].dependencies (main runtime deps)
    - [project].optional-dependencies.* (extras like [dev], [test])
    - [dependency-groups].* (PEP 735 dependency groups)

    Returns raw PEP 508 strings like "requests>=2.0" or "pkg[extra]~=1.0".
    PEP 735 include-group tables are skipped.
    """
    project = doc.get("project", {})
    deps: list[str] = [str(d) for d in project.get("dependencies", [])]
    # Collect optional dependency groups (e.g., [project.optional-dependencies.dev])
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(str(d) for d in group_deps)
    # Collect PEP 735 dependency groups (e.g., [dependency-groups.test])
    for group_deps in doc.get("dependency-groups", {}).values():
        deps.extend(str(d) for d in group_deps if isinstance(d, str))
    return deps


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages.

    Raises:
        WorkspaceMetadataError: If no workspace members are defined.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    if not members:
        raise WorkspaceMetadataError(
            "No [tool.uv.workspace] members defined in root pyproject.toml"
        )
    return [str(m) for m in members]


def get_workspace_exclude_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract [tool.uv.workspace].exclude patterns (may be empty)."""
    exclude = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("exclude", [])
    return [str(e) for e in exclude]


def get_tool_table(doc: tomlkit.TOMLDocument, name: str) -> dict[str, Any]:
    """Return [tool.<name>] as a plain dict (empty when absent)."""
    table = doc.get("tool", {}).get(name, {})
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)
