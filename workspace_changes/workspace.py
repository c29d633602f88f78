"""Workspace metadata providers.

A provider turns a workspace root directory into a list of members with
their names, directories, versions and internal dependencies. The default
provider reads a uv workspace: [tool.uv.workspace].members in the root
pyproject.toml, then each member's own pyproject.toml.
"""

from __future__ import annotations

import glob
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from .deps import internal_dependencies
from .errors import WorkspaceMetadataError
from .models import WorkspaceMember
from .paths import canonical_path, same_path
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_workspace_exclude_globs,
    get_workspace_member_globs,
    has_project_table,
    load_pyproject,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class WorkspaceProvider(Protocol):
    """Protocol for workspace discovery."""

    def discover(self, root: Path) -> list[WorkspaceMember]:
        """Discover all packages in the workspace.

        Args:
            root: Workspace root directory.

        Returns:
            Members in a stable order.

        Raises:
            WorkspaceMetadataError: If discovery fails.
        """
        ...


def _expand_globs(root: Path, patterns: list[str]) -> list[Path]:
    matches: list[Path] = []
    for pattern in patterns:
        for match in sorted(glob.glob(str(root / pattern))):
            matches.append(Path(match))
    return matches


class UvWorkspace:
    """Discovers packages in a uv workspace."""

    def discover(self, root: Path) -> list[WorkspaceMember]:
        """Scan the workspace and discover all packages.

        Reads [tool.uv.workspace].members from root pyproject.toml to find
        package directories, then extracts name, version, and internal deps
        from each package's pyproject.toml. The root itself is a member when
        its pyproject.toml has a [project] table.
        """
        root = Path(root)
        root_doc = load_pyproject(root / "pyproject.toml")
        member_globs = get_workspace_member_globs(root_doc)
        excluded = {
            canonical_path(p)
            for p in _expand_globs(root, get_workspace_exclude_globs(root_doc))
        }

        member_dirs: list[Path] = []
        if has_project_table(root_doc):
            member_dirs.append(root)

        # Expand globs to find all package directories
        seen_dirs = {canonical_path(d) for d in member_dirs}
        for p in _expand_globs(root, member_globs):
            if not (p / "pyproject.toml").is_file():
                continue
            real = canonical_path(p)
            if real in excluded or real in seen_dirs:
                # A member that resolves to the root (e.g. a symlink) is the
                # root package, not a second member
                continue
            seen_dirs.add(real)
            member_dirs.append(p)

        if not member_dirs:
            raise WorkspaceMetadataError("No packages found matching workspace members")

        # First pass: collect basic info from each package
        members: list[WorkspaceMember] = []
        raw_deps: dict[str, list[str]] = {}
        for d in member_dirs:
            doc = root_doc if same_path(d, root) else load_pyproject(d / "pyproject.toml")
            name = get_project_name(doc, d.name)
            if name in raw_deps:
                raise WorkspaceMetadataError(
                    f"Duplicate workspace package name {name!r} ({d})"
                )
            members.append(
                WorkspaceMember(
                    name=name, cwd=d.absolute(), version=get_project_version(doc)
                )
            )
            raw_deps[name] = get_all_dependency_strings(doc)

        # Second pass: identify which deps are internal (within workspace)
        workspace_names = set(raw_deps)
        for member in members:
            deps = internal_dependencies(raw_deps[member.name], workspace_names)
            # A package listing itself (e.g. in an extra) is not an edge
            member.dependencies = [d for d in deps if d != member.name]
            logger.debug(
                "Discovered %s %s (%s) deps=%s",
                member.name,
                member.version,
                member.cwd,
                member.dependencies,
            )

        return members
