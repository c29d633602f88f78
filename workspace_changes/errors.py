"""Error types for workspace-changes.

Every failure the library raises derives from WorkspaceChangesError so the CLI
can report it in one place. Git failures are translated exactly once, in
command_error(): the rest of the code reasons about the exception class (or
ErrorKind), never about git's stderr text.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

# stderr fragments git prints (with exit code 128) when a ref can't be resolved
_UNKNOWN_REVISION_PATTERNS = (
    re.compile(r"unknown revision"),
    re.compile(r"bad revision"),
    re.compile(r"Needed a single revision"),
)


class ErrorKind(str, Enum):
    """Closed set of git failure kinds."""

    UNKNOWN_REVISION = "unknown-revision"
    COMMAND_FAILED = "command-failed"


class WorkspaceChangesError(Exception):
    """Base class for all workspace-changes errors."""


class CommandError(WorkspaceChangesError):
    """A git command exited non-zero.

    Attributes:
        command_args: The git arguments (without the leading "git").
        cwd: Working directory the command ran in.
        exit_code: Process exit code. Negative when killed by a signal.
        stderr: Captured standard error text.
    """

    kind = ErrorKind.COMMAND_FAILED

    def __init__(
        self, args: Sequence[str], cwd: Path | str, exit_code: int, stderr: str
    ) -> None:
        self.command_args = list(args)
        self.cwd = Path(cwd)
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or "no error output"
        super().__init__(
            f"git {' '.join(self.command_args)} failed with exit code "
            f"{exit_code} in {self.cwd}: {detail}"
        )


class UnknownRevision(CommandError):
    """A referenced tag or commit does not exist."""

    kind = ErrorKind.UNKNOWN_REVISION


class LockTimeoutError(WorkspaceChangesError):
    """The cache lock could not be acquired in time."""

    def __init__(self, lock_path: Path, timeout: float) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s waiting for lock {lock_path}")


class WorkspaceMetadataError(WorkspaceChangesError):
    """Workspace discovery failed."""


def classify(exit_code: int, stderr: str) -> ErrorKind:
    """Map a git exit code and stderr to an ErrorKind.

    Git reports a missing ref with exit code 128 and one of a handful of
    messages depending on the subcommand (rev-list, rev-parse, log, ...).
    Anything else is a plain command failure.
    """
    if exit_code == 128 and any(p.search(stderr) for p in _UNKNOWN_REVISION_PATTERNS):
        return ErrorKind.UNKNOWN_REVISION
    return ErrorKind.COMMAND_FAILED


def command_error(
    args: Sequence[str], cwd: Path | str, exit_code: int, stderr: str
) -> CommandError:
    """Build the CommandError subclass matching a failed git invocation."""
    if classify(exit_code, stderr) is ErrorKind.UNKNOWN_REVISION:
        return UnknownRevision(args, cwd, exit_code, stderr)
    return CommandError(args, cwd, exit_code, stderr)
