"""Git process invocation.

A thin wrapper around subprocess for running git. Failures are turned into
CommandError (or UnknownRevision) here so callers never see
CalledProcessError.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from .errors import CommandError, command_error

logger = logging.getLogger(__name__)


def run_git(args: Sequence[str], cwd: Path | str) -> str:
    """Run a git command and return stdout.

    Args:
        args: Arguments to pass to git (e.g., "rev-parse", "HEAD").
        cwd: Directory to run git in.

    Returns:
        Stdout from the git command with trailing newlines removed. Leading
        whitespace is kept since some outputs (e.g. commit bodies) are
        significant.

    Raises:
        UnknownRevision: If git could not resolve a referenced revision.
        CommandError: For any other non-zero exit, including termination by
            a signal (negative exit code) or a missing git executable (127).
    """
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            ["git", *args], cwd=cwd, capture_output=True, text=True, check=False
        )
    except FileNotFoundError as exc:
        raise CommandError(args, cwd, 127, str(exc)) from exc

    if result.returncode != 0:
        raise command_error(args, cwd, result.returncode, result.stderr)

    stdout = result.stdout.rstrip("\r\n")
    logger.debug("git output: %r", stdout if len(stdout) < 500 else stdout[:500])
    return stdout
