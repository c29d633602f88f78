"""Path canonicalization.

macOS puts temp dirs behind a /private symlink, so two spellings of the same
directory compare unequal as strings. Compare canonical paths instead.
"""

from __future__ import annotations

import os
from pathlib import Path


def canonical_path(path: Path | str) -> Path:
    """Absolute path with symlinks resolved."""
    return Path(os.path.realpath(os.path.abspath(path)))


def same_path(a: Path | str, b: Path | str) -> bool:
    return canonical_path(a) == canonical_path(b)
