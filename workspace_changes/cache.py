"""Git response cache.

Git output for a fixed commit range never changes, and computing it can be
expensive in large repositories, so responses can be cached:

- in memory, for the lifetime of one GitCache instance (normally one process);
- on disk, in a directory shared between processes (e.g. parallel CI shards).

Entries are written once and never invalidated. On disk, each entry is
guarded by its own lock file so that concurrent processes asking for the same
key run git only once: the first one produces the value and the others read it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import threading
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

from .locking import DEFAULT_LOCK_TIMEOUT, FileLock

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_PREFIX_LENGTH = 80


class CacheMode(str, Enum):
    NONE = "none"
    MEMORY = "memory"
    PERSISTENT = "persistent"


def cache_key(cwd: Path | str, args: Sequence[str]) -> str:
    """Derive a filesystem-safe cache key from a working directory and git args.

    The key is a human-readable prefix followed by a SHA-256 digest of a JSON
    encoding of the inputs. The prefix only helps when browsing the cache
    directory; the digest is what keeps distinct inputs apart (the prefix
    alone would map "a b" and "a_b" to the same token).

    Examples:
        cache_key("/repo", ["rev-list", "-1", "pkg@1.0.0"])
        → "_repo_rev-list_-1_pkg_1.0.0-3f5a…"
    """
    raw = [str(cwd), *args]
    prefix = _UNSAFE_CHARS.sub("_", "_".join(raw))[:_PREFIX_LENGTH].lstrip(".")
    digest = hashlib.sha256(json.dumps(raw).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest}" if prefix else digest


class GitCache:
    """Process-scoped cache of git command output, optionally persisted.

    Args:
        directory: Directory for on-disk entries. None keeps the cache in
            memory only.
        lock_timeout: Seconds to wait for another process holding an entry's
            lock before raising LockTimeoutError.
    """

    def __init__(
        self,
        directory: Path | str | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self.directory = Path(directory) if directory is not None else None
        self.lock_timeout = lock_timeout
        self.hits = 0
        self.misses = 0
        self._memory: dict[tuple[str, tuple[str, ...]], str] = {}
        self._mutex = threading.Lock()

    @property
    def mode(self) -> CacheMode:
        return CacheMode.MEMORY if self.directory is None else CacheMode.PERSISTENT

    def __len__(self) -> int:
        return len(self._memory)

    def fetch(
        self, cwd: Path | str, args: Sequence[str], produce: Callable[[], str]
    ) -> str:
        """Return the cached output for ``(cwd, args)``, producing it on a miss.

        Args:
            cwd: Working directory of the command.
            args: Git arguments.
            produce: Runs the command. Only called on a miss; if it raises,
                nothing is cached and the error propagates.
        """
        mem_key = (str(cwd), tuple(args))
        with self._mutex:
            if mem_key in self._memory:
                self.hits += 1
                logger.debug("Git cache hit.")
                return self._memory[mem_key]

        if self.directory is None:
            value = produce()
            self._record(hit=False)
        else:
            value = self._fetch_persistent(self.directory, cwd, args, produce)

        with self._mutex:
            # First writer wins: a concurrent thread may have stored it already
            return self._memory.setdefault(mem_key, value)

    def _record(self, *, hit: bool) -> None:
        with self._mutex:
            if hit:
                self.hits += 1
            else:
                self.misses += 1
        logger.debug("Git cache %s.", "hit" if hit else "miss")

    def _fetch_persistent(
        self,
        directory: Path,
        cwd: Path | str,
        args: Sequence[str],
        produce: Callable[[], str],
    ) -> str:
        key = cache_key(cwd, args)
        entry = directory / key

        with FileLock(directory / f"{key}.lock", timeout=self.lock_timeout):
            if entry.exists():
                with open(entry, encoding="utf-8", newline="") as fh:
                    value = fh.read()
                self._record(hit=True)
                return value

            self._record(hit=False)
            value = produce()

            # Write under a temporary name so readers never see partial output
            tmp = entry.with_name(f"{key}.tmp-{os.getpid()}")
            with open(tmp, "w", encoding="utf-8", newline="") as fh:
                fh.write(value)
            tmp.replace(entry)

        return value


def make_cache(
    mode: CacheMode | str,
    directory: Path | str | None = None,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> GitCache | None:
    """Build a cache for the given mode.

    Raises:
        ValueError: If ``mode`` is persistent but no directory is given.
    """
    mode = CacheMode(mode)
    if mode is CacheMode.NONE:
        return None
    if mode is CacheMode.MEMORY:
        return GitCache(lock_timeout=lock_timeout)
    if directory is None:
        raise ValueError("A cache directory is required for persistent caching")
    return GitCache(directory, lock_timeout=lock_timeout)
