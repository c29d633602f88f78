"""Cross-process lock files.

Parallel CI jobs can share an on-disk git cache directory. Each cache entry is
guarded by a lock file that is created atomically with O_CREAT | O_EXCL; a
second process polls until the file disappears or the wait times out.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from types import TracebackType

from .errors import LockTimeoutError

logger = logging.getLogger(__name__)

# How long to wait for another process before giving up on a lock
DEFAULT_LOCK_TIMEOUT = 10 * 60.0


class FileLock:
    """Exclusive lock backed by a lock file.

    Example:
        with FileLock(cache_dir / "key.lock"):
            ...  # only one process at a time gets here
    """

    def __init__(
        self,
        path: Path,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        poll_interval: float = 0.1,
    ) -> None:
        self.path = Path(path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Create the lock file, waiting up to ``timeout`` seconds.

        Raises:
            LockTimeoutError: If another holder keeps the lock past the timeout.
            OSError: For filesystem errors other than the lock already existing.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self.timeout
        logger.debug("Waiting for lock at %s", self.path)

        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(self.path, self.timeout) from None
                time.sleep(self.poll_interval)
                continue
            try:
                os.write(fd, str(os.getpid()).encode())
            finally:
                os.close(fd)
            break

        self._held = True
        logger.debug("Acquired lock at %s", self.path)

    def release(self) -> None:
        """Remove the lock file. Releasing an unheld lock is a no-op."""
        if not self._held:
            return
        self._held = False
        self.path.unlink(missing_ok=True)
        logger.debug("Released lock at %s", self.path)

    def __enter__(self) -> FileLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
