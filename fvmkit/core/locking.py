"""
Access control for shared fvmkit resources.

This module provides file-based locks around the resources that several
installs touch at the same time:

- a shared bare repository (fetch + worktree creation), one lock per origin
- an engine cache entry being downloaded, one lock per engine hash

Locks are held through ``filelock``, so they also serialize threads of the
same process: two installs running in parallel against the same origin take
turns on the repository, and two installs needing the same engine download
it once.

Usage:
    from fvmkit.core.locking import LockManager

    lock_manager = LockManager(layout.lock_dir)
    with lock_manager.origin_lock("flutter"):
        # fetch and create worktrees
        pass
"""

import logging
import re
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _safe_name(name: str) -> str:
    return _UNSAFE_CHARS.sub("-", name)


class LockManager:
    """
    Manages locks for fvmkit resources.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (created if missing)
        """
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _acquire(self, lock_path: Path, timeout: float, description: str):
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired {description} lock: {lock_path}")
                yield
                logger.debug(f"Released {description} lock: {lock_path}")
        except LockTimeout as e:
            logger.error(
                f"Could not acquire {description} lock after {timeout}s. "
                "Another fvmkit operation may be running."
            )
            raise LockTimeout(str(lock_path)) from e

    @contextmanager
    def origin_lock(self, origin_id: str, timeout: float = 600):
        """
        Acquire the lock of one shared repository.

        Args:
            origin_id: Repository identifier ('flutter' or 'fork-<alias>')
            timeout: Maximum wait time in seconds (fetches can be slow)

        Raises:
            LockTimeout: If lock can't be acquired within timeout
        """
        lock_path = self.lock_dir / f"repo-{_safe_name(origin_id)}.lock"
        with self._acquire(lock_path, timeout, f"repository {origin_id}"):
            yield

    @contextmanager
    def engine_lock(self, engine_hash: str, timeout: float = 600):
        """
        Acquire the lock of one engine cache entry while it is populated.

        Raises:
            LockTimeout: If lock can't be acquired within timeout
        """
        lock_path = self.lock_dir / f"engine-{_safe_name(engine_hash)}.lock"
        with self._acquire(lock_path, timeout, f"engine {engine_hash}"):
            yield


__all__ = [
    "LockManager",
    "LockTimeout",
]
