"""
Writer lock coordinators.

- AsyncKeyLock: asyncio locks keyed by string, for a single process
- FileLockCoordinator: filelock-based locks for processes sharing a cache
  directory, layered on an AsyncKeyLock so coroutines of one process also
  serialize
"""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path

from filelock import FileLock

from bucketcache.cache.base import LockCoordinator
from bucketcache.logging import get_logger

logger = get_logger(__name__)


class AsyncKeyLock(LockCoordinator):
    """In-process per-key lock.

    Entries are created on demand and dropped once no coroutine holds or
    waits for them, so the table only grows with concurrently written keys.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    async def acquire(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        try:
            await lock.acquire()
        except BaseException:
            self._discard(key)
            raise

    async def release(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None or not lock.locked():
            raise RuntimeError(f"Lock for key {key!r} is not held")
        lock.release()
        self._discard(key)

    def locked(self, key: str) -> bool:
        """Check whether ``key`` is currently held."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    def _discard(self, key: str) -> None:
        self._users[key] -= 1
        if not self._users[key]:
            del self._users[key]
            del self._locks[key]


class FileLockCoordinator(LockCoordinator):
    """Cross-process per-key lock backed by lock files.

    Lock files live in ``lock_dir`` and are named after a SHA-256 of the
    key, so any key maps to a valid filename without collisions.

    Lock files are left in place on release, even once the bucket is gone,
    so ``lock_dir`` grows by one empty file per key ever written. Removing
    a lock file while another process waits on it would let that process
    and a newcomer lock two different inodes for the same key. Clear
    ``lock_dir`` only while no writer is running.

    Args:
        lock_dir: Directory for the lock files.
        timeout: Seconds to wait for another process; None waits forever.
            On expiry ``filelock.Timeout`` propagates to the writer.
    """

    def __init__(self, lock_dir: str | Path, timeout: float | None = None) -> None:
        self.lock_dir = Path(lock_dir)
        self.timeout = -1 if timeout is None else timeout
        self._local = AsyncKeyLock()
        self._held: dict[str, FileLock] = {}

    def lock_path(self, key: str) -> Path:
        """Get the lock file used for ``key``."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.lock_dir / f"{digest}.lock"

    async def acquire(self, key: str) -> None:
        await self._local.acquire(key)
        try:
            await asyncio.to_thread(self.lock_dir.mkdir, parents=True, exist_ok=True)
            # Acquired and released from different worker threads
            file_lock = FileLock(
                self.lock_path(key), timeout=self.timeout, thread_local=False
            )
            await asyncio.to_thread(file_lock.acquire)
        except BaseException:
            await self._local.release(key)
            raise

        self._held[key] = file_lock
        logger.debug("File lock acquired", lock_file=file_lock.lock_file)

    async def release(self, key: str) -> None:
        file_lock = self._held.pop(key, None)
        if file_lock is None:
            raise RuntimeError(f"Lock for key {key!r} is not held")
        try:
            await asyncio.to_thread(file_lock.release)
        finally:
            await self._local.release(key)
