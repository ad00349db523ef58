"""
Base classes for the bucket cache.

This module implements:
- LockCoordinator: abstract per-key writer lock consumed by the cache
- BucketStore: state shared by the buffer, stream and lifecycle components
  (bucket directory, clock, lock) and the helpers they build on

Writers hold the key's lock from just after the eol pre-check until the
bucket is published or the write has failed. Readers never take it.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, TypeVar

from bucketcache.cache.paths import key_to_path
from bucketcache.exceptions import AccessError, EndOfLifeError
from bucketcache.logging import get_logger
from bucketcache.types import Clock, system_clock

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 64 * 1024


class LockCoordinator(ABC):
    """Abstract per-key mutual exclusion.

    At most one holder per key at a time. ``acquire`` suspends until the
    lock is granted; ``release`` is called exactly once per ``acquire``.
    No reentrancy is assumed.
    """

    @abstractmethod
    async def acquire(self, key: str) -> None:
        """Wait for and take the lock for ``key``."""
        ...

    @abstractmethod
    async def release(self, key: str) -> None:
        """Give back the lock for ``key``."""
        ...


class BucketStore:
    """Shared state for the cache components.

    Args:
        bucket_dir: Directory holding the bucket files.
        lock: Writer lock coordinator.
        clock: Returns the current time in the unit used for eols.
        chunk_size: Read size used when streaming buckets.
    """

    def __init__(
        self,
        bucket_dir: str | Path,
        lock: LockCoordinator,
        clock: Clock = system_clock,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.bucket_dir = Path(bucket_dir)
        self.lock = lock
        self.clock = clock
        self.chunk_size = chunk_size

    def key_to_path(self, key: str) -> Path:
        """Get the bucket path for ``key``."""
        return key_to_path(self.bucket_dir, key)

    def ensure_writable_eol(self, eol: float) -> None:
        """Reject a write whose eol is already in the past.

        Raises:
            EndOfLifeError: If ``eol < now``.
        """
        if eol < self.clock():
            raise EndOfLifeError(eol)

    async def write_op(self, key: str, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking write-side call in a worker thread.

        Raises:
            AccessError: If the call fails with an OSError.
        """
        try:
            return await asyncio.to_thread(func, *args)
        except OSError as exc:
            logger.warning("Bucket write failed", key=key, error=str(exc))
            raise AccessError("Cannot write bucket", {"key": key}) from exc

    async def discard_temp(self, tmp: Path) -> None:
        """Remove a temp file left behind by a failed write."""
        await asyncio.to_thread(tmp.unlink, missing_ok=True)

    @asynccontextmanager
    async def locked(self, key: str) -> AsyncIterator[None]:
        """Hold the writer lock for ``key`` for the duration of the block.

        The lock is released on every exit path. If the release itself
        fails while another error propagates, the release error is raised
        with the original one as its ``__context__``.
        """
        await self.lock.acquire(key)
        try:
            yield
        finally:
            await self.lock.release(key)
