"""
File-based cache facade.

FileCache wires the bucket components together with their defaults:
- base directory (system temp dir) and domain ("_")
- millisecond wall clock
- default lifetime for writes that do not give an eol
- in-process writer lock

Buckets live under ``<dir>/__bucketcache/<domain>/__<sanitized key>.bucket``.
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import IO

from bucketcache.cache.base import DEFAULT_CHUNK_SIZE, BucketStore, LockCoordinator
from bucketcache.cache.buffer import BufferCache
from bucketcache.cache.lifecycle import BucketLifecycle
from bucketcache.cache.locks import AsyncKeyLock, FileLockCoordinator
from bucketcache.cache.stream import BucketStream, StreamCache
from bucketcache.config import DEFAULT_TTL_MS, Settings, bucket_dir_for, get_settings
from bucketcache.exceptions import ConfigurationError
from bucketcache.logging import get_logger
from bucketcache.types import ByteSource, Clock, system_clock

logger = get_logger(__name__)

LOCK_DIR_NAME = ".locks"


def build_lock(settings: Settings) -> LockCoordinator:
    """Create the writer lock coordinator selected by ``settings``.

    Raises:
        ConfigurationError: If the backend is unknown, or a lock timeout is
            set for the in-memory backend.
    """
    if settings.LOCK_BACKEND == "memory":
        if settings.LOCK_TIMEOUT_S is not None:
            raise ConfigurationError(
                "LOCK_TIMEOUT_S is only supported by the file lock backend",
                {"lock_backend": settings.LOCK_BACKEND},
            )
        return AsyncKeyLock()
    if settings.LOCK_BACKEND == "file":
        return FileLockCoordinator(
            settings.bucket_dir / LOCK_DIR_NAME, timeout=settings.LOCK_TIMEOUT_S
        )
    raise ConfigurationError(
        "Unknown lock backend", {"lock_backend": settings.LOCK_BACKEND}
    )


class FileCache:
    """Filesystem cache of binary payloads with per-bucket end of life.

    Args:
        dir: Base directory. Defaults to the system temp directory.
        domain: Subdirectory isolating this cache from others in ``dir``.
        clock: Returns the current time in milliseconds.
        ttl: Lifetime, in clock units, of buckets written without an eol.
        lock: Writer lock coordinator. Defaults to an in-process lock.
        chunk_size: Read size used by ``get_stream``.
    """

    def __init__(
        self,
        dir: str | Path | None = None,
        domain: str | None = None,
        clock: Clock | None = None,
        ttl: float = DEFAULT_TTL_MS,
        lock: LockCoordinator | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if ttl <= 0:
            raise ConfigurationError("ttl must be positive", {"ttl": ttl})

        base_dir = Path(dir) if dir is not None else Path(tempfile.gettempdir())
        self.bucket_dir = bucket_dir_for(base_dir, domain)
        self.ttl = ttl

        self.store = BucketStore(
            self.bucket_dir,
            lock if lock is not None else AsyncKeyLock(),
            clock or system_clock,
            chunk_size,
        )
        self._buffers = BufferCache(self.store)
        self._streams = StreamCache(self.store)
        self._lifecycle = BucketLifecycle(self.store)

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, clock: Clock | None = None
    ) -> FileCache:
        """Create a cache configured from settings (environment by default)."""
        settings = settings or get_settings()
        return cls(
            dir=settings.CACHE_DIR,
            domain=settings.CACHE_DOMAIN,
            clock=clock,
            ttl=settings.DEFAULT_TTL_MS,
            lock=build_lock(settings),
            chunk_size=settings.READ_CHUNK_SIZE,
        )

    async def init(self) -> None:
        """Create the bucket directory. Safe to call more than once."""
        await asyncio.to_thread(self.bucket_dir.mkdir, parents=True, exist_ok=True)
        logger.debug("File cache ready", bucket_dir=str(self.bucket_dir))

    def key_to_path(self, key: str) -> Path:
        """Get the bucket file used for ``key``."""
        return self.store.key_to_path(key)

    def default_eol(self) -> float:
        """Eol given to writes that do not specify one."""
        return self.store.clock() + self.ttl

    async def get(self, key: str) -> bytes:
        """Get the payload stored under ``key``."""
        return await self._buffers.get(key)

    async def get_stream(self, key: str) -> BucketStream:
        """Open the payload stored under ``key`` as an async byte stream."""
        return await self._streams.get_stream(key)

    async def set(self, key: str, data: bytes, eol: float | None = None) -> None:
        """Store ``data`` under ``key`` until ``eol`` (now + ttl by default)."""
        await self._buffers.set(key, data, self.default_eol() if eol is None else eol)

    async def set_stream(
        self, key: str, source: ByteSource | IO[bytes], eol: float | None = None
    ) -> None:
        """Store the bytes of ``source`` under ``key`` until ``eol``."""
        await self._streams.set_stream(
            key, source, self.default_eol() if eol is None else eol
        )

    async def set_eol(self, key: str, eol: float = 0) -> None:
        """Change the eol of ``key``. A past eol (the default) deletes it."""
        await self._lifecycle.set_eol(key, eol)
