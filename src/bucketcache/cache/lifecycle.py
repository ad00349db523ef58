"""
Bucket lifecycle: changing or ending a bucket's end of life.

Moving the eol into the past deletes the bucket. Any other eol is written
over the header window in place; the payload is left untouched.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from bucketcache.cache.base import BucketStore
from bucketcache.cache.header import HEADER_SIZE, encode_header
from bucketcache.exceptions import BadWriteError
from bucketcache.logging import get_logger

logger = get_logger(__name__)


def rewrite_header(path: Path, header: bytes) -> int:
    """Write ``header`` at offset 0 of an existing file.

    Uses an unbuffered handle so the returned count is what the OS wrote.
    """
    with open(path, "r+b", buffering=0) as fh:
        return fh.write(header) or 0


class BucketLifecycle:
    """set_eol for existing buckets."""

    def __init__(self, store: BucketStore) -> None:
        self.store = store

    async def set_eol(self, key: str, eol: float = 0) -> None:
        """Set the end of life of the bucket stored under ``key``.

        Errors from the filesystem (including a missing bucket) propagate
        as the original OSError.

        Raises:
            BadWriteError: If the header could not be written in full.
        """
        path = self.store.key_to_path(key)

        if eol < self.store.clock():
            async with self.store.locked(key):
                await asyncio.to_thread(path.unlink)
            logger.debug("Bucket deleted", key=key)
            return

        async with self.store.locked(key):
            written = await asyncio.to_thread(rewrite_header, path, encode_header(eol))

        if written != HEADER_SIZE:
            raise BadWriteError(written, {"key": key})

        logger.debug("Bucket eol updated", key=key, eol=eol)
