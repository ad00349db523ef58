"""
Whole-buffer bucket access.

Reads load the bucket file in one go and strip the header. Writes build
header + payload in memory, write it to an exclusively created temp file
and atomically move it over the bucket.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from bucketcache.cache.base import BucketStore
from bucketcache.cache.header import HEADER_SIZE, decode_header, encode_header
from bucketcache.cache.paths import temp_path
from bucketcache.exceptions import EndOfLifeError, NotFoundError
from bucketcache.logging import get_logger

logger = get_logger(__name__)


def write_exclusive(path: Path, data: bytes) -> None:
    """Create ``path`` (failing if it exists) and write ``data`` to it.

    A file this call created is removed again if the write fails.
    """
    fh = open(path, "xb")
    try:
        with fh:
            fh.write(data)
    except BaseException:
        path.unlink(missing_ok=True)
        raise


class BufferCache:
    """get/set of whole payloads."""

    def __init__(self, store: BucketStore) -> None:
        self.store = store

    async def get(self, key: str) -> bytes:
        """Get the payload stored under ``key``.

        Raises:
            NotFoundError: If the bucket is missing or unreadable.
            BadHeaderSizeError: If the file is shorter than a header.
            BadHeaderFormatError: If the file is not a bucket.
            EndOfLifeError: If the bucket is expired.
        """
        now = self.store.clock()
        path = self.store.key_to_path(key)

        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise NotFoundError("Bucket not found", {"key": key}) from exc

        header = decode_header(data)
        if header.is_expired(now):
            raise EndOfLifeError(header.eol, {"key": key})

        return data[HEADER_SIZE:]

    async def set(self, key: str, data: bytes, eol: float) -> None:
        """Store ``data`` under ``key`` until ``eol``.

        Raises:
            EndOfLifeError: If ``eol`` is already past. Nothing is locked
                or written in that case.
            AccessError: If the temp file cannot be created or written, or
                cannot be moved over the bucket.
        """
        self.store.ensure_writable_eol(eol)

        path = self.store.key_to_path(key)
        tmp = temp_path(path)
        contents = encode_header(eol) + bytes(data)

        async with self.store.locked(key):
            await self.store.write_op(key, write_exclusive, tmp, contents)
            try:
                await self.store.write_op(key, tmp.replace, path)
            except BaseException:
                await self.store.discard_temp(tmp)
                raise

        logger.debug("Bucket published", key=key, size=len(data), eol=eol)
