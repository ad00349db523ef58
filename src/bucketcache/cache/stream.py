"""
Streamed bucket access.

Reads pull the bucket file in chunks. HeaderSplitter holds back exactly the
header window, which is decoded and checked before the caller gets a
BucketStream. The stream yields whatever payload arrived together with the
header window, then passes the remaining chunks through untouched.

Writes put the header into an exclusively created temp file, copy the
source into it chunk by chunk and move it over the bucket when done.
Payloads are never held in memory as a whole.
"""

from __future__ import annotations

import asyncio
from typing import IO, Any, AsyncIterator

from bucketcache.cache.base import BucketStore
from bucketcache.cache.header import HEADER_SIZE, decode_header, encode_header
from bucketcache.cache.paths import temp_path
from bucketcache.exceptions import AccessError, EndOfLifeError, NotFoundError
from bucketcache.logging import get_logger
from bucketcache.types import ByteSource

logger = get_logger(__name__)


async def read_chunks(fh: IO[bytes], chunk_size: int) -> AsyncIterator[bytes]:
    """Read a binary file in chunks without blocking the event loop."""
    while True:
        chunk = await asyncio.to_thread(fh.read, chunk_size)
        if not chunk:
            return
        yield chunk


async def iter_source(source: ByteSource | IO[bytes], chunk_size: int) -> AsyncIterator[bytes]:
    """Normalize a payload source into an async iterator of chunks.

    Accepts bytes-like objects, binary file objects (read in worker
    threads), async iterables and plain iterables of bytes.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield bytes(source)
    elif hasattr(source, "read"):
        async for chunk in read_chunks(source, chunk_size):  # type: ignore[arg-type]
            yield chunk
    elif hasattr(source, "__aiter__"):
        async for chunk in source:  # type: ignore[union-attr]
            yield chunk
    else:
        for chunk in source:  # type: ignore[union-attr]
            yield chunk


class HeaderSplitter:
    """Splits a fixed-size window off the front of a chunk stream.

    Nothing is emitted downstream until ``read_header`` has collected the
    window. Bytes read past the window are kept and emitted first by
    ``payload``.
    """

    def __init__(self, chunks: AsyncIterator[bytes], size: int = HEADER_SIZE) -> None:
        self._chunks = chunks
        self._size = size
        self._rest = b""
        self._header: bytes | None = None

    async def read_header(self) -> bytes:
        """Collect the header window.

        Returns fewer than ``size`` bytes only if the stream ended early.
        """
        buffer = bytearray()
        while len(buffer) < self._size:
            try:
                chunk = await anext(self._chunks)
            except StopAsyncIteration:
                break
            buffer += chunk

        self._header = bytes(buffer[: self._size])
        self._rest = bytes(buffer[self._size :])
        return self._header

    async def payload(self) -> AsyncIterator[bytes]:
        """Iterate over everything after the header window."""
        if self._header is None:
            raise RuntimeError("read_header() must be awaited first")

        if self._rest:
            rest, self._rest = self._rest, b""
            yield rest
        async for chunk in self._chunks:
            yield chunk

    async def aclose(self) -> None:
        """Close the underlying chunk stream."""
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()


class BucketStream:
    """Payload of a bucket, as an async iterator of bytes.

    Owns the open bucket file and closes it once exhausted, on ``aclose``
    or when leaving an ``async with`` block.
    """

    def __init__(self, key: str, fh: IO[bytes], splitter: HeaderSplitter) -> None:
        self.key = key
        self._fh = fh
        self._splitter = splitter
        self._payload = splitter.payload()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> BucketStream:
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await anext(self._payload)
        except StopAsyncIteration:
            await self.aclose()
            raise

    async def read(self) -> bytes:
        """Drain the remaining payload into a single bytes object."""
        parts = [chunk async for chunk in self]
        return b"".join(parts)

    async def aclose(self) -> None:
        """Stop streaming and close the bucket file."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._payload.aclose()
            await self._splitter.aclose()
        finally:
            await asyncio.to_thread(self._fh.close)

    async def __aenter__(self) -> BucketStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class StreamCache:
    """get_stream/set_stream of streamed payloads."""

    def __init__(self, store: BucketStore) -> None:
        self.store = store

    async def get_stream(self, key: str) -> BucketStream:
        """Open the payload stored under ``key`` as a stream.

        The header is decoded and checked before returning, so a caller
        never receives a stream for an expired or malformed bucket.

        Raises:
            NotFoundError: If the bucket cannot be opened, or reading fails
                before the header window is complete.
            BadHeaderSizeError: If the file ends inside the header window.
            BadHeaderFormatError: If the file is not a bucket.
            EndOfLifeError: If the bucket is expired.
        """
        now = self.store.clock()
        path = self.store.key_to_path(key)

        try:
            fh = await asyncio.to_thread(open, path, "rb")
        except OSError as exc:
            raise NotFoundError("Bucket not found", {"key": key}) from exc

        splitter = HeaderSplitter(read_chunks(fh, self.store.chunk_size))
        try:
            try:
                window = await splitter.read_header()
            except OSError as exc:
                raise NotFoundError("Bucket not readable", {"key": key}) from exc

            header = decode_header(window)
            if header.is_expired(now):
                raise EndOfLifeError(header.eol, {"key": key})
        except BaseException:
            try:
                await splitter.aclose()
            finally:
                await asyncio.to_thread(fh.close)
            raise

        return BucketStream(key, fh, splitter)

    async def set_stream(self, key: str, source: ByteSource | IO[bytes], eol: float) -> None:
        """Store the bytes produced by ``source`` under ``key`` until ``eol``.

        Errors raised by ``source`` itself propagate unchanged; the temp
        file is removed and the bucket is left as it was.

        Raises:
            EndOfLifeError: If ``eol`` is already past. Nothing is locked
                or written in that case.
            AccessError: If the temp file cannot be created, written or
                moved over the bucket.
        """
        self.store.ensure_writable_eol(eol)

        path = self.store.key_to_path(key)
        tmp = temp_path(path)

        async with self.store.locked(key):
            fh = await self.store.write_op(key, open, tmp, "xb")
            size = 0
            try:
                try:
                    await self.store.write_op(key, fh.write, encode_header(eol))
                    async for chunk in iter_source(source, self.store.chunk_size):
                        await self.store.write_op(key, fh.write, chunk)
                        size += len(chunk)
                finally:
                    await self.store.write_op(key, fh.close)
                await self.store.write_op(key, tmp.replace, path)
            except AccessError:
                await self.store.discard_temp(tmp)
                raise
            except BaseException as exc:
                logger.warning("Bucket source failed", key=key, error=repr(exc))
                await self.store.discard_temp(tmp)
                raise

        logger.debug("Bucket published from stream", key=key, size=size, eol=eol)
