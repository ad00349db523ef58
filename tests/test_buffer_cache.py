"""
Tests for whole-buffer bucket access.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from bucketcache.cache.base import BucketStore
from bucketcache.cache.buffer import BufferCache
from bucketcache.cache.header import encode_header
from bucketcache.cache.locks import AsyncKeyLock
from bucketcache.exceptions import (
    AccessError,
    BadHeaderFormatError,
    BadHeaderSizeError,
    EndOfLifeError,
    NotFoundError,
)

PAYLOAD = bytes([0x01, 0x03, 0x03, 0x07])


@pytest.fixture
def buffers(store: BucketStore) -> BufferCache:
    """Provide a BufferCache on the test store."""
    return BufferCache(store)


class TestBufferGet:
    """Tests for BufferCache.get."""

    @pytest.mark.asyncio
    async def test_up_to_date_bucket(self, buffers: BufferCache, store, clock) -> None:
        """Test that only the payload is returned."""
        store.key_to_path("plop").write_bytes(encode_header(clock.now + 1) + PAYLOAD)

        assert await buffers.get("plop") == PAYLOAD

    @pytest.mark.asyncio
    async def test_outdated_bucket(self, buffers: BufferCache, store, clock) -> None:
        """Test that an expired bucket raises EndOfLifeError."""
        store.key_to_path("plop").write_bytes(encode_header(clock.now - 1) + PAYLOAD)

        with pytest.raises(EndOfLifeError) as exc_info:
            await buffers.get("plop")

        assert exc_info.value.eol == clock.now - 1
        assert exc_info.value.code == "E_END_OF_LIFE"
        assert exc_info.value.context["key"] == "plop"

    @pytest.mark.asyncio
    async def test_missing_bucket(self, buffers: BufferCache) -> None:
        """Test that a missing file raises NotFoundError chained to the OS error."""
        with pytest.raises(NotFoundError) as exc_info:
            await buffers.get("plip")

        assert exc_info.value.code == "E_NOENT"
        assert exc_info.value.context == {"key": "plip"}
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_truncated_bucket(self, buffers: BufferCache, store) -> None:
        """Test that a file shorter than the header raises BadHeaderSizeError."""
        store.key_to_path("plop").write_bytes(encode_header(1)[:10])

        with pytest.raises(BadHeaderSizeError):
            await buffers.get("plop")

    @pytest.mark.asyncio
    async def test_foreign_file(self, buffers: BufferCache, store) -> None:
        """Test that a non-bucket file raises BadHeaderFormatError."""
        store.key_to_path("plop").write_bytes(b"<html><body>not a bucket</body></html>")

        with pytest.raises(BadHeaderFormatError):
            await buffers.get("plop")

    @pytest.mark.asyncio
    async def test_empty_payload(self, buffers: BufferCache, store, clock) -> None:
        """Test a bucket holding zero payload bytes."""
        store.key_to_path("plop").write_bytes(encode_header(clock.now))

        assert await buffers.get("plop") == b""


class TestBufferSet:
    """Tests for BufferCache.set."""

    @pytest.mark.asyncio
    async def test_writes_header_and_payload(
        self, buffers: BufferCache, store, clock
    ) -> None:
        """Test the exact file contents after a set with eol == now."""
        await buffers.set("plop", PAYLOAD, clock.now)

        path = store.key_to_path("plop")
        assert path.read_bytes() == encode_header(clock.now) + PAYLOAD
        assert not Path(f"{path}.tmp").exists()

    @pytest.mark.asyncio
    async def test_eol_boundary(self, buffers: BufferCache, clock) -> None:
        """Test readable at eol, expired one tick later."""
        eol = clock.now
        await buffers.set("plop", PAYLOAD, eol)

        assert await buffers.get("plop") == PAYLOAD

        clock.advance(1)
        with pytest.raises(EndOfLifeError):
            await buffers.get("plop")

    @pytest.mark.asyncio
    async def test_past_eol_is_rejected_without_locking(
        self, buffers: BufferCache, store, clock, lock, temp_dir: Path
    ) -> None:
        """Test that a past eol fails before touching the lock or the disk."""
        with pytest.raises(EndOfLifeError) as exc_info:
            await buffers.set("plop", PAYLOAD, clock.now - 1)

        assert exc_info.value.eol == clock.now - 1
        assert lock.events == []
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_lock_held_around_write(self, buffers: BufferCache, clock, lock) -> None:
        """Test the lock is taken and released once, keyed by the raw key."""
        await buffers.set("/raw/key?", PAYLOAD, clock.now + 10)

        assert lock.events == [("acquired", "/raw/key?"), ("released", "/raw/key?")]
        assert len(lock) == 0

    @pytest.mark.asyncio
    async def test_overwrites_existing_bucket(self, buffers: BufferCache, clock) -> None:
        """Test that a second set replaces the payload."""
        await buffers.set("plop", b"first", clock.now + 10)
        await buffers.set("plop", b"second", clock.now + 10)

        assert await buffers.get("plop") == b"second"

    @pytest.mark.asyncio
    async def test_distinct_keys_are_independent(
        self, buffers: BufferCache, clock
    ) -> None:
        """Test that writing one key leaves another alone."""
        await buffers.set("k1", b"one", clock.now + 10)
        await buffers.set("k2", b"two", clock.now + 10)
        await buffers.set("k1", b"uno", clock.now + 10)

        assert await buffers.get("k2") == b"two"
        assert await buffers.get("k1") == b"uno"

    @pytest.mark.asyncio
    async def test_long_url_key_round_trip(
        self, buffers: BufferCache, store, clock
    ) -> None:
        """Test that a key longer than a filename still gets a usable bucket."""
        key = "https://example.com/" + "a" * 300

        await buffers.set(key, PAYLOAD, clock.now + 10)

        assert await buffers.get(key) == PAYLOAD
        assert len(store.key_to_path(key).name.encode("utf-8")) <= 255 - len(".tmp")

    @pytest.mark.asyncio
    async def test_existing_temp_file_is_an_access_error(
        self, buffers: BufferCache, store, clock, lock
    ) -> None:
        """Test that another writer's temp file is neither used nor removed."""
        path = store.key_to_path("plop")
        tmp = Path(f"{path}.tmp")
        tmp.write_bytes(b"in flight")

        with pytest.raises(AccessError) as exc_info:
            await buffers.set("plop", PAYLOAD, clock.now + 10)

        assert exc_info.value.code == "E_ACCESS"
        assert exc_info.value.context == {"key": "plop"}
        assert isinstance(exc_info.value.__cause__, FileExistsError)
        assert tmp.read_bytes() == b"in flight"
        assert not path.exists()
        assert lock.events == [("acquired", "plop"), ("released", "plop")]

    @pytest.mark.asyncio
    async def test_missing_directory_is_an_access_error(self, clock, lock, temp_dir: Path) -> None:
        """Test that an unwritable location raises AccessError."""
        buffers = BufferCache(BucketStore(temp_dir / "missing", lock, clock))

        with pytest.raises(AccessError):
            await buffers.set("plop", PAYLOAD, clock.now + 10)

        assert lock.events == [("acquired", "plop"), ("released", "plop")]

    @pytest.mark.asyncio
    async def test_failed_publish_removes_temp_file(
        self, buffers: BufferCache, store, clock, lock
    ) -> None:
        """Test that a failing rename is an AccessError and leaves no temp file."""
        path = store.key_to_path("plop")

        with patch.object(Path, "replace", side_effect=PermissionError("denied")):
            with pytest.raises(AccessError):
                await buffers.set("plop", PAYLOAD, clock.now + 10)

        assert not Path(f"{path}.tmp").exists()
        assert not path.exists()
        assert lock.events[-1] == ("released", "plop")

    @pytest.mark.asyncio
    async def test_release_failure_keeps_original_error(
        self, store, clock, temp_dir: Path
    ) -> None:
        """Test that a failing release still exposes the write error."""

        class BrokenRelease(AsyncKeyLock):
            async def release(self, key: str) -> None:
                await super().release(key)
                raise RuntimeError("release failed")

        buffers = BufferCache(BucketStore(temp_dir, BrokenRelease(), clock))
        Path(f"{store.key_to_path('plop')}.tmp").write_bytes(b"")

        with pytest.raises(RuntimeError, match="release failed") as exc_info:
            await buffers.set("plop", PAYLOAD, clock.now + 10)

        assert isinstance(exc_info.value.__context__, AccessError)


class TestBufferConcurrency:
    """Tests for concurrent writers."""

    @pytest.mark.asyncio
    async def test_same_key_writers_are_serialized(
        self, buffers: BufferCache, clock, lock
    ) -> None:
        """Test that the second writer starts after the first one released."""
        await asyncio.gather(
            buffers.set("plop", b"one", clock.now + 10),
            buffers.set("plop", b"two", clock.now + 10),
        )

        assert lock.events == [
            ("acquired", "plop"),
            ("released", "plop"),
            ("acquired", "plop"),
            ("released", "plop"),
        ]
        assert await buffers.get("plop") == b"two"

    @pytest.mark.asyncio
    async def test_many_keys_in_parallel(self, buffers: BufferCache, clock) -> None:
        """Test concurrent writes to distinct keys."""
        keys = [f"key-{i}" for i in range(20)]

        await asyncio.gather(
            *(buffers.set(key, key.encode(), clock.now + 10) for key in keys)
        )

        results = await asyncio.gather(*(buffers.get(key) for key in keys))
        assert results == [key.encode() for key in keys]
