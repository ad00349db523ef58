"""
Pytest configuration and fixtures for bucket cache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from bucketcache.cache.base import BucketStore
from bucketcache.cache.file_cache import FileCache
from bucketcache.cache.locks import AsyncKeyLock
from bucketcache.config import clear_settings_cache

# 2010-03-06T00:00:00Z in milliseconds
NOW = 1267833600000


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingLock(AsyncKeyLock):
    """AsyncKeyLock that records when locks are granted and released."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, str]] = []

    async def acquire(self, key: str) -> None:
        await super().acquire(key)
        self.events.append(("acquired", key))

    async def release(self, key: str) -> None:
        self.events.append(("released", key))
        await super().release(key)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for bucket files."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a clock frozen at NOW."""
    return FakeClock()


@pytest.fixture
def lock() -> RecordingLock:
    """Provide a lock coordinator that records its activity."""
    return RecordingLock()


@pytest.fixture
def store(temp_dir: Path, clock: FakeClock, lock: RecordingLock) -> BucketStore:
    """Provide a bucket store writing into temp_dir."""
    return BucketStore(temp_dir, lock, clock)


@pytest.fixture
async def file_cache(temp_dir: Path, clock: FakeClock, lock: RecordingLock) -> FileCache:
    """Provide an initialized FileCache."""
    cache = FileCache(dir=temp_dir, clock=clock, lock=lock, ttl=1000)
    await cache.init()
    return cache


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "CACHE_DIR": str(temp_dir),
        "CACHE_DOMAIN": "tests",
        "DEFAULT_TTL_MS": "5000",
        "LOCK_BACKEND": "file",
        "LOCK_TIMEOUT_S": "2.5",
        "READ_CHUNK_SIZE": "1024",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
