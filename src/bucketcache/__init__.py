"""Filesystem key/value cache with expiring, atomically published buckets."""

from bucketcache.cache import FileCache
from bucketcache.exceptions import (
    AccessError,
    BadHeaderFormatError,
    BadHeaderSizeError,
    BadWriteError,
    EndOfLifeError,
    FileCacheError,
    NotFoundError,
)

__version__ = "0.1.0"

__all__ = [
    "AccessError",
    "BadHeaderFormatError",
    "BadHeaderSizeError",
    "BadWriteError",
    "EndOfLifeError",
    "FileCache",
    "FileCacheError",
    "NotFoundError",
    "__version__",
]
