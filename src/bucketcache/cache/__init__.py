"""
Cache package for bucket persistence.

This package provides:
- Bucket header codec (header.py) and key to path mapping (paths.py)
- Whole-buffer access (buffer.py) and streamed access (stream.py)
- End-of-life updates and deletion (lifecycle.py)
- Writer lock coordinators (locks.py)
- The FileCache facade wiring it all together (file_cache.py)
"""

from bucketcache.cache.base import BucketStore, LockCoordinator
from bucketcache.cache.buffer import BufferCache
from bucketcache.cache.file_cache import FileCache, build_lock
from bucketcache.cache.header import HEADER_SIZE, decode_header, encode_header
from bucketcache.cache.lifecycle import BucketLifecycle
from bucketcache.cache.locks import AsyncKeyLock, FileLockCoordinator
from bucketcache.cache.paths import key_to_path
from bucketcache.cache.stream import BucketStream, HeaderSplitter, StreamCache

__all__ = [
    "AsyncKeyLock",
    "BucketLifecycle",
    "BucketStore",
    "BucketStream",
    "BufferCache",
    "FileCache",
    "FileLockCoordinator",
    "HEADER_SIZE",
    "HeaderSplitter",
    "LockCoordinator",
    "StreamCache",
    "build_lock",
    "decode_header",
    "encode_header",
    "key_to_path",
]
