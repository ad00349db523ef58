"""Key to bucket path mapping."""

from __future__ import annotations

from pathlib import Path

from bucketcache.security.sanitizer import MAX_FILENAME_BYTES, FilenameSanitizer

BUCKET_PREFIX = "__"
BUCKET_SUFFIX = ".bucket"
TEMP_SUFFIX = ".tmp"

# Room left for the key once the temp file name is fully decorated
MAX_KEY_BYTES = MAX_FILENAME_BYTES - len(
    (BUCKET_PREFIX + BUCKET_SUFFIX + TEMP_SUFFIX).encode("utf-8")
)

_key_sanitizer = FilenameSanitizer(max_bytes=MAX_KEY_BYTES)


def key_to_path(base_dir: str | Path, key: str) -> Path:
    """Map a cache key to its bucket file.

    Distinct keys that sanitize identically share a bucket. A key that
    sanitizes to nothing maps to ``__.bucket``. Long keys are truncated so
    that the bucket and its temp file both fit in one path component, which
    means keys sharing their first ``MAX_KEY_BYTES`` bytes also collide.
    """
    name = _key_sanitizer.sanitize(key).sanitized
    return Path(base_dir) / f"{BUCKET_PREFIX}{name}{BUCKET_SUFFIX}"


def temp_path(path: Path) -> Path:
    """Path a writer fills before publishing ``path``."""
    return path.with_name(path.name + TEMP_SUFFIX)
