"""Filename hardening for cache keys."""

from bucketcache.security.sanitizer import (
    FilenameSanitizer,
    SanitizationResult,
    sanitize_filename,
)

__all__ = ["FilenameSanitizer", "SanitizationResult", "sanitize_filename"]
