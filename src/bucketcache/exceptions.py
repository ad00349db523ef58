"""
Custom exception hierarchy for the bucket cache.

All exceptions inherit from FileCacheError, which provides optional context
for structured error handling and logging, and a stable error code.
"""

from __future__ import annotations

from typing import Any


class FileCacheError(Exception):
    """Base exception for all bucket cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
        code: Stable error code, independent of the message wording.
    """

    code = "E_UNEXPECTED"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(FileCacheError):
    """Raised when configuration is invalid.

    Examples:
        - Unknown lock backend
        - Lock timeout combined with the in-memory backend
    """

    code = "E_CONFIG"


class NotFoundError(FileCacheError):
    """Raised when a bucket file is missing or cannot be read.

    Context should include:
        - key: The cache key that was looked up
    """

    code = "E_NOENT"


class EndOfLifeError(FileCacheError):
    """Raised when a bucket is expired, or a write targets a past eol.

    Attributes:
        eol: The offending end-of-life timestamp.
    """

    code = "E_END_OF_LIFE"

    def __init__(self, eol: float, context: dict[str, Any] | None = None) -> None:
        super().__init__("Bucket end of life reached", {"eol": eol, **(context or {})})
        self.eol = eol


class BadHeaderSizeError(FileCacheError):
    """Raised when fewer bytes than the header window are available.

    Attributes:
        size: The number of bytes that were available.
    """

    code = "E_BAD_HEADER_SIZE"

    def __init__(self, size: int, context: dict[str, Any] | None = None) -> None:
        super().__init__("Bucket header is too short", {"size": size, **(context or {})})
        self.size = size


class BadHeaderFormatError(FileCacheError):
    """Raised when the header window does not start with the bucket magic."""

    code = "E_BAD_HEADER_FMT"


class AccessError(FileCacheError):
    """Raised when a bucket cannot be written.

    Covers temp file creation collisions, permission problems and write
    failures. Context should include:
        - key: The cache key being written
    """

    code = "E_ACCESS"


class BadWriteError(FileCacheError):
    """Raised when an in-place header update writes fewer bytes than expected.

    Attributes:
        written: The number of bytes actually written.
    """

    code = "E_BAD_WRITE"

    def __init__(self, written: int, context: dict[str, Any] | None = None) -> None:
        super().__init__("Short header write", {"written": written, **(context or {})})
        self.written = written
