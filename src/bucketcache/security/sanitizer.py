"""
Filename sanitization for cache keys.

Cache keys are arbitrary strings (often URLs). Before they become part of a
bucket filename they are stripped of everything a filesystem could
interpret: path separators, reserved characters, control characters and
reserved device names.

Sanitization is deterministic but NOT injective: "/a/b" and "ab" produce
the same filename. Callers that need distinct buckets for such keys must
choose keys that differ after sanitization.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Most filesystems cap a single path component at 255 bytes
MAX_FILENAME_BYTES = 255


@dataclass
class SanitizationResult:
    """Result of filename sanitization."""

    original: str
    sanitized: str
    modifications_made: list[str] = field(default_factory=list)

    @property
    def was_modified(self) -> bool:
        """Check whether the input had to be changed."""
        return self.original != self.sanitized


class FilenameSanitizer:
    """Turns arbitrary strings into safe single path components.

    Applied in order:
    1. Illegal characters removed
    2. Control characters removed
    3. Reserved names (dot-only names, Windows device names) emptied
    4. Trailing dots and spaces removed
    5. Result truncated to the filename byte limit
    """

    ILLEGAL_PATTERN = re.compile(r'[/?<>\\:*|"]')
    CONTROL_PATTERN = re.compile(r"[\x00-\x1f\x80-\x9f]")
    RESERVED_PATTERN = re.compile(r"^\.+$")
    WINDOWS_RESERVED_PATTERN = re.compile(
        r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE
    )
    WINDOWS_TRAILING_PATTERN = re.compile(r"[. ]+$")

    def __init__(self, replacement: str = "", max_bytes: int = MAX_FILENAME_BYTES) -> None:
        if self.ILLEGAL_PATTERN.search(replacement) or self.CONTROL_PATTERN.search(
            replacement
        ):
            raise ValueError(f"Replacement {replacement!r} is not filename safe")
        self.replacement = replacement
        self.max_bytes = max_bytes

    def sanitize(self, value: str) -> SanitizationResult:
        """Sanitize a string for use as a filename.

        Args:
            value: The raw string, typically a cache key.

        Returns:
            SanitizationResult with the safe filename.
        """
        result = SanitizationResult(original=value, sanitized=value)
        text = value

        steps = (
            ("illegal_chars", self.ILLEGAL_PATTERN),
            ("control_chars", self.CONTROL_PATTERN),
            ("reserved_name", self.RESERVED_PATTERN),
            ("windows_reserved_name", self.WINDOWS_RESERVED_PATTERN),
            ("trailing_dots", self.WINDOWS_TRAILING_PATTERN),
        )
        for name, pattern in steps:
            replaced = pattern.sub(self.replacement, text)
            if replaced != text:
                result.modifications_made.append(name)
                text = replaced

        truncated = self._truncate(text)
        if truncated != text:
            result.modifications_made.append("truncated")
            text = truncated

        result.sanitized = text
        return result

    def _truncate(self, text: str) -> str:
        encoded = text.encode("utf-8")
        if len(encoded) <= self.max_bytes:
            return text
        # Never split a multi-byte character
        return encoded[: self.max_bytes].decode("utf-8", errors="ignore")


_default_sanitizer = FilenameSanitizer()


def sanitize_filename(value: str) -> str:
    """Sanitize a string with the default sanitizer."""
    return _default_sanitizer.sanitize(value).sanitized
