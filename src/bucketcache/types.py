"""
Core types for the bucket cache.

This module defines the data structures shared by the cache components:
- BucketHeader, the decoded form of a bucket's fixed-size header
- The Clock callable type and the default wall clock
- ByteSource, what streamed writes accept
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import AsyncIterable, Callable, Iterable, Union

# Returns the current time, in the same unit as stored eols
Clock = Callable[[], float]

ByteSource = Union[AsyncIterable[bytes], Iterable[bytes]]


def system_clock() -> float:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time() * 1000


@dataclass(frozen=True)
class BucketHeader:
    """Decoded bucket header.

    Attributes:
        eol: End-of-life timestamp. The bucket is valid while ``eol >= now``.
    """

    eol: float = 0

    def is_expired(self, now: float) -> bool:
        """Check whether the bucket is past its end of life at ``now``."""
        return self.eol < now
