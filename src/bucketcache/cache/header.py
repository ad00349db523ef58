"""
Bucket header codec.

Every bucket file starts with a fixed 20 byte window:

    offset 0   4 bytes  magic "BUCK"
    offset 4   8 bytes  eol, IEEE-754 double, little-endian
    offset 12  8 bytes  filler "x"

The payload follows immediately, with no length field.
"""

from __future__ import annotations

import struct

from bucketcache.exceptions import BadHeaderFormatError, BadHeaderSizeError
from bucketcache.types import BucketHeader

HEADER_MAGIC = b"BUCK"
HEADER_SIZE = len(HEADER_MAGIC) + 16
HEADER_FILLER = b"x"

_EOL_STRUCT = struct.Struct("<d")
_EOL_OFFSET = len(HEADER_MAGIC)
_PADDING = HEADER_FILLER * (HEADER_SIZE - _EOL_OFFSET - _EOL_STRUCT.size)


def encode_header(eol: float = 0) -> bytes:
    """Encode a bucket header.

    Args:
        eol: End-of-life timestamp, 0 when not supplied.

    Returns:
        Exactly HEADER_SIZE bytes.
    """
    return HEADER_MAGIC + _EOL_STRUCT.pack(eol or 0) + _PADDING


def decode_header(data: bytes | bytearray | memoryview) -> BucketHeader:
    """Decode the header window at the start of ``data``.

    Only the first HEADER_SIZE bytes are inspected.

    Raises:
        BadHeaderSizeError: If fewer than HEADER_SIZE bytes are given.
        BadHeaderFormatError: If the window does not start with the magic.
    """
    if len(data) < HEADER_SIZE:
        raise BadHeaderSizeError(len(data))

    window = bytes(data[:HEADER_SIZE])
    if not window.startswith(HEADER_MAGIC):
        raise BadHeaderFormatError(
            "Not a bucket header", {"leading_bytes": window[: len(HEADER_MAGIC)]}
        )

    (eol,) = _EOL_STRUCT.unpack_from(window, _EOL_OFFSET)
    return BucketHeader(eol=eol)
