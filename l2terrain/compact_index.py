"""
Compact index: the signed variable-length integer used for object references
and length prefixes inside Unreal-style packages.

Byte 0 carries the sign (0x80), a continuation flag (0x40) and 6 value bits.
Each following byte carries a continuation flag (0x80) and 7 value bits.
At most 5 bytes are read.
"""

from __future__ import annotations

from typing import Tuple

MAX_BYTES = 5
MAX_MAGNITUDE = 0x7FFFFFFF


def read_compact_index(data: bytes, offset: int) -> Tuple[int, int]:
    """Decode at ``offset`` and return ``(value, bytes_consumed)``.

    Reading at or past the end of ``data`` yields ``(0, 0)``. A value cut off
    by the end of the buffer is returned as far as it was read.
    """
    n = len(data)
    if offset < 0 or offset >= n:
        return 0, 0

    b = data[offset]
    negative = (b & 0x80) != 0
    value = b & 0x3F
    used = 1
    if b & 0x40:
        shift = 6
        while used < MAX_BYTES and offset + used < n:
            b = data[offset + used]
            used += 1
            value |= (b & 0x7F) << shift
            if (b & 0x80) == 0:
                break
            shift += 7
    return (-value if negative else value), used


def compact_index_length(value: int) -> int:
    v = abs(value)
    if v < 0x40:
        return 1
    if v < 0x2000:
        return 2
    if v < 0x100000:
        return 3
    if v < 0x8000000:
        return 4
    return 5


def encode_compact_index(value: int) -> bytes:
    v = abs(value)
    if v > MAX_MAGNITUDE:
        raise ValueError(f"compact index out of range: {value}")
    first = v & 0x3F
    if value < 0:
        first |= 0x80
    v >>= 6
    if v:
        first |= 0x40
    out = bytearray([first])
    while v:
        b = v & 0x7F
        v >>= 7
        if v:
            b |= 0x80
        out.append(b)
    return bytes(out)
