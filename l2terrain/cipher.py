"""
Lineage 2 package cipher.

Encrypted packages start with a 28-byte UTF-16LE header "Lineage2VerXXX".
Everything after the header is XORed with a single key byte:
- Ver 111: fixed key 0xAC
- Ver 121 and later: sum of the lowercased file name characters & 0xFF

The header is never encrypted and is dropped from decrypted output.
"""

from __future__ import annotations

import pathlib
import re
from typing import BinaryIO, Optional, Union

import numpy as np

from .errors import NotEncryptedError

HEADER_SIZE = 28
HEADER_PREFIX = "Lineage2Ver"
VER_111_KEY = 0xAC
CHUNK_SIZE = 1 << 16

_HEADER_RE = re.compile(r"Lineage2Ver([0-9]{3})")

PathLike = Union[str, pathlib.Path]


def parse_header(data: bytes) -> Optional[str]:
    if len(data) < HEADER_SIZE:
        return None
    try:
        header = bytes(data[:HEADER_SIZE]).decode("utf-16-le")
    except UnicodeDecodeError:
        return None
    return header if _HEADER_RE.fullmatch(header) else None


def is_encrypted(data: bytes) -> bool:
    return parse_header(data) is not None


def get_version(data: bytes) -> int:
    header = parse_header(data)
    if header is None:
        return -1
    return int(header[len(HEADER_PREFIX):])


def derive_key(filename: str) -> int:
    # File name only; callers pass Path.name, never a full path.
    return sum(ord(c) for c in filename.lower()) & 0xFF


def key_for_version(version: int, filename: str) -> int:
    return VER_111_KEY if version == 111 else derive_key(filename)


def xor_bytes(data: bytes, key: int) -> bytes:
    if not data:
        return b""
    arr = np.frombuffer(data, dtype=np.uint8)
    return np.bitwise_xor(arr, np.uint8(key & 0xFF)).tobytes()


def build_header(version: int) -> bytes:
    if not 0 <= version <= 999:
        raise ValueError(f"header version must fit in 3 digits: {version}")
    return f"{HEADER_PREFIX}{version:03d}".encode("utf-16-le")


def decrypt_package(data: bytes, filename: str) -> bytes:
    """Return the plaintext package body (header stripped).

    Raises NotEncryptedError when the header is missing, so un-gated bytes are
    never handed to a package reader.
    """
    version = get_version(data)
    if version < 0:
        raise NotEncryptedError(f"Not a valid L2 encrypted file: {filename}")
    return xor_bytes(data[HEADER_SIZE:], key_for_version(version, filename))


def encrypt_package(plaintext: bytes, filename: str, version: int = 121) -> bytes:
    return build_header(version) + xor_bytes(plaintext, key_for_version(version, filename))


def _stream_xor(src: BinaryIO, dst: BinaryIO, key: int) -> int:
    total = 0
    while True:
        chunk = src.read(CHUNK_SIZE)
        if not chunk:
            break
        dst.write(xor_bytes(chunk, key))
        total += len(chunk)
    return total


def decrypt_file(src_path: PathLike, dst_path: PathLike) -> int:
    """Decrypt ``src_path`` into ``dst_path`` without the header. Returns the header version."""
    src_path = pathlib.Path(src_path)
    dst_path = pathlib.Path(dst_path)
    with src_path.open("rb") as src:
        header = src.read(HEADER_SIZE)
        version = get_version(header)
        if version < 0:
            raise NotEncryptedError(f"Not a valid L2 encrypted file: {src_path.name}")
        key = key_for_version(version, src_path.name)
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        with dst_path.open("wb") as dst:
            _stream_xor(src, dst, key)
    return version
