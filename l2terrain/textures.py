"""
Texture payload location and decoding.

Block-compressed formats (4x4 blocks, blocks row-major, pixels row-major in a
block):
- DXT1: two RGB565 endpoints + 2-bit indices; c0 <= c1 selects the 3-color
  mode with a transparent 4th entry.
- DXT3: 64 bits of explicit 4-bit alpha, then a DXT1-style color block that
  always uses the 4-color mode.
- DXT5: two alpha endpoints + 3-bit alpha indices, then a 4-color block.

Raw formats: RGBA8 (stored B,G,R,A), P8 (one byte per pixel, decoded as
grayscale), G16 (little-endian uint16 heights).

Packages expose no offset table for pixel data. The payload is found by
looking for a compact-index length prefix equal to the expected size, first
forward from the start of the export, then within the export's tail.

All grids are returned read-only: (h, w, 4) uint8 RGBA, (h, w) uint8 for P8,
(h, w) uint16 for G16.
"""

from __future__ import annotations

import logging
import pathlib
from typing import Callable, Dict, Optional, Union

import numpy as np

try:
    from PIL import Image  # type: ignore
except Exception:  # pragma: no cover
    Image = None

from .compact_index import compact_index_length, encode_compact_index, read_compact_index
from .errors import PayloadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

FORMATS = ("DXT1", "DXT3", "DXT5", "RGBA8", "P8", "G16")
_ALIASES = {"PALETTE_8_BIT": "P8", "PALETTE8": "P8", "BGRA8": "RGBA8"}

# 0x00 followed by the compact-index size prefix; this is the 256x256 one.
# Other sizes get their own marker from g16_marker().
G16_MARKER = b"\x00\x40\x80\x10"
TAIL_SLACK = 100

_BLOCK_SHIFTS_2 = np.arange(16, dtype=np.uint32) * 2
_BLOCK_SHIFTS_3 = np.arange(16, dtype=np.uint64) * 3


def normalize_format(fmt: str) -> str:
    f = str(fmt).strip().upper()
    f = _ALIASES.get(f, f)
    if f not in FORMATS:
        raise UnsupportedFormatError(f"unsupported texture format: {fmt}")
    return f


def _block_dims(width: int, height: int) -> tuple:
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid texture size {width}x{height}")
    return max(1, (width + 3) // 4), max(1, (height + 3) // 4)


def payload_size(fmt: str, width: int, height: int) -> int:
    f = normalize_format(fmt)
    if f in ("DXT1", "DXT3", "DXT5"):
        bw, bh = _block_dims(width, height)
        return bw * bh * (8 if f == "DXT1" else 16)
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid texture size {width}x{height}")
    return width * height * {"RGBA8": 4, "P8": 1, "G16": 2}[f]


# --- payload location ---


def find_length_prefixed(data: bytes, size: int) -> int:
    """Forward search for a compact index equal to ``size``; returns the payload start or -1."""
    n = len(data)
    for i in range(n - size - 10):
        value, _ = read_compact_index(data, i)
        if value == size and i + 5 + size <= n:
            return i + compact_index_length(size)
    return -1


def find_length_prefixed_tail(data: bytes, size: int, slack: int = TAIL_SLACK) -> int:
    """Search only the last ``size + slack`` bytes; the payload must fit in ``data``."""
    n = len(data)
    for i in range(max(0, n - size - slack), n - size):
        value, _ = read_compact_index(data, i)
        if value == size:
            start = i + compact_index_length(size)
            if start + size <= n:
                return start
    return -1


def find_texture_data(data: bytes, size: int, slack: int = TAIL_SLACK) -> int:
    off = find_length_prefixed(data, size)
    if off < 0:
        off = find_length_prefixed_tail(data, size, slack)
    return off


def g16_marker(size: int) -> bytes:
    return b"\x00" + encode_compact_index(size)


def find_g16_marker(data: bytes, size: int) -> int:
    marker = g16_marker(size)
    limit = len(data) - len(marker) - size
    if limit < 0:
        return -1
    i = data.find(marker, 0, limit + len(marker))
    return -1 if i < 0 else i + len(marker)


# --- block decoding ---


def _blocks(data: bytes, width: int, height: int, block_bytes: int, offset: int, name: str) -> np.ndarray:
    bw, bh = _block_dims(width, height)
    need = bw * bh * block_bytes
    if offset < 0 or offset + need > len(data):
        raise PayloadError(f"{name} data out of range: need {need} bytes at {offset}, have {len(data)}")
    return np.frombuffer(data, dtype=np.uint8, count=need, offset=offset).reshape(bh, bw, block_bytes)


def _u16(b: np.ndarray, i: int) -> np.ndarray:
    return b[..., i].astype(np.uint32) | (b[..., i + 1].astype(np.uint32) << 8)


def _u32(b: np.ndarray, i: int) -> np.ndarray:
    return _u16(b, i) | (_u16(b, i + 2) << 16)


def _rgb565(c: np.ndarray) -> np.ndarray:
    # Channel expansion is v*255//max, not bit replication.
    r = ((c >> 11) & 0x1F) * 255 // 31
    g = ((c >> 5) & 0x3F) * 255 // 63
    b = (c & 0x1F) * 255 // 31
    return np.stack([r, g, b], axis=-1).astype(np.int32)


def _color_palette(color: np.ndarray, punch_through: bool) -> np.ndarray:
    """(bh, bw, 4 entries, RGBA) from 8-byte color blocks."""
    c0 = _u16(color, 0)
    c1 = _u16(color, 2)
    p0 = _rgb565(c0)
    p1 = _rgb565(c1)
    p2 = (2 * p0 + p1) // 3
    p3 = (p0 + 2 * p1) // 3
    pal = np.empty(color.shape[:2] + (4, 4), dtype=np.int32)
    pal[..., 0, :3] = p0
    pal[..., 1, :3] = p1
    pal[..., :, 3] = 255
    if punch_through:
        four = (c0 > c1)[..., None]
        pal[..., 2, :3] = np.where(four, p2, (p0 + p1) // 2)
        pal[..., 3, :3] = np.where(four, p3, 0)
        pal[..., 3, 3] = np.where(four[..., 0], 255, 0)
    else:
        pal[..., 2, :3] = p2
        pal[..., 3, :3] = p3
    return pal


def _gather(table: np.ndarray, sel: np.ndarray) -> np.ndarray:
    bh, bw = sel.shape[:2]
    rows = np.arange(bh)[:, None, None]
    cols = np.arange(bw)[None, :, None]
    return table[rows, cols, sel.astype(np.intp)]


def _color_pixels(color: np.ndarray, punch_through: bool) -> np.ndarray:
    pal = _color_palette(color, punch_through)
    sel = (_u32(color, 4)[..., None] >> _BLOCK_SHIFTS_2) & 0x3
    return _gather(pal, sel)


def _assemble(px: np.ndarray, width: int, height: int) -> np.ndarray:
    bh, bw, _, ch = px.shape
    grid = px.reshape(bh, bw, 4, 4, ch).transpose(0, 2, 1, 3, 4).reshape(bh * 4, bw * 4, ch)
    out = np.ascontiguousarray(grid[:height, :width]).astype(np.uint8)
    out.setflags(write=False)
    return out


def decode_dxt1(data: bytes, width: int, height: int, offset: int = 0) -> np.ndarray:
    blocks = _blocks(data, width, height, 8, offset, "DXT1")
    return _assemble(_color_pixels(blocks, punch_through=True), width, height)


def decode_dxt3(data: bytes, width: int, height: int, offset: int = 0) -> np.ndarray:
    blocks = _blocks(data, width, height, 16, offset, "DXT3")
    px = _color_pixels(blocks[..., 8:16], punch_through=False)
    raw = blocks[..., 0:8].astype(np.int32)
    # Byte k holds pixel 2k in its low nibble and pixel 2k+1 in its high nibble.
    alpha = np.stack([raw & 0xF, raw >> 4], axis=-1).reshape(raw.shape[:2] + (16,))
    px[..., 3] = alpha * 17
    return _assemble(px, width, height)


def _alpha_ramp(a0: np.ndarray, a1: np.ndarray) -> np.ndarray:
    shape = a0.shape + (8,)
    ramp7 = np.empty(shape, dtype=np.int32)
    ramp5 = np.empty(shape, dtype=np.int32)
    ramp7[..., 0] = ramp5[..., 0] = a0
    ramp7[..., 1] = ramp5[..., 1] = a1
    for i in range(1, 7):
        ramp7[..., i + 1] = ((7 - i) * a0 + i * a1) // 7
    for i in range(1, 5):
        ramp5[..., i + 1] = ((5 - i) * a0 + i * a1) // 5
    ramp5[..., 6] = 0
    ramp5[..., 7] = 255
    return np.where((a0 > a1)[..., None], ramp7, ramp5)


def decode_dxt5(data: bytes, width: int, height: int, offset: int = 0) -> np.ndarray:
    blocks = _blocks(data, width, height, 16, offset, "DXT5")
    px = _color_pixels(blocks[..., 8:16], punch_through=False)
    a0 = blocks[..., 0].astype(np.int32)
    a1 = blocks[..., 1].astype(np.int32)
    bits = np.zeros(blocks.shape[:2], dtype=np.uint64)
    for i in range(6):
        bits |= blocks[..., 2 + i].astype(np.uint64) << np.uint64(8 * i)
    sel = (bits[..., None] >> _BLOCK_SHIFTS_3) & np.uint64(0x7)
    px[..., 3] = _gather(_alpha_ramp(a0, a1), sel)
    return _assemble(px, width, height)


# --- raw layouts ---


def _raw(data: bytes, count: int, dtype: str, offset: int, name: str) -> np.ndarray:
    need = count * np.dtype(dtype).itemsize
    if offset < 0 or offset + need > len(data):
        raise PayloadError(f"{name} data out of range: need {need} bytes at {offset}, have {len(data)}")
    return np.frombuffer(data, dtype=dtype, count=count, offset=offset)


def _freeze(arr: np.ndarray) -> np.ndarray:
    out = np.ascontiguousarray(arr)
    out.setflags(write=False)
    return out


def decode_rgba8(data: bytes, width: int, height: int, offset: int = 0) -> np.ndarray:
    bgra = _raw(data, width * height * 4, "u1", offset, "RGBA8").reshape(height, width, 4)
    return _freeze(bgra[..., [2, 1, 0, 3]])


def decode_p8(data: bytes, width: int, height: int, offset: int = 0) -> np.ndarray:
    return _freeze(_raw(data, width * height, "u1", offset, "P8").reshape(height, width).copy())


def decode_g16(data: bytes, width: int, height: int, offset: int = 0) -> np.ndarray:
    return _freeze(_raw(data, width * height, "<u2", offset, "G16").astype(np.uint16).reshape(height, width))


DECODERS: Dict[str, Callable[..., np.ndarray]] = {
    "DXT1": decode_dxt1,
    "DXT3": decode_dxt3,
    "DXT5": decode_dxt5,
    "RGBA8": decode_rgba8,
    "P8": decode_p8,
    "G16": decode_g16,
}


def decode_payload(data: bytes, fmt: str, width: int, height: int, offset: int = 0) -> np.ndarray:
    return DECODERS[normalize_format(fmt)](data, width, height, offset=offset)


def extract_texture(
    export_data: bytes,
    fmt: str,
    width: int,
    height: int,
    slack: int = TAIL_SLACK,
) -> Optional[np.ndarray]:
    """Locate and decode a texture payload inside a raw export body.

    Returns None when no length prefix matches; raises UnsupportedFormatError
    for formats outside FORMATS.
    """
    f = normalize_format(fmt)
    size = payload_size(f, width, height)
    off = find_texture_data(export_data, size, slack)
    if off < 0:
        logger.warning("%s payload of %d bytes not found in %d-byte export", f, size, len(export_data))
        return None
    return DECODERS[f](export_data, width, height, offset=off)


def extract_heightmap(export_data: bytes, width: int = 256, height: int = 256, slack: int = TAIL_SLACK) -> Optional[np.ndarray]:
    """G16 heights: marker search first, then the length-prefix search."""
    size = width * height * 2
    off = find_g16_marker(export_data, size)
    if off < 0:
        logger.debug("G16 marker not found, falling back to length search")
        off = find_texture_data(export_data, size, slack)
    if off < 0:
        logger.warning("G16 payload of %d bytes not found in %d-byte export", size, len(export_data))
        return None
    return decode_g16(export_data, width, height, offset=off)


# --- image output ---


def to_image(pixels: np.ndarray) -> "Image.Image":
    if Image is None:
        raise RuntimeError("Pillow is required for PNG export: pip install pillow")
    arr = np.ascontiguousarray(pixels)
    if arr.ndim == 3 and arr.shape[2] == 4:
        return Image.fromarray(arr.astype(np.uint8))
    if arr.ndim == 2 and arr.dtype == np.uint16:
        img = Image.new("I;16", (arr.shape[1], arr.shape[0]))
        img.frombytes(arr.astype("<u2").tobytes())
        return img
    if arr.ndim == 2:
        return Image.fromarray(arr.astype(np.uint8))
    raise ValueError(f"unsupported pixel grid shape {arr.shape}")


def save_png(out_path: Union[str, pathlib.Path], pixels: np.ndarray) -> None:
    out_path = pathlib.Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    to_image(pixels).save(out_path)
