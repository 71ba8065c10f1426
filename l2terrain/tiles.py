from __future__ import annotations

import dataclasses
import re
from typing import Optional, Sequence, Tuple

import numpy as np

# t_17_21.utx, T_17_21_tx.utx -> (17, 21)
_PKG_COORD_RE = re.compile(r"[Tt]_(\d+)_(\d+)")
_MAP_RE = re.compile(r"(\d+)_(\d+)\.unr", re.IGNORECASE)


def tile_key(x: int, y: int) -> str:
    return f"{x}_{y}"


@dataclasses.dataclass(frozen=True, order=True)
class TileCoordinates:
    x: int
    y: int

    @classmethod
    def from_filename(cls, filename: str) -> Optional["TileCoordinates"]:
        m = _PKG_COORD_RE.search(filename)
        if not m:
            return None
        return cls(int(m.group(1)), int(m.group(2)))

    @property
    def key(self) -> str:
        return tile_key(self.x, self.y)

    def __str__(self) -> str:
        return f"({self.x},{self.y})"


def parse_map_filename(filename: str, pattern: Optional[str] = None) -> Optional[TileCoordinates]:
    rx = re.compile(pattern, re.IGNORECASE) if pattern else _MAP_RE
    m = rx.fullmatch(filename)
    if not m:
        return None
    return TileCoordinates(int(m.group(1)), int(m.group(2)))


def parse_tile_key(key: str) -> Optional[Tuple[int, int]]:
    m = re.fullmatch(r"(\d+)_(\d+)", key)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


class TerrainTile:
    """A decoded G16 height field with its grid position."""

    def __init__(self, coords: TileCoordinates, width: int, height: int, heights: Sequence[int], source_name: str) -> None:
        arr = np.asarray(heights, dtype=np.uint16).reshape(height, width)
        arr.setflags(write=False)
        self.coords = coords
        self.width = width
        self.height = height
        self.heights = arr
        self.source_name = source_name
        self.min_height = int(arr.min()) if arr.size else 0
        self.max_height = int(arr.max()) if arr.size else 0

    def height_at(self, x: int, y: int) -> int:
        return int(self.heights[y, x])

    def normalized_l8(self) -> np.ndarray:
        # Scaled to this tile's own range, not the global one.
        rng = float(max(1, self.max_height - self.min_height))
        out = (self.heights.astype(np.float64) - self.min_height) / rng * 255.0
        return np.clip(out.astype(np.int32), 0, 255).astype(np.uint8)

    def to_raw(self) -> bytes:
        return self.heights.astype("<u2", copy=False).tobytes()

    def __repr__(self) -> str:
        return (
            f"TerrainTile[{self.source_name} @ {self.coords}, {self.width}x{self.height}, "
            f"height range: {self.min_height}-{self.max_height}]"
        )
