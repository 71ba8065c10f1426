"""
Offset-proximity association heuristics over a scanned reference list.

TerrainInfo serializes each DecoLayer's density texture a few bytes ahead of
its StaticMesh, and each terrain Layer's ground texture a few bytes ahead of
its alpha map. No schema is parsed here: partners are the nearest reference
of the right class inside a small byte window.
"""

from __future__ import annotations

import dataclasses
import re
from typing import List, Optional, Sequence

from .scanner import RawReference

TIGHT_WINDOW = 20
COARSE_WINDOW = 200

TEXTURE_CLASS = "Texture"
MESH_CLASS = "StaticMesh"

DECO_PATTERN = re.compile(r"(\d+)_(\d+)_deco(\d+)", re.IGNORECASE)
SPLATMAP_PATTERN = re.compile(r"(\d+)_(\d+)_([A-Za-z]\w*)")
TILE_PREFIXED = re.compile(r"\d+_\d+.*")


@dataclasses.dataclass(frozen=True)
class DecoAssociation:
    texture_name: str
    mesh_name: Optional[str]
    mesh_package: Optional[str]
    source_tile: Optional[str]
    offset: int = -1
    mesh_offset: int = -1


@dataclasses.dataclass(frozen=True)
class SplatAssociation:
    splatmap_name: str
    ground_texture: Optional[str]
    source_tile: Optional[str]
    offset: int = -1
    ground_offset: int = -1


def is_deco_name(name: Optional[str]) -> bool:
    return bool(name) and DECO_PATTERN.fullmatch(name) is not None


def is_splatmap_name(name: Optional[str]) -> bool:
    if not name:
        return False
    m = SPLATMAP_PATTERN.fullmatch(name)
    return m is not None and not m.group(3).lower().startswith("deco")


def infer_deco_meshes(
    refs: Sequence[RawReference],
    window: int = TIGHT_WINDOW,
    source_tile: Optional[str] = None,
    texture_class: str = TEXTURE_CLASS,
    mesh_class: str = MESH_CLASS,
) -> List[DecoAssociation]:
    out: List[DecoAssociation] = []
    for i, ref in enumerate(refs):
        if ref.class_name != texture_class or not is_deco_name(ref.name):
            continue
        mesh: Optional[RawReference] = None
        for nxt in refs[i + 1 :]:
            if nxt.offset > ref.offset + window:
                break
            if nxt.class_name == mesh_class:
                mesh = nxt
                break
        if mesh is None:
            out.append(DecoAssociation(ref.name, None, None, source_tile, ref.offset))
        else:
            out.append(DecoAssociation(ref.name, mesh.name, mesh.package, source_tile, ref.offset, mesh.offset))
    return out


def infer_splat_grounds(
    refs: Sequence[RawReference],
    window: int = TIGHT_WINDOW,
    source_tile: Optional[str] = None,
    texture_class: str = TEXTURE_CLASS,
) -> List[SplatAssociation]:
    out: List[SplatAssociation] = []
    for i, ref in enumerate(refs):
        if ref.class_name != texture_class or not is_splatmap_name(ref.name):
            continue
        ground: Optional[RawReference] = None
        for j in range(i - 1, -1, -1):
            prev = refs[j]
            if ref.offset - prev.offset > window:
                break
            # Skip other splatmaps and the XX_YY heightmap.
            if prev.class_name == texture_class and not TILE_PREFIXED.fullmatch(prev.name):
                ground = prev
                break
        if ground is None:
            out.append(SplatAssociation(ref.name, None, source_tile, ref.offset))
        else:
            out.append(SplatAssociation(ref.name, ground.name, source_tile, ref.offset, ground.offset))
    return out
