"""
Per-tile metadata assembled from a frozen TerrainDataCache (pass 2).

Detail-layer numbers and splatmap indices come from extracted file names;
this module only resolves them against the cache and renders the
``key=value`` text format.
"""

from __future__ import annotations

import dataclasses
from typing import Iterable, List, Optional

from .cache import TerrainDataCache
from .tiles import tile_key


@dataclasses.dataclass
class TileSplatmapInfo:
    index: int
    original_name: Optional[str] = None
    ground_texture: Optional[str] = None


@dataclasses.dataclass
class TileDecoLayerInfo:
    layer_num: int
    texture_name: Optional[str] = None
    mesh_name: Optional[str] = None
    mesh_package: Optional[str] = None
    source_tile: Optional[str] = None


@dataclasses.dataclass
class TileMetadata:
    tile_x: int
    tile_y: int
    splatmap_layers: List[TileSplatmapInfo] = dataclasses.field(default_factory=list)
    deco_layers: List[TileDecoLayerInfo] = dataclasses.field(default_factory=list)

    @property
    def key(self) -> str:
        return tile_key(self.tile_x, self.tile_y)


def splatmap_filename(x: int, y: int, index: int) -> str:
    return f"{x}_{y}_splatmap{index}_layer{index}.png"


def detailmap_filename(x: int, y: int, layer: int) -> str:
    return f"{x}_{y}_detailmap_{layer}.png"


def build_tile_metadata(
    cache: TerrainDataCache,
    x: int,
    y: int,
    deco_layers: Iterable[int] = (),
    splat_indices: Iterable[int] = (),
) -> TileMetadata:
    if not cache.frozen:
        raise RuntimeError("Cache not built. Call build() and freeze() first.")
    meta = TileMetadata(x, y)
    for layer in sorted(set(deco_layers)):
        deco = TileDecoLayerInfo(layer)
        info = cache.find_deco_layer(x, y, layer)
        if info is not None:
            deco.texture_name = info.texture_name
            deco.mesh_name = info.mesh_name
            deco.mesh_package = info.mesh_package
            deco.source_tile = info.source_tile
        meta.deco_layers.append(deco)
    for index in sorted(set(splat_indices)):
        layer = TileSplatmapInfo(index)
        found = cache.splatmap_for_layer(meta.key, index)
        if found is not None:
            name, info = found
            if info is not None:
                layer.original_name = name
                layer.ground_texture = info.ground_texture
        meta.splatmap_layers.append(layer)
    return meta


def render_metadata(meta: TileMetadata) -> str:
    x, y = meta.tile_x, meta.tile_y
    lines = [
        f"# Terrain Metadata for tile {x}_{y}",
        "# Generated by l2terrain",
        "",
        f"tile_x={x}",
        f"tile_y={y}",
        "",
        "# Splatmaps (terrain blend layers)",
        "# Format: splatmap_N=filename,ground_texture_name",
    ]
    for layer in meta.splatmap_layers:
        fname = splatmap_filename(x, y, layer.index)
        if layer.ground_texture is not None:
            lines.append(f"splatmap_{layer.index}={fname},{layer.ground_texture}")
        else:
            lines.append(f"splatmap_{layer.index}={fname}")
    lines += [
        "",
        "# Detail Layers (DecoLayers)",
        "# Format: layer_N=detailmap_file,static_mesh_name[,source_tile]",
    ]
    for deco in meta.deco_layers:
        fname = detailmap_filename(x, y, deco.layer_num)
        if deco.mesh_name is None:
            lines.append(f"layer_{deco.layer_num}={fname},<unknown>")
        elif deco.source_tile is not None and deco.source_tile != meta.key:
            # Association defined by another tile's TerrainInfo.
            lines.append(f"layer_{deco.layer_num}={fname},{deco.mesh_name},from_{deco.source_tile}")
        else:
            lines.append(f"layer_{deco.layer_num}={fname},{deco.mesh_name}")
    return "\n".join(lines) + "\n"
