"""
Global terrain association cache built from every map file (pass 1) and
queried per tile afterwards (pass 2).

Pass 1 scans each map's TerrainInfo export and folds three tables:
- deco texture name -> DecoAssociation (mesh, mesh package, source tile)
- splatmap name -> SplatAssociation (ground texture, source tile)
- tile key -> ordered subject names (deco and splat lists kept apart)

Merging is first-writer-wins: a resolved target is never replaced, an
unresolved one may be upgraded by a later file. Files are merged in sorted
name order, so the result does not depend on scan scheduling.
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .associations import DecoAssociation, SplatAssociation, infer_deco_meshes, infer_splat_grounds
from .cipher import decrypt_package
from .config import ExtractConfig
from .errors import CacheFrozenError, NotEncryptedError
from .package import ReaderFactory, export_bytes
from .scanner import RawReference, scan_references
from .tiles import parse_map_filename

logger = logging.getLogger(__name__)

PathLike = Union[str, pathlib.Path]

DECO_NAME_FORMATS = (
    "{x}_{y}_Deco{n:02d}",
    "{x}_{y}_Deco{n}",
    "{x}_{y}_deco{n:02d}",
    "{x}_{y}_deco{n}",
)


@dataclasses.dataclass
class FileScan:
    filename: str
    tile_key: Optional[str]
    refs: List[RawReference] = dataclasses.field(default_factory=list)
    skip_reason: Optional[str] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.skip_reason is None


@dataclasses.dataclass
class CacheStats:
    processed: int = 0
    skipped: int = 0
    reasons: Counter = dataclasses.field(default_factory=Counter)

    def as_dict(self) -> Dict[str, object]:
        return {"processed": self.processed, "skipped": self.skipped, "reasons": dict(self.reasons)}


class TerrainDataCache:
    def __init__(self, config: Optional[ExtractConfig] = None) -> None:
        self.config = config or ExtractConfig()
        self.stats = CacheStats()
        self._deco: Dict[str, DecoAssociation] = {}
        self._splat: Dict[str, SplatAssociation] = {}
        self._tile_decos: Dict[str, List[str]] = {}
        self._tile_splats: Dict[str, List[str]] = {}
        self._tiles: Set[str] = set()
        self._frozen = False

    # --- pass 1 ---

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise CacheFrozenError("terrain cache is frozen; pass 1 is over")

    def merge_deco(self, assoc: DecoAssociation) -> bool:
        """Returns True when the record was stored."""
        self._check_mutable()
        existing = self._deco.get(assoc.texture_name)
        if existing is None or (existing.mesh_name is None and assoc.mesh_name is not None):
            self._deco[assoc.texture_name] = assoc
            return True
        return False

    def merge_splat(self, assoc: SplatAssociation) -> bool:
        self._check_mutable()
        existing = self._splat.get(assoc.splatmap_name)
        if existing is None or (existing.ground_texture is None and assoc.ground_texture is not None):
            self._splat[assoc.splatmap_name] = assoc
            return True
        return False

    def add_file_results(self, key: str, refs: Sequence[RawReference]) -> Tuple[int, int]:
        """Run both heuristics on one file's references and fold them in."""
        self._check_mutable()
        cfg = self.config
        decos = infer_deco_meshes(
            refs,
            window=cfg.deco_window,
            source_tile=key,
            texture_class=cfg.texture_class,
            mesh_class=cfg.mesh_class,
        )
        splats = infer_splat_grounds(refs, window=cfg.splat_window, source_tile=key, texture_class=cfg.texture_class)
        for d in decos:
            self.merge_deco(d)
        for s in splats:
            self.merge_splat(s)
        # Positional lists: one file may repeat a name at a different layer slot.
        if decos:
            self._tile_decos.setdefault(key, []).extend(d.texture_name for d in decos)
        if splats:
            self._tile_splats.setdefault(key, []).extend(s.splatmap_name for s in splats)
        return len(decos), len(splats)

    def scan_package(self, data: bytes, filename: str, reader_factory: ReaderFactory) -> FileScan:
        """Gate, open and scan one map file. Does not touch cache state."""
        coords = parse_map_filename(filename, self.config.map_pattern)
        key = coords.key if coords is not None else None
        try:
            plain = decrypt_package(data, filename)
        except NotEncryptedError as ex:
            return FileScan(filename, key, skip_reason="not_encrypted", detail=str(ex))
        try:
            reader = reader_factory(plain)
            table = reader.reference_table()
            for export_index in reader.exports_of_class(self.config.terrain_class):
                body = export_bytes(plain, reader, export_index)
                return FileScan(filename, key, refs=scan_references(body, table))
        except Exception as ex:
            return FileScan(filename, key, skip_reason="reader_error", detail=f"{type(ex).__name__}: {ex}")
        return FileScan(filename, key, skip_reason="no_terrain_export", detail=f"no {self.config.terrain_class} export")

    def _scan_path(self, path: pathlib.Path, reader_factory: ReaderFactory) -> FileScan:
        try:
            data = path.read_bytes()
        except OSError as ex:
            coords = parse_map_filename(path.name, self.config.map_pattern)
            return FileScan(path.name, coords.key if coords else None, skip_reason="read_error", detail=str(ex))
        return self.scan_package(data, path.name, reader_factory)

    def ingest(self, scan: FileScan) -> None:
        self._check_mutable()
        if scan.tile_key is not None:
            self._tiles.add(scan.tile_key)
        if not scan.ok:
            self.stats.skipped += 1
            self.stats.reasons[scan.skip_reason] += 1
            logger.warning("skipping %s: %s (%s)", scan.filename, scan.skip_reason, scan.detail)
            return
        n_deco, n_splat = self.add_file_results(scan.tile_key or scan.filename, scan.refs)
        self.stats.processed += 1
        logger.debug("%s: %d refs, %d deco, %d splat", scan.filename, len(scan.refs), n_deco, n_splat)

    def build(
        self,
        paths: Iterable[PathLike],
        reader_factory: ReaderFactory,
        workers: Optional[int] = None,
    ) -> CacheStats:
        """Pass 1 over map files. Per-file failures are logged and counted, never raised."""
        self._check_mutable()
        selected: List[pathlib.Path] = []
        for p in paths:
            p = pathlib.Path(p)
            if parse_map_filename(p.name, self.config.map_pattern) is None:
                logger.debug("ignoring %s: not a tile map file", p.name)
                continue
            selected.append(p)
        selected.sort(key=lambda p: p.name.lower())
        logger.info("Building terrain cache from %d map files...", len(selected))

        n_workers = workers if workers is not None else self.config.workers
        if n_workers > 1 and len(selected) > 1:
            with ThreadPoolExecutor(max_workers=n_workers) as pool:
                # map() yields in input order, which keeps merging deterministic.
                scans: Iterable[FileScan] = list(pool.map(lambda p: self._scan_path(p, reader_factory), selected))
        else:
            scans = (self._scan_path(p, reader_factory) for p in selected)

        for done, scan in enumerate(scans, 1):
            self.ingest(scan)
            if done % 20 == 0:
                logger.info("  Processed %d/%d maps", done, len(selected))

        logger.info(
            "Cache built: %d deco textures, %d splatmaps from %d tiles (%d skipped)",
            len(self._deco),
            len(self._splat),
            len(self._tiles),
            self.stats.skipped,
        )
        return self.stats

    def freeze(self) -> "TerrainDataCache":
        self._frozen = True
        return self

    # --- pass 2 ---

    def deco_info(self, texture_name: str) -> Optional[DecoAssociation]:
        return self._deco.get(texture_name)

    def splat_info(self, splatmap_name: str) -> Optional[SplatAssociation]:
        return self._splat.get(splatmap_name)

    def tile_deco_layers(self, key: str) -> Tuple[str, ...]:
        return tuple(self._tile_decos.get(key, ()))

    def tile_splatmaps(self, key: str) -> Tuple[str, ...]:
        return tuple(self._tile_splats.get(key, ()))

    def all_tiles(self) -> Tuple[str, ...]:
        return tuple(sorted(self._tiles))

    def all_deco_layers(self) -> Mapping[str, DecoAssociation]:
        return MappingProxyType(self._deco)

    def all_splatmaps(self) -> Mapping[str, SplatAssociation]:
        return MappingProxyType(self._splat)

    def find_deco_layer(self, x: int, y: int, layer: int) -> Optional[DecoAssociation]:
        """Look a detail layer up under each texture naming convention in turn."""
        for fmt in DECO_NAME_FORMATS:
            info = self._deco.get(fmt.format(x=x, y=y, n=layer))
            if info is not None:
                return info
        return None

    def splatmap_for_layer(self, key: str, index: int) -> Optional[Tuple[str, Optional[SplatAssociation]]]:
        names = self._tile_splats.get(key, [])
        if index < 0 or index >= len(names):
            return None
        name = names[index]
        return name, self._splat.get(name)

    def summary(self) -> Dict[str, object]:
        return {
            "tiles": len(self._tiles),
            "deco_textures": len(self._deco),
            "deco_resolved": sum(1 for d in self._deco.values() if d.mesh_name is not None),
            "splatmaps": len(self._splat),
            "splat_resolved": sum(1 for s in self._splat.values() if s.ground_texture is not None),
            "frozen": self._frozen,
            **self.stats.as_dict(),
        }
