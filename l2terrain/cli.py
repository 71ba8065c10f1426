#!/usr/bin/env python3
"""
Lineage 2 terrain extraction helpers.

Current capabilities:
- Inspect and strip the Lineage2VerXXX package cipher.
- Scan a raw export body for object references and infer deco/splat pairs.
- Decode raw texture payloads (DXT1/3/5, RGBA8, P8, G16) to PNG.
- Decode G16 heightmap exports to an 8-bit preview PNG plus 16-bit RAW.
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
from typing import Any, Dict, Optional, Sequence

from .associations import infer_deco_meshes, infer_splat_grounds
from .cipher import decrypt_file, get_version, key_for_version, parse_header
from .config import ExtractConfig, _load_mapping, load_config
from .errors import L2TerrainError
from .package import ReferenceTable
from .scanner import describe_references, scan_references
from .textures import FORMATS, decode_payload, extract_heightmap, extract_texture, payload_size, save_png
from .tiles import TerrainTile, TileCoordinates

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _parse_int(text: str) -> int:
    return int(str(text), 0)


def _read_range(path: pathlib.Path, offset: int, length: Optional[int]) -> bytes:
    data = path.read_bytes()
    if offset < 0 or offset > len(data):
        raise ValueError(f"offset 0x{offset:X} is outside {path} ({len(data)} bytes)")
    end = len(data) if length is None else offset + length
    if end > len(data):
        raise ValueError(f"range 0x{offset:X}+{length} runs past the end of {path}")
    return data[offset:end]


def _emit(report: Dict[str, Any], json_path: Optional[str]) -> None:
    text = json.dumps(report, indent=2)
    if json_path:
        out = pathlib.Path(json_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
    print(text)


def cmd_header_info(args: argparse.Namespace) -> int:
    path = pathlib.Path(args.input)
    with path.open("rb") as f:
        head = f.read(64)
    version = get_version(head)
    report: Dict[str, Any] = {
        "input": str(path),
        "encrypted": version >= 0,
        "header": parse_header(head),
        "version": version if version >= 0 else None,
        "key": (f"0x{key_for_version(version, path.name):02X}" if version >= 0 else None),
    }
    _emit(report, args.json)
    return 0 if version >= 0 else 1


def cmd_decrypt(args: argparse.Namespace) -> int:
    src = pathlib.Path(args.input)
    out = pathlib.Path(args.out)
    version = decrypt_file(src, out)
    _emit(
        {
            "input": str(src),
            "out": str(out),
            "version": version,
            "key": f"0x{key_for_version(version, src.name):02X}",
            "decrypted_size": out.stat().st_size,
        },
        None,
    )
    return 0


def cmd_scan_refs(args: argparse.Namespace, cfg: ExtractConfig) -> int:
    blob = _read_range(pathlib.Path(args.input), _parse_int(args.offset), _parse_int(args.length) if args.length else None)
    table = ReferenceTable.from_mapping(_load_mapping(pathlib.Path(args.refs)))
    refs = scan_references(blob, table)
    window = args.window if args.window is not None else cfg.coarse_window
    splat_window = args.splat_window if args.splat_window is not None else cfg.coarse_splat_window
    decos = infer_deco_meshes(refs, window=window, texture_class=cfg.texture_class, mesh_class=cfg.mesh_class)
    splats = infer_splat_grounds(refs, window=splat_window, texture_class=cfg.texture_class)
    for ref in refs:
        logger.debug("  %5d: [%4d] %-12s %s", ref.offset, ref.index, ref.class_name, ref.name)
    report: Dict[str, Any] = {
        "input": args.input,
        "scanned_bytes": len(blob),
        "table_entries": len(table),
        "window": window,
        "splat_window": splat_window,
        "reference_count": len(refs),
        "deco_layers": [
            {
                "texture": d.texture_name,
                "offset": d.offset,
                "mesh": d.mesh_name,
                "mesh_package": d.mesh_package,
                "distance": (d.mesh_offset - d.offset) if d.mesh_name is not None else None,
            }
            for d in decos
        ],
        "splatmaps": [
            {
                "splatmap": s.splatmap_name,
                "offset": s.offset,
                "ground_texture": s.ground_texture,
                "distance": (s.offset - s.ground_offset) if s.ground_texture is not None else None,
            }
            for s in splats
        ],
    }
    if args.all_refs:
        report["references"] = describe_references(refs)
    _emit(report, args.json)
    return 0


def cmd_texture_decode_raw(args: argparse.Namespace, cfg: ExtractConfig) -> int:
    data = pathlib.Path(args.input).read_bytes()
    w = int(args.width)
    h = int(args.height)
    fmt = str(args.fmt).upper()
    if args.locate:
        px = extract_texture(data, fmt, w, h, slack=cfg.tail_slack)
        if px is None:
            raise L2TerrainError(f"{fmt} payload ({payload_size(fmt, w, h)} bytes) not found in {args.input}")
    else:
        px = decode_payload(data, fmt, w, h, offset=_parse_int(args.offset))
    out = pathlib.Path(args.out)
    save_png(out, px)
    _emit({"out": str(out), "width": w, "height": h, "fmt": fmt, "located": bool(args.locate)}, None)
    return 0


def cmd_heightmap(args: argparse.Namespace, cfg: ExtractConfig) -> int:
    src = pathlib.Path(args.input)
    data = src.read_bytes()
    heights = extract_heightmap(data, int(args.width), int(args.height), slack=cfg.tail_slack)
    if heights is None:
        raise L2TerrainError(f"no G16 payload found in {src}")
    coords = TileCoordinates.from_filename(src.name) or TileCoordinates(0, 0)
    tile = TerrainTile(coords, int(args.width), int(args.height), heights.ravel(), src.name)
    out_base = pathlib.Path(args.out)
    out_base.parent.mkdir(parents=True, exist_ok=True)
    png_path = out_base.with_suffix(".png")
    raw_path = out_base.with_suffix(".raw")
    save_png(png_path, tile.normalized_l8())
    raw_path.write_bytes(tile.to_raw())
    _emit(
        {
            "input": str(src),
            "tile": tile.coords.key,
            "png": str(png_path),
            "raw": str(raw_path),
            "min_height": tile.min_height,
            "max_height": tile.max_height,
        },
        None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Lineage 2 terrain extraction helper")
    p.add_argument("--config", help="Optional extraction config (.json/.yaml/.yml)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    phi = sub.add_parser("header-info", help="Report Lineage2VerXXX header, version and XOR key")
    phi.add_argument("--input", required=True, help="Package path (.utx/.unr/...)")
    phi.add_argument("--json", help="Optional output JSON path")
    phi.set_defaults(func=cmd_header_info, needs_config=False)

    pde = sub.add_parser("decrypt", help="Strip the header and XOR cipher from a package")
    pde.add_argument("--input", required=True, help="Encrypted package path")
    pde.add_argument("--out", required=True, help="Output plaintext package path")
    pde.set_defaults(func=cmd_decrypt, needs_config=False)

    psr = sub.add_parser("scan-refs", help="Scan a raw export body for object references and deco/splat pairs")
    psr.add_argument("--input", required=True, help="Decrypted package or dumped export body")
    psr.add_argument("--refs", required=True, help="Reference table (.json/.yaml) with imports/exports lists")
    psr.add_argument("--offset", default="0", help="Export offset inside --input (hex or int)")
    psr.add_argument("--length", help="Export length (hex or int; default: to end of file)")
    psr.add_argument("--window", type=int, help="Deco->mesh window in bytes (default: config coarse_window)")
    psr.add_argument("--splat-window", type=int, help="Splat->ground window in bytes (default: config coarse_splat_window)")
    psr.add_argument("--all-refs", action="store_true", help="Include every reference in the report")
    psr.add_argument("--json", help="Optional output JSON path")
    psr.set_defaults(func=cmd_scan_refs, needs_config=True)

    ptd = sub.add_parser("texture-decode-raw", help="Decode a texture payload to PNG")
    ptd.add_argument("--input", required=True, help="Raw payload or export body path")
    ptd.add_argument("--out", required=True, help="Output PNG path")
    ptd.add_argument("--width", required=True, type=int, help="Texture width")
    ptd.add_argument("--height", required=True, type=int, help="Texture height")
    ptd.add_argument("--fmt", required=True, type=str.upper, choices=FORMATS, help="Format: " + "|".join(FORMATS))
    ptd.add_argument("--offset", default="0", help="Payload offset when not using --locate (hex or int)")
    ptd.add_argument("--locate", action="store_true", help="Search the input for the payload's length prefix")
    ptd.set_defaults(func=cmd_texture_decode_raw, needs_config=True)

    phm = sub.add_parser("heightmap", help="Decode a G16 heightmap export to PNG preview + 16-bit RAW")
    phm.add_argument("--input", required=True, help="Texture export body path")
    phm.add_argument("--out", required=True, help="Output base path (.png and .raw are written)")
    phm.add_argument("--width", type=int, default=256, help="Heightmap width (default: 256)")
    phm.add_argument("--height", type=int, default=256, help="Heightmap height (default: 256)")
    phm.set_defaults(func=cmd_heightmap, needs_config=True)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if args.needs_config:
        cfg = load_config(args.config)
        return int(args.func(args, cfg))
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
