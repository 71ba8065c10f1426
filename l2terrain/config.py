from __future__ import annotations

import dataclasses
import json
import pathlib
from typing import Any, Dict, Optional, Union

try:
    import yaml  # type: ignore
except Exception:  # pragma: no cover
    yaml = None

from .errors import ConfigError


@dataclasses.dataclass(frozen=True)
class ExtractConfig:
    terrain_class: str = "TerrainInfo"
    texture_class: str = "Texture"
    mesh_class: str = "StaticMesh"
    deco_window: int = 20
    splat_window: int = 20
    coarse_window: int = 200
    coarse_splat_window: int = 100
    tail_slack: int = 100
    map_pattern: str = r"(\d+)_(\d+)\.unr"
    workers: int = 1


_INT_FIELDS = {"deco_window", "splat_window", "coarse_window", "coarse_splat_window", "tail_slack", "workers"}


def _to_int(v: Any) -> int:
    if isinstance(v, bool):
        raise ConfigError(f"Expected int-like value, got: {v!r}")
    if isinstance(v, int):
        return int(v)
    if isinstance(v, str):
        try:
            return int(v, 0)
        except ValueError as ex:
            raise ConfigError(f"Expected int-like value, got: {v!r}") from ex
    raise ConfigError(f"Expected int-like value, got: {type(v).__name__}")


def _load_mapping(path: pathlib.Path) -> Dict[str, Any]:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext == ".json":
        data = json.loads(text)
    else:
        if yaml is None:
            raise RuntimeError("PyYAML is required for YAML configs: pip install pyyaml")
        data = yaml.safe_load(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping/object")
    return data


def config_from_mapping(data: Dict[str, Any]) -> ExtractConfig:
    known = {f.name for f in dataclasses.fields(ExtractConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    values: Dict[str, Any] = {}
    for key, raw in data.items():
        values[key] = _to_int(raw) if key in _INT_FIELDS else str(raw)
    cfg = ExtractConfig(**values)
    for key in sorted(_INT_FIELDS):
        minimum = 1 if key == "workers" else 0
        if getattr(cfg, key) < minimum:
            raise ConfigError(f"{key} must be >= {minimum}")
    return cfg


def load_config(path: Optional[Union[str, pathlib.Path]]) -> ExtractConfig:
    if path is None:
        return ExtractConfig()
    return config_from_mapping(_load_mapping(pathlib.Path(path)))
