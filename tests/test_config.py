import json

import pytest

from l2terrain.config import ExtractConfig, config_from_mapping, load_config
from l2terrain.errors import ConfigError


def test_defaults():
    cfg = load_config(None)
    assert cfg == ExtractConfig()
    assert cfg.deco_window == 20
    assert cfg.splat_window == 20
    assert cfg.coarse_window == 200
    assert cfg.coarse_splat_window == 100
    assert cfg.tail_slack == 100
    assert cfg.terrain_class == "TerrainInfo"


def test_yaml_config(tmp_path):
    path = tmp_path / "extract.yaml"
    path.write_text("deco_window: 0x30\nworkers: 4\nmesh_class: StaticMeshActor\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.deco_window == 0x30
    assert cfg.workers == 4
    assert cfg.mesh_class == "StaticMeshActor"


def test_json_config(tmp_path):
    path = tmp_path / "extract.json"
    path.write_text(json.dumps({"splat_window": "40"}), encoding="utf-8")
    assert load_config(path).splat_window == 40


def test_empty_yaml_is_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == ExtractConfig()


@pytest.mark.parametrize(
    "data",
    [
        {"deco_windw": 20},
        {"deco_window": True},
        {"deco_window": "wide"},
        {"deco_window": -1},
        {"workers": 0},
        {"tail_slack": 1.5},
    ],
)
def test_rejects_bad_values(data):
    with pytest.raises(ConfigError):
        config_from_mapping(data)


def test_root_must_be_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)
