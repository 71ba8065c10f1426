import pytest

from l2terrain.associations import DecoAssociation
from l2terrain.cache import TerrainDataCache
from l2terrain.cipher import encrypt_package
from l2terrain.metadata import build_tile_metadata, detailmap_filename, render_metadata, splatmap_filename


@pytest.fixture
def cache(tmp_path, reader_factory, terrain_body):
    path = tmp_path / "17_21.unr"
    path.write_bytes(encrypt_package(terrain_body, path.name))
    c = TerrainDataCache()
    c.build([path], reader_factory)
    # Defined by tile 17_21, used by tile 18_21.
    c.merge_deco(DecoAssociation("18_21_Deco02", "Tree05", "SM_Trees", "17_21"))
    return c.freeze()


def test_output_file_names():
    assert splatmap_filename(17, 21, 2) == "17_21_splatmap2_layer2.png"
    assert detailmap_filename(17, 21, 3) == "17_21_detailmap_3.png"


def test_requires_frozen_cache():
    with pytest.raises(RuntimeError):
        build_tile_metadata(TerrainDataCache(), 17, 21)


def test_build_resolves_layers(cache):
    meta = build_tile_metadata(cache, 17, 21, deco_layers=[1, 1, 4], splat_indices=[1, 0])
    assert meta.key == "17_21"
    assert [d.layer_num for d in meta.deco_layers] == [1, 4]
    assert meta.deco_layers[0].mesh_name == "Rock01"
    assert meta.deco_layers[0].texture_name == "17_21_Deco01"
    assert meta.deco_layers[1].mesh_name is None
    assert [s.index for s in meta.splatmap_layers] == [0, 1]
    assert meta.splatmap_layers[0].original_name == "17_21_Alpha0"
    assert meta.splatmap_layers[0].ground_texture == "Grass01"
    assert meta.splatmap_layers[1].ground_texture is None


def test_render_lines(cache):
    text = render_metadata(build_tile_metadata(cache, 17, 21, deco_layers=[1, 4], splat_indices=[0, 1]))
    lines = text.splitlines()
    assert "tile_x=17" in lines
    assert "tile_y=21" in lines
    assert "splatmap_0=17_21_splatmap0_layer0.png,Grass01" in lines
    assert "splatmap_1=17_21_splatmap1_layer1.png" in lines
    assert "layer_1=17_21_detailmap_1.png,Rock01" in lines
    assert "layer_4=17_21_detailmap_4.png,<unknown>" in lines
    assert text.endswith("\n")


def test_render_marks_foreign_source_tile(cache):
    text = render_metadata(build_tile_metadata(cache, 18, 21, deco_layers=[2]))
    assert "layer_2=18_21_detailmap_2.png,Tree05,from_17_21" in text.splitlines()
