import numpy as np
import pytest

from l2terrain.tiles import TerrainTile, TileCoordinates, parse_map_filename, parse_tile_key, tile_key


def test_map_file_names():
    assert parse_map_filename("17_21.unr") == TileCoordinates(17, 21)
    assert parse_map_filename("17_21.UNR") == TileCoordinates(17, 21)
    assert parse_map_filename("17_21_old.unr") is None
    assert parse_map_filename("t_17_21.utx") is None
    assert parse_map_filename("map17_21.txt", r"map(\d+)_(\d+)\.txt") == TileCoordinates(17, 21)


def test_package_coordinates():
    assert TileCoordinates.from_filename("t_17_21.utx") == TileCoordinates(17, 21)
    assert TileCoordinates.from_filename("T_18_22_tx.utx").key == "18_22"
    assert TileCoordinates.from_filename("rocks.usx") is None
    assert str(TileCoordinates(3, 4)) == "(3,4)"


def test_tile_keys():
    assert tile_key(17, 21) == "17_21"
    assert parse_tile_key("17_21") == (17, 21)
    assert parse_tile_key("17_21_x") is None


def test_terrain_tile_stats_and_raw():
    tile = TerrainTile(TileCoordinates(17, 21), 2, 2, [1, 256, 300, 1000], "t_17_21.utx")
    assert tile.min_height == 1
    assert tile.max_height == 1000
    assert tile.height_at(1, 0) == 256
    assert tile.height_at(0, 1) == 300
    assert tile.to_raw()[:4] == b"\x01\x00\x00\x01"
    assert "height range: 1-1000" in repr(tile)
    with pytest.raises(ValueError):
        tile.heights[0, 0] = 5


def test_normalized_preview_spans_full_range():
    tile = TerrainTile(TileCoordinates(0, 0), 2, 2, [4096, 8192, 12288, 16384], "x")
    l8 = tile.normalized_l8()
    assert l8.dtype == np.uint8
    assert l8[0, 0] == 0
    assert l8[1, 1] == 255


def test_flat_tile_does_not_divide_by_zero():
    tile = TerrainTile(TileCoordinates(0, 0), 2, 2, [7, 7, 7, 7], "x")
    assert not tile.normalized_l8().any()
