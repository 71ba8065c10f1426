import pytest

from l2terrain.compact_index import compact_index_length, encode_compact_index, read_compact_index


def test_read_single_byte_values():
    assert read_compact_index(b"\x05", 0) == (5, 1)
    assert read_compact_index(b"\x85", 0) == (-5, 1)
    assert read_compact_index(b"\x00", 0) == (0, 1)


def test_read_multi_byte_value():
    # 0x40 continuation, then 0x01 -> 1 << 6
    assert read_compact_index(b"\x40\x01", 0) == (64, 2)
    assert read_compact_index(b"\xff\x40\x01", 1) == (64, 2)


def test_read_past_end():
    assert read_compact_index(b"", 0) == (0, 0)
    assert read_compact_index(b"\x01", 1) == (0, 0)


def test_read_stops_after_five_bytes():
    value, used = read_compact_index(b"\x7f\xff\xff\xff\xff\xff\xff", 0)
    assert used == 5


def test_round_trip_across_length_thresholds():
    for v in (0, 1, -1, 0x3F, 0x40, -0x40, 0x1FFF, 0x2000, 0xFFFFF, 0x100000, 0x7FFFFFF, 0x8000000, 0x7FFFFFFF):
        enc = encode_compact_index(v)
        assert len(enc) == compact_index_length(v)
        assert read_compact_index(enc, 0) == (v, len(enc))


def test_length_thresholds():
    assert compact_index_length(0x3F) == 1
    assert compact_index_length(0x40) == 2
    assert compact_index_length(0x2000) == 3
    assert compact_index_length(0x100000) == 4
    assert compact_index_length(0x8000000) == 5
    assert compact_index_length(-0x40) == 2


def test_heightmap_size_prefix():
    assert encode_compact_index(256 * 256 * 2) == b"\x40\x80\x10"


def test_encode_rejects_out_of_range():
    with pytest.raises(ValueError):
        encode_compact_index(0x80000000)
