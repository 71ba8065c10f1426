import numpy as np
import pytest

from l2terrain.package import RefEntry, ReferenceTable, export_bytes
from l2terrain.scanner import describe_references, references_of_class, scan_references

from conftest import FakeReader, pad, ref


def test_scan_finds_imports_in_order(table, terrain_body):
    refs = scan_references(terrain_body, table)
    assert [(r.offset, r.name) for r in refs] == [
        (0, "17_21_Deco01"),
        (6, "Rock01"),
        (17, "Grass01"),
        (21, "17_21_Alpha0"),
    ]
    assert refs[1].class_name == "StaticMesh"
    assert refs[1].package == "SM_Rocks"


def test_unresolved_and_zero_indices_are_skipped(table):
    # -7 is not in the table, 0 never is.
    data = bytes([0x87]) + pad(3) + ref(2) + pad(2)
    refs = scan_references(data, table)
    assert [r.name for r in refs] == ["Rock01"]


def test_multi_byte_hit_claims_its_span():
    exports = [(f"E{i}", "Texture") for i in range(1, 65)]
    table = ReferenceTable.from_tables(exports=exports)
    # 0x40 0x01 is export 64; the trailing 0x01 alone would be export 1.
    refs = scan_references(b"\x00\x40\x01\x00\x00", table)
    assert [(r.offset, r.index) for r in refs] == [(1, 64)]
    assert refs[0].end == 3


def test_hits_never_overlap_on_noise():
    exports = [(f"E{i}", "Texture") for i in range(1, 300)]
    imports = [(f"I{i}", "StaticMesh", "P") for i in range(1, 300)]
    table = ReferenceTable.from_tables(imports=imports, exports=exports)
    data = np.random.default_rng(7).integers(0, 256, size=4096, dtype=np.uint8).tobytes()
    refs = scan_references(data, table)
    assert refs
    for a, b in zip(refs, refs[1:]):
        assert a.offset < b.offset
        assert a.end <= b.offset


def test_class_filter_and_report(table, terrain_body):
    refs = scan_references(terrain_body, table)
    assert [r.name for r in references_of_class(refs, "StaticMesh")] == ["Rock01"]
    report = describe_references(refs)
    assert report[0] == {
        "offset": 0,
        "index": -1,
        "class": "Texture",
        "name": "17_21_Deco01",
        "package": "T_17_21",
    }


def test_reference_table_layout(table):
    assert table[-1] == RefEntry("17_21_Deco01", "Texture", "T_17_21")
    assert table[1].class_name == "TerrainInfo"
    assert 0 not in table
    assert table.get(-99) is None


def test_reference_table_from_mapping():
    table = ReferenceTable.from_mapping(
        {
            "imports": [{"name": "Rock01", "class": "StaticMesh", "package": "SM_Rocks"}],
            "exports": [{"name": "TerrainInfo0", "class": "TerrainInfo"}],
        }
    )
    assert table[-1].package == "SM_Rocks"
    assert table[1].name == "TerrainInfo0"


def test_export_bytes_checks_range(table):
    reader = FakeReader(table, 10)
    assert export_bytes(b"x" * 10, reader, 1) == b"x" * 10
    with pytest.raises(ValueError):
        export_bytes(b"x" * 5, reader, 1)
