from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

import pytest

from l2terrain.package import ReferenceTable

# Index -1..-6 as single-byte compact indices 0x81..0x86.
IMPORTS = [
    ("17_21_Deco01", "Texture", "T_17_21"),
    ("Rock01", "StaticMesh", "SM_Rocks"),
    ("Grass01", "Texture", "T_Ground"),
    ("17_21_Alpha0", "Texture", "T_17_21"),
    ("17_21", "Texture", "T_17_21"),
    ("Bush02", "StaticMesh", "SM_Plants"),
]


def ref(i: int) -> bytes:
    """Single-byte compact index for import ``i`` (1-based)."""
    return bytes([0x80 | i])


def pad(n: int) -> bytes:
    return b"\x00" * n


class FakeReader:
    """Stands in for a structured package reader: one TerrainInfo export spanning the whole body."""

    def __init__(self, table: ReferenceTable, size: int, exports: Dict[str, List[int]] = None) -> None:
        self._table = table
        self._size = size
        self._exports = exports if exports is not None else {"TerrainInfo": [1]}

    def reference_table(self) -> ReferenceTable:
        return self._table

    def byte_range_of(self, export_index: int) -> Tuple[int, int]:
        return 0, self._size

    def exports_of_class(self, class_name: str) -> Iterable[int]:
        return list(self._exports.get(class_name, []))


@pytest.fixture
def table() -> ReferenceTable:
    return ReferenceTable.from_tables(imports=IMPORTS, exports=[("TerrainInfo0", "TerrainInfo")])


@pytest.fixture
def reader_factory(table):
    return lambda plain: FakeReader(table, len(plain))


@pytest.fixture
def terrain_body() -> bytes:
    # deco @0, mesh @6, ground @17, splatmap @21
    return ref(1) + pad(5) + ref(2) + pad(10) + ref(3) + pad(3) + ref(4) + pad(10)
