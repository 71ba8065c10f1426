"""
The seam to the structured package reader.

The reader itself (name/import/export tables, property parsing) lives outside
this project. The extraction code only needs three things from it, captured
by the PackageReader protocol below.
"""

from __future__ import annotations

import dataclasses
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional, Protocol, Sequence, Tuple


@dataclasses.dataclass(frozen=True)
class RefEntry:
    name: str
    class_name: str
    package: Optional[str] = None


class ReferenceTable(Mapping[int, RefEntry]):
    """Object reference index -> RefEntry.

    Exports are keyed 1..N, imports -1..-M. Index 0 is never present.
    """

    def __init__(self, entries: Optional[Mapping[int, RefEntry]] = None) -> None:
        self._entries: Dict[int, RefEntry] = {}
        for idx, entry in (entries or {}).items():
            if idx == 0:
                raise ValueError("index 0 means 'no reference' and cannot be registered")
            self._entries[int(idx)] = entry

    @classmethod
    def from_tables(
        cls,
        imports: Sequence[Tuple[str, str, Optional[str]]] = (),
        exports: Sequence[Tuple[str, str]] = (),
    ) -> "ReferenceTable":
        entries: Dict[int, RefEntry] = {}
        for i, (name, class_name, package) in enumerate(imports):
            entries[-(i + 1)] = RefEntry(name, class_name, package)
        for i, (name, class_name) in enumerate(exports):
            entries[i + 1] = RefEntry(name, class_name, None)
        return cls(entries)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> "ReferenceTable":
        """Build from a loaded JSON/YAML document with ``imports`` and ``exports`` lists."""
        imports = []
        for item in raw.get("imports", []) or []:
            if not isinstance(item, Mapping):
                raise ValueError("import entries must be mappings")
            imports.append((str(item["name"]), str(item["class"]), item.get("package")))
        exports = []
        for item in raw.get("exports", []) or []:
            if not isinstance(item, Mapping):
                raise ValueError("export entries must be mappings")
            exports.append((str(item["name"]), str(item["class"])))
        return cls.from_tables(imports, exports)

    def resolve(self, index: int) -> Optional[RefEntry]:
        return self._entries.get(index)

    def __getitem__(self, index: int) -> RefEntry:
        return self._entries[index]

    def __contains__(self, index: object) -> bool:
        return index in self._entries

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class PackageReader(Protocol):
    def reference_table(self) -> ReferenceTable: ...

    def byte_range_of(self, export_index: int) -> Tuple[int, int]:
        """(offset, length) of the export's serialized data in the plaintext package."""
        ...

    def exports_of_class(self, class_name: str) -> Iterable[int]: ...


# Opens a reader over decrypted package bytes.
ReaderFactory = Callable[[bytes], PackageReader]


def export_bytes(data: bytes, reader: PackageReader, export_index: int) -> bytes:
    off, size = reader.byte_range_of(export_index)
    if off < 0 or size < 0 or off + size > len(data):
        raise ValueError(f"export {export_index} range {off}+{size} is outside the package ({len(data)} bytes)")
    return bytes(data[off : off + size])
