"""
Heuristic object-reference scanner.

Slides over a raw export body one byte at a time and records every position
whose compact index resolves in the package's reference table. Field
boundaries are unknown, so hits are statistical: arbitrary payload bytes can
decode to a valid index. Consumers must tolerate that noise.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterable, List, Mapping, Optional

from .compact_index import compact_index_length, read_compact_index
from .package import RefEntry

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RawReference:
    offset: int
    index: int
    name: str
    class_name: str
    package: Optional[str] = None

    @property
    def end(self) -> int:
        return self.offset + compact_index_length(self.index)


def scan_references(data: bytes, table: Mapping[int, RefEntry]) -> List[RawReference]:
    """Greedy, leftmost-first, non-overlapping reference scan.

    A hit claims the canonical encoded span of its value; a later candidate
    whose span touches a claimed byte is dropped. Without the claim the same
    reference would be re-detected at interior offsets.
    """
    refs: List[RawReference] = []
    # Hits are recorded in increasing offset order, so only the end of the
    # last claimed span can overlap a new candidate.
    claimed_end = 0
    for i in range(len(data) - 1):
        idx, _ = read_compact_index(data, i)
        if idx == 0:
            continue
        entry = table.get(idx)
        if entry is None:
            continue
        if i < claimed_end:
            continue
        refs.append(RawReference(i, idx, entry.name, entry.class_name, entry.package))
        claimed_end = i + compact_index_length(idx)
    logger.debug("scanned %d bytes, %d references", len(data), len(refs))
    return refs


def references_of_class(refs: Iterable[RawReference], class_name: str) -> List[RawReference]:
    return [r for r in refs if r.class_name == class_name]


def describe_references(refs: Iterable[RawReference]) -> List[dict]:
    return [
        {
            "offset": r.offset,
            "index": r.index,
            "class": r.class_name,
            "name": r.name,
            "package": r.package,
        }
        for r in refs
    ]
