"""
Evolution lineage stored inside memory metadata.

Metadata carries two kinds of keys: whatever the caller supplied, and the
lineage fields written by the evolution engine. Evolved memories carry the
full `EvolvedLineage` block; each absorbed source only gains `evolvedInto`.
Both shapes are merged into the stored mapping and validated on read.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from memvolve.core.typing import JSONDict

EVOLVED_TYPE = "evolved"
EVOLVED_INTO_KEY = "evolvedInto"


def merge_metadata(existing: JSONDict | None, updates: JSONDict | None) -> JSONDict:
    """Shallow union. Existing keys survive unless named in `updates`."""
    merged = dict(existing or {})
    merged.update(updates or {})
    return merged


def evolved_into(metadata: JSONDict | None) -> str | None:
    """Id of the evolved memory a source was absorbed into, if any."""
    if not metadata:
        return None
    value = metadata.get(EVOLVED_INTO_KEY)
    return value if isinstance(value, str) and value else None


def mark_evolved_into(metadata: JSONDict | None, evolved_id: str) -> JSONDict:
    """Source-side lineage: link a consumed memory to its synthesis."""
    return merge_metadata(metadata, {EVOLVED_INTO_KEY: evolved_id})


def is_evolved(metadata: JSONDict | None) -> bool:
    return bool(metadata) and metadata.get("type") == EVOLVED_TYPE


@dataclass
class EvolvedLineage:
    """Evolved-side lineage block."""

    source_memory_ids: list[str]
    evolution_date: datetime
    range_start: datetime
    range_end: datetime

    def __post_init__(self) -> None:
        if len(set(self.source_memory_ids)) != len(self.source_memory_ids):
            raise ValueError("Duplicate source memory ids in lineage")
        if self.range_start > self.range_end:
            raise ValueError("Lineage date range start is after its end")

    @property
    def source_memory_count(self) -> int:
        return len(self.source_memory_ids)

    def to_metadata(self) -> JSONDict:
        return {
            "type": EVOLVED_TYPE,
            "sourceMemoryIds": list(self.source_memory_ids),
            "sourceMemoryCount": self.source_memory_count,
            "evolutionDate": self.evolution_date.isoformat(),
            "originalDateRange": {
                "start": self.range_start.isoformat(),
                "end": self.range_end.isoformat(),
            },
        }

    @classmethod
    def from_metadata(cls, metadata: JSONDict | None) -> "EvolvedLineage | None":
        """Parse the lineage block; None when the memory is not evolved or malformed."""
        if not is_evolved(metadata):
            return None
        try:
            date_range: dict[str, Any] = metadata["originalDateRange"]
            lineage = cls(
                source_memory_ids=[str(i) for i in metadata["sourceMemoryIds"]],
                evolution_date=datetime.fromisoformat(metadata["evolutionDate"]),
                range_start=datetime.fromisoformat(date_range["start"]),
                range_end=datetime.fromisoformat(date_range["end"]),
            )
        except (KeyError, TypeError, ValueError):
            return None
        if metadata.get("sourceMemoryCount") != lineage.source_memory_count:
            return None
        return lineage
