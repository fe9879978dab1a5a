"""Duplicate and conflict detection across the catalog.

Detection is diagnostic only: nothing here deletes or merges records. The
one repair helper, :func:`propose_id_reassignments`, returns proposals for
the store to commit.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from catalog import PlantRecord, RecordChange

# Ids at or above this value are treated as imported/temporary and do not
# raise the ceiling used when handing out new ids.
MAX_NORMAL_ID = 1_000_000


@dataclass(frozen=True)
class DuplicateGroup:
    """Records sharing one normalized key."""

    key: str
    members: Tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "members": list(self.members)}


@dataclass
class DuplicateReport:
    by_id: List[DuplicateGroup] = field(default_factory=list)
    by_scientific_name: List[DuplicateGroup] = field(default_factory=list)
    by_name: List[DuplicateGroup] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.by_id or self.by_scientific_name or self.by_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": [g.to_dict() for g in self.by_id],
            "scientificName": [g.to_dict() for g in self.by_scientific_name],
            "name": [g.to_dict() for g in self.by_name],
        }


def normalize_key(value: Any) -> str:
    """Lower-cased, trimmed string form of ``value``; ``""`` for missing values."""
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip().lower()


def group_records(
    records: Iterable[PlantRecord], key: Callable[[PlantRecord], Any]
) -> List[DuplicateGroup]:
    """Group ``records`` by ``key`` and keep the groups with more than one member.

    Empty keys never form a group. Groups are sorted by descending size,
    then by key so the output is stable between runs.
    """
    buckets: Dict[str, List[str]] = defaultdict(list)
    for record in records:
        k = normalize_key(key(record))
        if k:
            buckets[k].append(record.filename)
    groups = [
        DuplicateGroup(k, tuple(sorted(members)))
        for k, members in buckets.items()
        if len(members) > 1
    ]
    groups.sort(key=lambda g: (-g.size, g.key))
    return groups


def detect_duplicates(records: Iterable[PlantRecord]) -> DuplicateReport:
    """Report id, scientific-name and common-name collisions."""
    records = list(records)
    return DuplicateReport(
        by_id=group_records(records, lambda r: r.id),
        by_scientific_name=group_records(records, lambda r: r.scientific_name),
        by_name=group_records(records, lambda r: r.name),
    )


def _max_normal_id(records: Iterable[PlantRecord]) -> int:
    highest = 0
    for record in records:
        value = record.id
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        if isinstance(value, int) and not isinstance(value, bool) and value < MAX_NORMAL_ID:
            highest = max(highest, value)
    return highest


def propose_id_reassignments(
    records: Iterable[PlantRecord], report: Optional[DuplicateReport] = None
) -> List[RecordChange]:
    """Propose fresh integer ids for records whose id collides with another.

    Within each duplicate-id group the first filename keeps its id; every
    other member gets the next unused id above the current maximum.
    """
    records = list(records)
    report = report or detect_duplicates(records)
    next_id = _max_normal_id(records) + 1
    changes: List[RecordChange] = []
    for group in report.by_id:
        for filename in group.members[1:]:
            changes.append(
                RecordChange(
                    filename,
                    {"id": next_id},
                    stage="ids",
                    reason=f"id {group.key} also used by {group.members[0]}",
                )
            )
            next_id += 1
    return changes


__all__ = [
    "DuplicateGroup",
    "DuplicateReport",
    "MAX_NORMAL_ID",
    "detect_duplicates",
    "group_records",
    "normalize_key",
    "propose_id_reassignments",
]
