"""Plant catalog data model.

Records are passed between pipeline stages as immutable snapshots. Stages
never write files; they return :class:`RecordChange` and
:class:`RecordRemoval` proposals which only the store commits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import CatalogError, DirectoryMissing, MalformedRecord, ServiceContractError
from .protocols import TaxonomyService

REQUIRED_FIELDS = ("id", "name", "scientificName")


@dataclass(frozen=True)
class PlantRecord:
    """One catalog entry, keyed by the file it was loaded from.

    ``data`` holds the full JSON object in file order. Fields this package
    does not know about (humidity, care tips, ...) are carried through
    untouched.
    """

    filename: str
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> Any:
        return self.data.get("id")

    @property
    def name(self) -> str:
        return self.data.get("name") or ""

    @property
    def scientific_name(self) -> str:
        value = self.data.get("scientificName")
        return value.strip() if isinstance(value, str) else ""

    @property
    def common_names(self) -> List[str]:
        """``commonNames`` as a list; a bare string counts as one entry."""
        value = self.data.get("commonNames")
        if isinstance(value, str):
            return [value] if value.strip() else []
        return list(value) if isinstance(value, list) else []

    @property
    def description(self) -> str:
        value = self.data.get("description")
        return value if isinstance(value, str) else ""

    @property
    def image_url(self) -> str:
        return self.data.get("imageUrl") or ""

    @property
    def images(self) -> List[str]:
        value = self.data.get("images")
        return list(value) if isinstance(value, list) else []

    @property
    def label(self) -> str:
        """Name used in logs and reports."""
        return self.name or self.scientific_name or self.filename

    def missing_fields(self) -> List[str]:
        return [f for f in REQUIRED_FIELDS if self.data.get(f) in (None, "")]

    def with_changes(self, changes: Dict[str, Any]) -> "PlantRecord":
        """Return a new snapshot with ``changes`` applied on top of ``data``."""
        data = dict(self.data)
        data.update(changes)
        return PlantRecord(self.filename, data)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


@dataclass(frozen=True)
class RecordChange:
    """Proposed field update for one record."""

    filename: str
    changes: Dict[str, Any]
    stage: str
    reason: str = ""

    def apply(self, record: PlantRecord) -> PlantRecord:
        return record.with_changes(self.changes)


@dataclass(frozen=True)
class RecordRemoval:
    """Proposed deletion of one record file."""

    filename: str
    stage: str
    reason: str = ""


@dataclass
class CatalogIndex:
    """Derived listing of every record file in the catalog."""

    plants: List[str]
    last_updated: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.plants)

    @classmethod
    def from_filenames(cls, filenames, last_updated: Optional[str] = None) -> "CatalogIndex":
        return cls(plants=sorted(filenames), last_updated=last_updated)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"count": self.count, "plants": list(self.plants)}
        if self.last_updated:
            data["lastUpdated"] = self.last_updated
        return data


__all__ = [
    "PlantRecord",
    "RecordChange",
    "RecordRemoval",
    "CatalogIndex",
    "REQUIRED_FIELDS",
    "CatalogError",
    "MalformedRecord",
    "DirectoryMissing",
    "ServiceContractError",
    "TaxonomyService",
]
