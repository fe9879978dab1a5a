"""
JSON file-based catalog store.

One JSON object per plant in a flat directory, plus a derived index file:

- Records: ``<plants_dir>/<name>.json``, read with BOM tolerance and
  rewritten atomically with stable formatting
- Index: ``<plants_dir>/index.json``, always regenerated from the files
  actually present, never patched

The store is the only component that writes to the catalog. Pipeline
stages hand it :class:`~catalog.RecordChange` and
:class:`~catalog.RecordRemoval` proposals.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from catalog import CatalogIndex, PlantRecord, RecordChange, RecordRemoval
from catalog.errors import DirectoryMissing, MalformedRecord

from .read import iter_record_files, read_json
from .write import write_index, write_json_atomic

logger = logging.getLogger(__name__)


class CatalogStore:
    """Reader and sole writer of record files and the catalog index."""

    def __init__(
        self,
        plants_dir: Path,
        index_name: str = "index.json",
        index_timestamp: bool = True,
        dry_run: bool = False,
    ):
        """Initialize the store.

        Args:
            plants_dir: Directory holding one JSON file per plant
            index_name: File name of the derived index inside ``plants_dir``
            index_timestamp: Write ``lastUpdated`` into the index
            dry_run: Log intended writes without touching the filesystem
        """
        self.plants_dir = Path(plants_dir)
        self.index_name = index_name
        self.index_timestamp = index_timestamp
        self.dry_run = dry_run

        # Files that failed to parse during the last load_all()
        self.malformed: List[MalformedRecord] = []

    def check(self) -> None:
        """Raise :class:`DirectoryMissing` if the catalog directory is absent."""
        if not self.plants_dir.is_dir():
            raise DirectoryMissing(self.plants_dir)

    def record_files(self) -> List[str]:
        return [p.name for p in iter_record_files(self.plants_dir, self.index_name)]

    def load(self, filename: str) -> PlantRecord:
        return PlantRecord(filename, read_json(self.plants_dir / filename))

    def load_all(self) -> List[PlantRecord]:
        """Load every record file; unparsable files are logged and skipped."""
        self.check()
        records: List[PlantRecord] = []
        self.malformed = []
        for path in iter_record_files(self.plants_dir, self.index_name):
            try:
                records.append(PlantRecord(path.name, read_json(path)))
            except MalformedRecord as e:
                logger.warning("Skipping malformed record %s", e.message)
                self.malformed.append(e)
        logger.info("Loaded %d records from %s", len(records), self.plants_dir)
        return records

    def save(self, record: PlantRecord) -> None:
        if self.dry_run:
            logger.info("[dry-run] would write %s", record.filename)
            return
        write_json_atomic(self.plants_dir / record.filename, record.to_dict())
        logger.debug("Wrote %s", record.filename)

    def delete(self, filename: str) -> bool:
        """Delete a record file. Returns True if it existed."""
        path = self.plants_dir / filename
        if not path.exists():
            return False
        if self.dry_run:
            logger.info("[dry-run] would delete %s", filename)
            return True
        path.unlink()
        logger.debug("Deleted %s", filename)
        return True

    def commit(
        self,
        proposal: Union[RecordChange, RecordRemoval],
        record: Optional[PlantRecord] = None,
    ) -> Optional[PlantRecord]:
        """Apply one proposal and return the resulting snapshot.

        Removals return ``None``. For a change, ``record`` is the snapshot the
        change was computed against; it is re-read from disk when omitted.
        """
        if isinstance(proposal, RecordRemoval):
            self.delete(proposal.filename)
            return None
        base = record if record is not None else self.load(proposal.filename)
        updated = proposal.apply(base)
        self.save(updated)
        return updated

    def build_index(self) -> CatalogIndex:
        last_updated = None
        if self.index_timestamp:
            last_updated = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return CatalogIndex.from_filenames(self.record_files(), last_updated)

    def rebuild_index(self) -> CatalogIndex:
        """Regenerate the index from the record files present on disk."""
        self.check()
        index = self.build_index()
        if self.dry_run:
            logger.info("[dry-run] would write %s with %d entries", self.index_name, index.count)
            return index
        write_index(self.plants_dir, index.to_dict(), self.index_name)
        logger.info("Rebuilt %s: %d records", self.index_name, index.count)
        return index


__all__ = ["CatalogStore"]
