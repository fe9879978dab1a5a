"""Catalog integrity pipeline.

Sequence: load -> duplicate report -> taxonomy filter -> image association
-> description cleanup -> common-name cleanup -> index rebuild.

Records flow between stages as immutable :class:`~catalog.PlantRecord`
snapshots. Stages compute proposals; :meth:`CatalogPipeline._commit` hands
them to the store and swaps in the new snapshot only after the write
succeeded. A failure inside one record is logged, reported as an anomaly,
and leaves that record as it was. A
:class:`~catalog.errors.ServiceContractError` stops the run instead.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union

from assets import AssetStatus, ImageResolver
from catalog import PlantRecord, RecordChange, RecordRemoval
from catalog.errors import ServiceContractError
from catalog.protocols import TaxonomyService
from io_utils.read import discover_asset_folders
from io_utils.store import CatalogStore
from qc.descriptions import DescriptionPolicy, clean_description, description_flags
from qc.duplicates import DuplicateReport, detect_duplicates, propose_id_reassignments
from qc.gbif import TaxonomyResolver, TaxonomyStatus
from qc.names import needs_common_names, normalize_common_names

from .summary import Anomaly, RunSummary, StageSummary

logger = logging.getLogger(__name__)

DEFAULT_STAGES = ("duplicates", "taxonomy", "images", "descriptions", "names")
ALL_STAGES = ("duplicates", "ids", "taxonomy", "images", "descriptions", "names")

Records = Dict[str, PlantRecord]


class CatalogPipeline:
    """Run integrity stages over every record in a catalog store."""

    def __init__(
        self,
        store: CatalogStore,
        taxonomy: Optional[TaxonomyResolver] = None,
        images: Optional[ImageResolver] = None,
        description_policy: Optional[DescriptionPolicy] = None,
        remove_rejected: bool = True,
        apply_accepted_names: bool = False,
    ):
        self.store = store
        self.taxonomy = taxonomy
        self.images = images
        self.description_policy = description_policy or DescriptionPolicy()
        self.remove_rejected = remove_rejected
        self.apply_accepted_names = apply_accepted_names

    @classmethod
    def from_config(
        cls,
        cfg: Dict[str, Any],
        stages: Iterable[str] = DEFAULT_STAGES,
        dry_run: bool = False,
        service: Optional[TaxonomyService] = None,
    ) -> "CatalogPipeline":
        """Build a pipeline for ``stages``.

        Directory checks happen here, before anything is loaded or written,
        so a missing catalog or asset directory aborts the run cleanly.
        """
        stages = tuple(stages)
        catalog_cfg = cfg.get("catalog", {})
        store = CatalogStore(
            Path(catalog_cfg.get("plants_dir", "data/plants-merged")),
            index_name=catalog_cfg.get("index_name", "index.json"),
            index_timestamp=catalog_cfg.get("index_timestamp", True),
            dry_run=dry_run,
        )
        store.check()

        images = None
        if "images" in stages:
            folders = discover_asset_folders(
                Path(catalog_cfg.get("images_dir", "images")),
                cfg.get("images", {}).get("extensions"),
            )
            images = ImageResolver.from_config(cfg, folders)

        taxonomy = None
        if "taxonomy" in stages:
            taxonomy = TaxonomyResolver.from_config(cfg, service=service)

        tax_cfg = cfg.get("taxonomy", {})
        return cls(
            store,
            taxonomy=taxonomy,
            images=images,
            description_policy=DescriptionPolicy.from_config(cfg),
            remove_rejected=tax_cfg.get("remove_rejected", True),
            apply_accepted_names=tax_cfg.get("apply_accepted_names", False),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _commit(
        self,
        records: Records,
        proposal: Union[RecordChange, RecordRemoval],
        stage: StageSummary,
    ) -> None:
        updated = self.store.commit(proposal, records.get(proposal.filename))
        if updated is None:
            records.pop(proposal.filename, None)
            stage.removed += 1
        else:
            records[proposal.filename] = updated
            stage.updated += 1

    def _each(
        self,
        records: Records,
        stage: StageSummary,
        func: Callable[[PlantRecord, StageSummary], None],
    ) -> None:
        # Snapshot the keys: removals shrink ``records`` while we iterate
        for filename in list(records):
            record = records[filename]
            stage.scanned += 1
            try:
                func(record, stage)
            except ServiceContractError:
                raise
            except Exception as e:
                logger.error("%s: failed on %s: %s", stage.name, filename, e)
                stage.add("error", filename, record.label, str(e))

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def load(self, summary: RunSummary) -> Records:
        records = {r.filename: r for r in self.store.load_all()}
        stage = summary.stage("load")
        stage.scanned = len(records) + len(self.store.malformed)
        stage.kept = len(records)
        for error in self.store.malformed:
            stage.add("malformed_record", error.path.name, detail=error.message)
        return records

    def run_duplicates(self, records: Records, summary: RunSummary) -> DuplicateReport:
        stage = summary.stage("duplicates")
        stage.scanned = stage.kept = len(records)
        for record in records.values():
            missing = record.missing_fields()
            if missing:
                stage.add("missing_fields", record.filename, record.label, ", ".join(missing))

        report = detect_duplicates(records.values())
        for kind, groups in (
            ("duplicate_id", report.by_id),
            ("duplicate_scientific_name", report.by_scientific_name),
            ("duplicate_name", report.by_name),
        ):
            for group in groups:
                stage.add(
                    kind,
                    group.members[0],
                    group.key,
                    f"{group.size} records: {', '.join(group.members)}",
                )
        summary.duplicates = report
        logger.info(
            "Duplicates: %d id, %d scientific name, %d name groups",
            len(report.by_id),
            len(report.by_scientific_name),
            len(report.by_name),
        )
        return report

    def _taxonomy_record(self, records: Records, record: PlantRecord, stage: StageSummary) -> None:
        match = self.taxonomy.resolve(record.scientific_name)

        if match.status is TaxonomyStatus.REJECTED_NON_SPECIES:
            detail = f"'{record.scientific_name}' {match.reason}".strip()
            if not self.remove_rejected:
                stage.kept += 1
                stage.add("rejected_non_species", record.filename, record.label, detail)
                return
            logger.warning("Removing %s (%s): %s", record.filename, record.label, detail)
            self._commit(records, RecordRemoval(record.filename, "taxonomy", match.reason), stage)
            stage.add("removed_non_species", record.filename, record.label, detail)
            return

        stage.kept += 1
        if match.status is TaxonomyStatus.UNRESOLVED:
            logger.info("Keeping unresolved %s (%s)", record.filename, match.reason)
            stage.add("unresolved", record.filename, record.label, match.reason)
            return

        if match.is_synonym:
            detail = f"'{record.scientific_name}' -> '{match.accepted_name}'"
            stage.add("synonym", record.filename, record.label, detail)
            if self.apply_accepted_names:
                change = RecordChange(
                    record.filename,
                    {"scientificName": match.accepted_name},
                    stage="taxonomy",
                    reason="accepted name",
                )
                self._commit(records, change, stage)

    def run_taxonomy(self, records: Records, summary: RunSummary) -> None:
        stage = summary.stage("taxonomy")
        self._each(records, stage, lambda r, s: self._taxonomy_record(records, r, s))
        logger.info(
            "Taxonomy: %d service calls, %d distinct names", self.taxonomy.calls, self.taxonomy.cache_size()
        )

    def _images_record(self, records: Records, record: PlantRecord, stage: StageSummary) -> None:
        match, change = self.images.propose(record)
        if match.is_tie:
            stage.add(
                "ambiguous_asset",
                record.filename,
                record.label,
                f"{match.rule.value} rule matched {', '.join(match.candidates)}; using {match.folder}",
            )

        if match.status is AssetStatus.MATCHED:
            stage.kept += 1
            if change is not None:
                self._commit(records, change, stage)
            return

        kind = "no_asset_found" if match.status is AssetStatus.NO_ASSET_FOUND else "empty_asset_folder"
        stage.add(kind, record.filename, record.label, match.folder or match.slug)
        stage.kept += 1
        scrub = self.images.scrub(record)
        if scrub is not None:
            self._commit(records, scrub, stage)

    def run_images(self, records: Records, summary: RunSummary) -> None:
        stage = summary.stage("images")
        self._each(records, stage, lambda r, s: self._images_record(records, r, s))

    def _descriptions_record(self, records: Records, record: PlantRecord, stage: StageSummary) -> None:
        stage.kept += 1
        original = record.data.get("description")
        text = record.description
        if isinstance(original, str):
            text = clean_description(original)
            if text != original:
                change = RecordChange(record.filename, {"description": text}, "descriptions", "cleanup")
                self._commit(records, change, stage)

        flags = description_flags(text, self.description_policy)
        if flags:
            stage.add("description_quality", record.filename, record.label, ", ".join(flags))

    def run_descriptions(self, records: Records, summary: RunSummary) -> None:
        stage = summary.stage("descriptions")
        self._each(records, stage, lambda r, s: self._descriptions_record(records, r, s))

    def _names_record(self, records: Records, record: PlantRecord, stage: StageSummary) -> None:
        stage.kept += 1
        current = record.data.get("commonNames")
        if current is not None and not isinstance(current, (list, str)):
            logger.warning("Leaving %s commonNames untouched: %r", record.filename, current)
            stage.add("malformed_common_names", record.filename, record.label, repr(current))
            return

        names = normalize_common_names(record)
        if current is not None and names != current:
            change = RecordChange(record.filename, {"commonNames": names}, "names", "normalize")
            self._commit(records, change, stage)
            record = records[record.filename]
        if needs_common_names(record):
            stage.add("missing_common_names", record.filename, record.label)

    def run_names(self, records: Records, summary: RunSummary) -> None:
        stage = summary.stage("names")
        self._each(records, stage, lambda r, s: self._names_record(records, r, s))

    def run_id_repair(self, records: Records, summary: RunSummary) -> None:
        stage = summary.stage("ids")
        stage.scanned = len(records)
        for change in propose_id_reassignments(records.values()):
            record = records[change.filename]
            try:
                self._commit(records, change, stage)
                logger.info("Reassigned %s: id %s -> %s", change.filename, record.id, change.changes["id"])
                stage.add("id_reassigned", change.filename, record.label, change.reason)
            except Exception as e:
                logger.error("ids: failed on %s: %s", change.filename, e)
                stage.add("error", change.filename, record.label, str(e))
        stage.kept = len(records)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, stages: Iterable[str] = DEFAULT_STAGES, rebuild_index: bool = True) -> RunSummary:
        stages = tuple(stages)
        unknown = [s for s in stages if s not in ALL_STAGES]
        if unknown:
            raise ValueError(f"Unknown pipeline stage(s): {', '.join(unknown)}")

        summary = RunSummary(dry_run=self.store.dry_run)
        records = self.load(summary)

        runners: Dict[str, Callable[[Records, RunSummary], Any]] = {
            "duplicates": self.run_duplicates,
            "ids": self.run_id_repair,
            "taxonomy": self.run_taxonomy,
            "images": self.run_images,
            "descriptions": self.run_descriptions,
            "names": self.run_names,
        }
        for name in ALL_STAGES:
            if name not in stages:
                continue
            if name == "taxonomy" and self.taxonomy is None:
                raise ValueError("taxonomy stage requires a TaxonomyResolver")
            if name == "images" and self.images is None:
                raise ValueError("images stage requires an ImageResolver")
            logger.info("Running stage: %s", name)
            runners[name](records, summary)

        if rebuild_index:
            summary.index_count = self.store.rebuild_index().count

        for stage in summary.stages.values():
            logger.info(stage.headline())
        return summary


__all__ = [
    "CatalogPipeline",
    "DEFAULT_STAGES",
    "ALL_STAGES",
    "Anomaly",
    "RunSummary",
    "StageSummary",
]
