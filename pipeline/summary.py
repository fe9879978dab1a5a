from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from qc.duplicates import DuplicateReport


@dataclass
class Anomaly:
    """Something a maintainer should look at, tied to one record file."""

    stage: str
    filename: str
    label: str
    kind: str
    detail: str = ""

    def describe(self) -> str:
        text = f"[{self.stage}:{self.kind}] {self.label} ({self.filename})"
        return f"{text}: {self.detail}" if self.detail else text


@dataclass
class StageSummary:
    name: str
    scanned: int = 0
    kept: int = 0
    removed: int = 0
    updated: int = 0
    anomalies: List[Anomaly] = field(default_factory=list)

    def add(self, kind: str, filename: str, label: str = "", detail: str = "") -> Anomaly:
        anomaly = Anomaly(self.name, filename, label or filename, kind, detail)
        self.anomalies.append(anomaly)
        return anomaly

    def headline(self) -> str:
        return (
            f"{self.name}: scanned {self.scanned}, kept {self.kept}, removed {self.removed}, "
            f"updated {self.updated}, anomalies {len(self.anomalies)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["anomalies"] = [asdict(a) for a in self.anomalies]
        return data


@dataclass
class RunSummary:
    """Aggregated outcome of one pipeline run."""

    dry_run: bool = False
    stages: Dict[str, StageSummary] = field(default_factory=dict)
    duplicates: Optional[DuplicateReport] = None
    index_count: Optional[int] = None

    def stage(self, name: str) -> StageSummary:
        if name not in self.stages:
            self.stages[name] = StageSummary(name)
        return self.stages[name]

    @property
    def anomalies(self) -> List[Anomaly]:
        return [a for s in self.stages.values() for a in s.anomalies]

    def lines(self) -> List[str]:
        lines = [s.headline() for s in self.stages.values()]
        if self.index_count is not None:
            lines.append(f"index: {self.index_count} records")
        if self.dry_run:
            lines.append("dry run: no files were written")
        lines.extend(a.describe() for a in self.anomalies)
        return lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "stages": {name: s.to_dict() for name, s in self.stages.items()},
            "duplicates": self.duplicates.to_dict() if self.duplicates else None,
            "index_count": self.index_count,
        }


__all__ = ["Anomaly", "StageSummary", "RunSummary"]
