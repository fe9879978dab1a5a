from pathlib import Path
from typing import Any, Dict
import json


def dump_json(data: Any) -> str:
    """Serialise ``data`` the way every catalog file is formatted.

    Two-space indent, key order preserved, non-ASCII kept as-is and a
    trailing newline, so rewriting an unchanged record is a no-op diff.
    """
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` to ``path`` through a temporary file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = path.with_name(path.name + ".tmp")
    try:
        # utf-8, never utf-8-sig: writers must not emit a byte-order mark
        with temp_file.open("w", encoding="utf-8", newline="\n") as fh:
            fh.write(dump_json(data))
        temp_file.replace(path)
    finally:
        if temp_file.exists():
            temp_file.unlink()


def write_index(plants_dir: Path, index: Dict[str, Any], index_name: str = "index.json") -> Path:
    index_path = plants_dir / index_name
    write_json_atomic(index_path, index)
    return index_path


def write_report(output_dir: Path, report: Dict[str, Any]) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / "report.json"
    write_json_atomic(report_path, report)
    return report_path
