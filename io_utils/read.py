from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List
import json
import re

from catalog.errors import DirectoryMissing, MalformedRecord

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def _normalize_extensions(extensions: Iterable[str]) -> set[str]:
    return {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}


def read_json(path: Path) -> Dict[str, Any]:
    """Read one JSON object from ``path``.

    A leading UTF-8 byte-order mark is dropped silently. Anything that does
    not decode to a JSON object raises :class:`MalformedRecord`.
    """
    try:
        with path.open("r", encoding="utf-8-sig") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedRecord(path, f"{path.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedRecord(path, f"{path.name}: expected a JSON object, got {type(data).__name__}")
    return data


def iter_record_files(plants_dir: Path, index_name: str = "index.json") -> Iterator[Path]:
    """Yield record files in ``plants_dir`` sorted by name, skipping the index."""
    for path in sorted(plants_dir.glob("*.json")):
        if path.name == index_name or not path.is_file():
            continue
        yield path


def iter_images(folder: Path, extensions: Iterable[str] | None = None) -> Iterator[Path]:
    """Yield image files directly inside ``folder`` sorted by filename.

    Args:
        folder: Asset folder to list
        extensions: Optional set of file extensions to include

    Yields:
        Path objects for image files
    """
    allowed = _normalize_extensions(extensions) if extensions is not None else IMAGE_EXTENSIONS
    for path in sorted(folder.iterdir(), key=lambda p: p.name):
        if path.is_file() and path.suffix.lower() in allowed:
            yield path


_NUMERIC_PREFIX = re.compile(r"^\d+-")


def normalize_folder_name(name: str) -> str:
    """Lower-case a folder name and drop a leading ``<digits>-`` id prefix."""
    return _NUMERIC_PREFIX.sub("", name.lower())


def discover_asset_folders(
    images_dir: Path, extensions: Iterable[str] | None = None
) -> Dict[str, List[str]]:
    """Map every asset folder under ``images_dir`` to its sorted image files.

    The mapping is built once per run and treated as read-only afterwards.
    Folders without any recognised image are still listed with an empty
    sequence so callers can tell "no folder" from "empty folder".
    """
    if not images_dir.is_dir():
        raise DirectoryMissing(images_dir)
    folders: Dict[str, List[str]] = {}
    for entry in sorted(images_dir.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            folders[entry.name] = [p.name for p in iter_images(entry, extensions)]
    return folders
