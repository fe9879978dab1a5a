"""Shared fixtures for catalog tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


def write_record(plants_dir: Path, filename: str, data: Dict[str, Any], bom: bool = False) -> Path:
    plants_dir.mkdir(parents=True, exist_ok=True)
    path = plants_dir / filename
    text = json.dumps(data, indent=2) + "\n"
    path.write_text(("\ufeff" if bom else "") + text, encoding="utf-8")
    return path


def make_images(images_dir: Path, folder: str, files: List[str]) -> Path:
    folder_path = images_dir / folder
    folder_path.mkdir(parents=True, exist_ok=True)
    for name in files:
        (folder_path / name).write_bytes(b"\xff\xd8\xff")
    return folder_path


class FakeTaxonomyService:
    """In-memory stand-in for the GBIF backbone.

    ``matches`` maps a name to the raw match dict (or an exception instance
    to raise). ``usages`` maps a usage key to the raw detail dict.
    """

    def __init__(
        self,
        matches: Optional[Dict[str, Any]] = None,
        usages: Optional[Dict[int, Any]] = None,
    ):
        self.matches = matches or {}
        self.usages = usages or {}
        self.match_calls: List[str] = []
        self.usage_calls: List[int] = []

    def match(self, name, rank=None, kingdom=None):
        self.match_calls.append(name)
        result = self.matches.get(name)
        if isinstance(result, Exception):
            raise result
        return result

    def usage(self, key):
        self.usage_calls.append(key)
        result = self.usages.get(key)
        if isinstance(result, Exception):
            raise result
        return result


SPECIES = {"usageKey": 1, "rank": "SPECIES", "matchType": "EXACT", "status": "ACCEPTED"}
GENUS = {"usageKey": 2, "rank": "GENUS", "matchType": "HIGHERRANK"}


@pytest.fixture
def plants_dir(tmp_path):
    path = tmp_path / "plants"
    path.mkdir()
    return path


@pytest.fixture
def images_dir(tmp_path):
    path = tmp_path / "images"
    path.mkdir()
    return path


@pytest.fixture
def fake_service():
    return FakeTaxonomyService()
