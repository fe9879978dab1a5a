"""
Tests for the JSON catalog store

Tests cover:
- BOM-tolerant reads and malformed record handling
- Atomic, stable writes
- Committing change and removal proposals
- Index regeneration
- Dry-run mode
"""

import json

import pytest

from catalog import CatalogIndex, PlantRecord, RecordChange, RecordRemoval
from catalog.errors import DirectoryMissing, MalformedRecord
from io_utils.read import discover_asset_folders, normalize_folder_name, read_json
from io_utils.store import CatalogStore
from io_utils.write import dump_json, write_json_atomic

from conftest import make_images, write_record


@pytest.fixture
def store(plants_dir):
    write_record(plants_dir, "b-plant.json", {"id": 2, "name": "B", "scientificName": "Begonia rex"})
    write_record(plants_dir, "a-plant.json", {"id": 1, "name": "A", "scientificName": "Aglaonema pictum"})
    return CatalogStore(plants_dir)


class TestReadJson:
    """Tests for record decoding."""

    def test_bom_is_ignored(self, plants_dir):
        """A leading byte-order mark does not break parsing."""
        path = write_record(plants_dir, "bom.json", {"id": 7, "name": "Moss"}, bom=True)

        assert read_json(path) == {"id": 7, "name": "Moss"}

    def test_invalid_json_raises_malformed(self, plants_dir):
        """Unparsable text raises MalformedRecord naming the file."""
        path = plants_dir / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(MalformedRecord) as excinfo:
            read_json(path)

        assert excinfo.value.path == path
        assert excinfo.value.code == "malformed_record"
        assert "broken.json" in str(excinfo.value)

    def test_non_object_raises_malformed(self, plants_dir):
        """A JSON array is not a record."""
        path = plants_dir / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(MalformedRecord):
            read_json(path)


class TestWriteJson:
    """Tests for stable, atomic writes."""

    def test_dump_format(self):
        """Two-space indent, unicode kept, trailing newline."""
        text = dump_json({"name": "Fittonia", "note": "café"})

        assert text == '{\n  "name": "Fittonia",\n  "note": "café"\n}\n'

    def test_atomic_write_leaves_no_temp_file(self, tmp_path):
        """The temporary file is renamed into place."""
        target = tmp_path / "plant.json"
        write_json_atomic(target, {"id": 1})

        assert json.loads(target.read_text(encoding="utf-8")) == {"id": 1}
        assert not (tmp_path / "plant.json.tmp").exists()

    def test_no_bom_written(self, tmp_path):
        """Writers never emit a byte-order mark."""
        target = tmp_path / "plant.json"
        write_json_atomic(target, {"id": 1})

        assert not target.read_bytes().startswith(b"\xef\xbb\xbf")


class TestCatalogStore:
    """Tests for CatalogStore loading and committing."""

    def test_load_all_sorted(self, store):
        """Records load in filename order."""
        records = store.load_all()

        assert [r.filename for r in records] == ["a-plant.json", "b-plant.json"]

    def test_index_file_is_not_a_record(self, store, plants_dir):
        """index.json is skipped when loading records."""
        (plants_dir / "index.json").write_text('{"count": 0, "plants": []}', encoding="utf-8")

        assert store.record_files() == ["a-plant.json", "b-plant.json"]

    def test_malformed_records_skipped(self, store, plants_dir):
        """A broken file is recorded and the rest still load."""
        (plants_dir / "c-broken.json").write_text("{", encoding="utf-8")

        records = store.load_all()

        assert len(records) == 2
        assert len(store.malformed) == 1
        assert store.malformed[0].path.name == "c-broken.json"

    def test_missing_directory(self, tmp_path):
        """A missing catalog directory raises DirectoryMissing."""
        store = CatalogStore(tmp_path / "nope")

        with pytest.raises(DirectoryMissing) as excinfo:
            store.load_all()

        assert excinfo.value.code == "directory_missing"

    def test_commit_change_preserves_unknown_fields(self, plants_dir):
        """Only the changed field is rewritten; other keys survive in order."""
        write_record(
            plants_dir,
            "fern.json",
            {"id": 3, "name": "Fern", "scientificName": "Nephrolepis exaltata", "humidity": "high"},
        )
        store = CatalogStore(plants_dir)
        record = store.load("fern.json")

        updated = store.commit(RecordChange("fern.json", {"name": "Boston Fern"}, "test"), record)

        on_disk = read_json(plants_dir / "fern.json")
        assert updated.name == "Boston Fern"
        assert on_disk["humidity"] == "high"
        assert list(on_disk) == ["id", "name", "scientificName", "humidity"]
        # The original snapshot is untouched
        assert record.name == "Fern"

    def test_commit_change_rereads_when_no_snapshot(self, store, plants_dir):
        """Without a snapshot the record is read from disk first."""
        updated = store.commit(RecordChange("a-plant.json", {"id": 10}, "test"))

        assert updated.id == 10
        assert updated.name == "A"

    def test_commit_removal(self, store, plants_dir):
        """A removal deletes the file and returns None."""
        result = store.commit(RecordRemoval("a-plant.json", "test"))

        assert result is None
        assert not (plants_dir / "a-plant.json").exists()

    def test_delete_missing_file(self, store):
        """Deleting a file that is already gone reports False."""
        assert store.delete("ghost.json") is False


class TestIndex:
    """Tests for index regeneration."""

    def test_rebuild_matches_files(self, store, plants_dir):
        """The index lists exactly the record files on disk."""
        index = store.rebuild_index()

        data = read_json(plants_dir / "index.json")
        assert index.count == 2
        assert data["count"] == 2
        assert data["plants"] == ["a-plant.json", "b-plant.json"]
        assert data["lastUpdated"].endswith("Z")

    def test_rebuild_after_removal(self, store, plants_dir):
        """Removed files drop out of the regenerated index."""
        store.commit(RecordRemoval("b-plant.json", "test"))
        store.rebuild_index()

        assert read_json(plants_dir / "index.json")["plants"] == ["a-plant.json"]

    def test_timestamp_disabled(self, plants_dir):
        """lastUpdated is omitted when timestamps are off."""
        write_record(plants_dir, "x.json", {"id": 1})
        store = CatalogStore(plants_dir, index_timestamp=False)
        store.rebuild_index()

        assert read_json(plants_dir / "index.json") == {"count": 1, "plants": ["x.json"]}

    def test_index_sorted(self):
        """CatalogIndex sorts filenames."""
        index = CatalogIndex.from_filenames(["z.json", "a.json"])

        assert index.plants == ["a.json", "z.json"]
        assert index.to_dict() == {"count": 2, "plants": ["a.json", "z.json"]}


class TestDryRun:
    """Tests for dry-run mode."""

    def test_no_writes(self, plants_dir):
        """Changes, removals and the index are not written."""
        write_record(plants_dir, "a.json", {"id": 1, "name": "A"})
        before = (plants_dir / "a.json").read_bytes()
        store = CatalogStore(plants_dir, dry_run=True)
        record = store.load("a.json")

        updated = store.commit(RecordChange("a.json", {"name": "Changed"}, "test"), record)
        store.commit(RecordRemoval("a.json", "test"))
        index = store.rebuild_index()

        assert updated.name == "Changed"
        assert (plants_dir / "a.json").read_bytes() == before
        assert not (plants_dir / "index.json").exists()
        assert index.count == 1


class TestAssetFolders:
    """Tests for asset folder discovery."""

    def test_discover(self, images_dir):
        """Folders map to sorted image files; other files are ignored."""
        make_images(images_dir, "ficus-pumila", ["b.jpg", "a.png", "notes.txt"])
        make_images(images_dir, "empty-folder", [])

        folders = discover_asset_folders(images_dir)

        assert folders == {"empty-folder": [], "ficus-pumila": ["a.png", "b.jpg"]}

    def test_missing_images_dir(self, tmp_path):
        """A missing images directory raises DirectoryMissing."""
        with pytest.raises(DirectoryMissing):
            discover_asset_folders(tmp_path / "missing")

    def test_normalize_folder_name(self):
        """A numeric id prefix is dropped and the name lower-cased."""
        assert normalize_folder_name("1058-Elatostema-Repens") == "elatostema-repens"
        assert normalize_folder_name("peperomia-prostrata") == "peperomia-prostrata"


def test_plant_record_missing_fields():
    """Required fields that are absent or empty are reported."""
    record = PlantRecord("x.json", {"id": 1, "name": "", "description": "d"})

    assert record.missing_fields() == ["name", "scientificName"]
