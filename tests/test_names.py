"""
Tests for common-name normalization
"""

from catalog import PlantRecord
from qc.names import needs_common_names, normalize_common_names


def test_split_on_or():
    """'Nerve Plant or Mosaic Plant' becomes two entries."""
    record = PlantRecord(
        "fittonia.json",
        {"name": "Fittonia", "scientificName": "Fittonia albivenis", "commonNames": ["Nerve Plant or Mosaic Plant"]},
    )

    assert normalize_common_names(record) == ["Nerve Plant", "Mosaic Plant"]


def test_dedupe_case_insensitive_first_spelling_wins():
    record = PlantRecord("x.json", {"name": "X", "commonNames": ["Baby Tears", "baby tears", " ", 3]})

    assert normalize_common_names(record) == ["Baby Tears"]


def test_drop_display_and_scientific_name():
    record = PlantRecord(
        "x.json",
        {
            "name": "Pilea",
            "scientificName": "Pilea glauca",
            "commonNames": ["pilea", "Pilea Glauca", "Silver Sparkle"],
        },
    )

    assert normalize_common_names(record) == ["Silver Sparkle"]


def test_missing_list():
    assert normalize_common_names(PlantRecord("x.json", {"name": "X"})) == []


class TestNeedsCommonNames:
    """Tests for the missing-common-names report."""

    def test_empty(self):
        assert needs_common_names(PlantRecord("x.json", {"name": "X", "commonNames": []}))

    def test_only_display_name(self):
        assert needs_common_names(PlantRecord("x.json", {"name": "Moss", "commonNames": ["Moss"]}))

    def test_has_names(self):
        record = PlantRecord("x.json", {"name": "Moss", "commonNames": ["Cushion Moss"]})

        assert not needs_common_names(record)


def test_string_common_names_treated_as_one_entry():
    record = PlantRecord(
        "fig.json",
        {"name": "Creeping Fig", "scientificName": "Ficus pumila", "commonNames": "Creeping Fig or Climbing Fig"},
    )

    assert record.common_names == ["Creeping Fig or Climbing Fig"]
    assert normalize_common_names(record) == ["Climbing Fig"]
