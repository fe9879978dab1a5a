"""
Tests for description cleanup and quality flags

Tests cover:
- Source and URL stripping
- Idempotence
- Length, citation, truncation and care-instruction flags
"""

import pytest

from qc.descriptions import (
    EMBEDDED_CARE,
    EMPTY,
    HAS_CITATION,
    POSSIBLY_TRUNCATED,
    SHORT,
    VERY_SHORT,
    DescriptionPolicy,
    clean_description,
    description_flags,
    has_embedded_care,
    looks_truncated,
)

LONG_TEXT = (
    "A compact creeping plant with small rounded leaves that forms dense mats on moist "
    "bark and stone in shaded forest understory."
)


class TestCleanDescription:
    """Tests for clean_description."""

    def test_source_url_removed(self):
        text = "Small creeping herb. Source: https://example.org/plants/123"

        assert clean_description(text) == "Small creeping herb"

    def test_bare_url_removed(self):
        text = "Grows on wet rocks https://example.org/x and stream banks."

        assert clean_description(text) == "Grows on wet rocks and stream banks"

    def test_source_tail_removed(self):
        """Everything from a leftover 'Source:' marker to the end goes."""
        text = "Epiphytic fern from Borneo. Source: Wikipedia, retrieved 2021"

        assert clean_description(text) == "Epiphytic fern from Borneo"

    def test_trailing_periods_and_whitespace(self):
        assert clean_description("Likes humidity. .  ") == "Likes humidity"

    @pytest.mark.parametrize(
        "text",
        [
            "Small creeping herb. Source: https://example.org/plants/123",
            "Text with a link https://a.example/b. More text...",
            "Already clean",
            "Ends with Source: notes. ",
        ],
    )
    def test_idempotent(self, text):
        """Cleaning twice gives the same result as cleaning once."""
        once = clean_description(text)

        assert clean_description(once) == once

    def test_empty_passthrough(self):
        assert clean_description("") == ""


class TestFlags:
    """Tests for description_flags."""

    def test_empty(self):
        assert description_flags("") == [EMPTY]

    def test_very_short_is_also_short(self):
        flags = description_flags("Tiny moss.")

        assert VERY_SHORT in flags
        assert SHORT in flags

    def test_short_only(self):
        text = "x" * 90

        flags = description_flags(text)

        assert SHORT in flags
        assert VERY_SHORT not in flags

    def test_long_text_clean(self):
        assert description_flags(LONG_TEXT) == []

    def test_citation_marker(self):
        assert HAS_CITATION in description_flags(LONG_TEXT + " [12]")
        assert HAS_CITATION in description_flags(LONG_TEXT + " [citation 3]")
        assert HAS_CITATION not in description_flags(LONG_TEXT + " [note]")

    def test_joined_sentence_truncation(self):
        """'Sumatra.Indonesia' looks like a lost space after a cut."""
        assert looks_truncated("Found only in Sumatra.Indonesia has many forms")
        assert not looks_truncated("Found only in Sumatra, Indonesia.")

    def test_dangling_word_truncation(self):
        assert looks_truncated("This plant is native to. It grows fast")
        assert POSSIBLY_TRUNCATED in description_flags(LONG_TEXT + " Endemic to.")

    def test_abbreviation_not_truncated(self):
        assert not looks_truncated("Collected by J. Smith in 1990.")

    def test_embedded_care(self):
        text = LONG_TEXT + " Water twice a week and keep the temperature above 18C."

        assert has_embedded_care(text, 200)
        assert EMBEDDED_CARE in description_flags(text)

    def test_care_terms_far_apart(self):
        text = "Water sparingly. " + ("filler " * 60) + "Temperature tolerant."

        assert not has_embedded_care(text, 200)

    def test_policy_thresholds(self):
        policy = DescriptionPolicy(very_short=5, short=10, care_span=200)

        assert description_flags("abcdefg", policy) == [SHORT]

    def test_policy_from_config(self):
        policy = DescriptionPolicy.from_config({"descriptions": {"short": 120}})

        assert policy == DescriptionPolicy(very_short=80, short=120, care_span=200)
