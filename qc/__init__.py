"""Quality control checks for catalog records.

The helpers here inspect records and either report problems or propose
changes; none of them writes to the catalog.

``detect_duplicates``
    Group records colliding on id, scientific name, or display name.
    Groups with a single member are not reported.

``TaxonomyResolver``
    Confirm that a scientific name is a species-rank taxon using the GBIF
    backbone, surfacing accepted names for synonyms.

``clean_description`` / ``description_flags``
    Strip citation artifacts from description text and flag descriptions
    that are short, truncated, cited, or mixed with care instructions.

``normalize_common_names``
    Split, de-duplicate and filter the ``commonNames`` list.
"""

from __future__ import annotations

from .descriptions import (
    DescriptionPolicy,
    clean_description,
    description_flags,
)
from .duplicates import (
    DuplicateGroup,
    DuplicateReport,
    detect_duplicates,
    propose_id_reassignments,
)
from .gbif import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_DELAY_MS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_TIMEOUT,
    GbifBackbone,
    TaxonomyMatch,
    TaxonomyResolver,
    TaxonomyStatus,
    is_species_match,
)
from .names import needs_common_names, normalize_common_names

__all__ = [
    "detect_duplicates",
    "propose_id_reassignments",
    "DuplicateGroup",
    "DuplicateReport",
    # Descriptions
    "DescriptionPolicy",
    "clean_description",
    "description_flags",
    # Common names
    "needs_common_names",
    "normalize_common_names",
    # GBIF integration
    "GbifBackbone",
    "TaxonomyMatch",
    "TaxonomyResolver",
    "TaxonomyStatus",
    "is_species_match",
    "DEFAULT_DELAY_MS",
    "DEFAULT_TIMEOUT",
    "DEFAULT_RETRY_ATTEMPTS",
    "DEFAULT_BACKOFF_FACTOR",
]
