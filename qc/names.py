from __future__ import annotations

import re
from typing import List

from catalog import PlantRecord

_OR_SPLIT = re.compile(r"\s+or\s+", re.IGNORECASE)


def normalize_common_names(record: PlantRecord) -> List[str]:
    """Return the cleaned ``commonNames`` list for ``record``.

    Entries joined with " or " are split, blanks and non-strings dropped,
    case-insensitive repeats removed (first spelling wins), and entries equal
    to the display name or the scientific name filtered out.
    """
    seen = set()
    names: List[str] = []
    for entry in record.common_names:
        if not isinstance(entry, str):
            continue
        for part in _OR_SPLIT.split(entry):
            part = part.strip()
            if part and part.lower() not in seen:
                seen.add(part.lower())
                names.append(part)

    excluded = {record.name.strip().lower(), record.scientific_name.lower()}
    return [n for n in names if n.lower() not in excluded]


def needs_common_names(record: PlantRecord) -> bool:
    """True when ``commonNames`` is empty or only repeats the display name."""
    names = record.common_names
    if not names:
        return True
    return len(names) == 1 and names[0] == record.name


__all__ = ["normalize_common_names", "needs_common_names"]
