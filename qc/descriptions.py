"""Description cleanup and quality flags.

``clean_description``
    Strip citation and source artifacts. The steps run in a fixed order and
    each one works on the previous step's output:

    1. ``Source: <url>`` fragments
    2. any remaining bare URL
    3. any remaining ``Source: ...`` text, through the end of the field
    4. surrounding whitespace and the trailing run of periods

    Cleaning already-clean text is a no-op.

``description_flags``
    Advisory diagnostics. Flags never change the text; their thresholds are
    policy values carried by :class:`DescriptionPolicy`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List

SOURCE_URL = re.compile(r"\s*Source:\s*https?://\S+", re.IGNORECASE)
BARE_URL = re.compile(r"\s*https?://\S+", re.IGNORECASE)
SOURCE_TAIL = re.compile(r"\s*Source:.*\Z", re.IGNORECASE | re.DOTALL)
# Any trailing mix of periods and whitespace, e.g. "text. ."
TRAILING_PERIODS = re.compile(r"[\s.]+\Z")

CITATION_MARKER = re.compile(r"\[[^\[\]]*\d[^\[\]]*\]")
# "Sumatra.Indonesia": a sentence end glued to the next capitalised word
JOINED_SENTENCE = re.compile(r"[a-z]{2}\.[A-Z][a-z]")
# "Native to." / "found in. The": a sentence cut off after a function word
DANGLING_WORD = re.compile(r"\b(?:to|in|the|of|and|with|from)\.(?=\s|\Z)")
WATER = re.compile(r"\bwater", re.IGNORECASE)
TEMPERATURE = re.compile(r"\btemperature", re.IGNORECASE)

VERY_SHORT = "very_short"
SHORT = "short"
HAS_CITATION = "has_citation"
POSSIBLY_TRUNCATED = "possibly_truncated"
EMBEDDED_CARE = "possible_embedded_care_instructions"
EMPTY = "empty"


@dataclass(frozen=True)
class DescriptionPolicy:
    very_short: int = 80
    short: int = 100
    care_span: int = 200

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "DescriptionPolicy":
        desc_cfg = cfg.get("descriptions", {})
        return cls(
            very_short=desc_cfg.get("very_short", 80),
            short=desc_cfg.get("short", 100),
            care_span=desc_cfg.get("care_span", 200),
        )


def clean_description(text: str) -> str:
    if not text or not isinstance(text, str):
        return text
    cleaned = SOURCE_URL.sub("", text)
    cleaned = BARE_URL.sub("", cleaned)
    cleaned = SOURCE_TAIL.sub("", cleaned)
    cleaned = TRAILING_PERIODS.sub("", cleaned)
    return cleaned.strip()


def looks_truncated(text: str) -> bool:
    return bool(JOINED_SENTENCE.search(text) or DANGLING_WORD.search(text))


def has_embedded_care(text: str, span: int) -> bool:
    """True when a "water" and a "temperature" token sit within ``span`` characters."""
    waters = [m.start() for m in WATER.finditer(text)]
    if not waters:
        return False
    temps = [m.start() for m in TEMPERATURE.finditer(text)]
    return any(abs(w - t) <= span for w in waters for t in temps)


def description_flags(text: str, policy: DescriptionPolicy | None = None) -> List[str]:
    policy = policy or DescriptionPolicy()
    if not text:
        return [EMPTY]

    flags: List[str] = []
    length = len(text)
    if length < policy.very_short:
        flags.append(VERY_SHORT)
    if length < policy.short:
        flags.append(SHORT)
    if CITATION_MARKER.search(text):
        flags.append(HAS_CITATION)
    if looks_truncated(text):
        flags.append(POSSIBLY_TRUNCATED)
    if has_embedded_care(text, policy.care_span):
        flags.append(EMBEDDED_CARE)
    return flags


__all__ = [
    "DescriptionPolicy",
    "clean_description",
    "description_flags",
    "has_embedded_care",
    "looks_truncated",
    "VERY_SHORT",
    "SHORT",
    "HAS_CITATION",
    "POSSIBLY_TRUNCATED",
    "EMBEDDED_CARE",
    "EMPTY",
]
