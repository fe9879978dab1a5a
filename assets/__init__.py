"""
Image asset association.

Maps a record's scientific name to one of the asset folders discovered under
the images directory and rewrites the record's image references from that
folder's contents.

Folder matching, first satisfied rule wins:

1. exact: the slugged scientific name equals the folder name once a leading
   ``<digits>-`` id prefix is dropped
2. partial: the first two slug tokens equal the folder's first two tokens
3. token: the folder name contains the slug's first token

Within a rule the alphabetically first folder wins and the other candidates
are reported so a maintainer can review genus-level collisions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from catalog import PlantRecord, RecordChange
from io_utils.read import normalize_folder_name

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_PREFIX = "images"

_WHITESPACE = re.compile(r"\s+")
_NOT_SLUG = re.compile(r"[^a-z0-9-]")


def slugify(name: str) -> str:
    """Lower-case, hyphen-joined, ``[a-z0-9-]`` only."""
    if not name:
        return ""
    slug = _WHITESPACE.sub("-", name.strip().lower())
    return _NOT_SLUG.sub("", slug)


class MatchRule(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    TOKEN = "token"


class AssetStatus(str, Enum):
    MATCHED = "matched"
    NO_ASSET_FOUND = "no_asset_found"
    EMPTY_FOLDER = "empty_folder"


@dataclass(frozen=True)
class AssetMatch:
    status: AssetStatus
    slug: str = ""
    folder: Optional[str] = None
    rule: Optional[MatchRule] = None
    images: Tuple[str, ...] = ()
    candidates: Tuple[str, ...] = ()

    @property
    def is_tie(self) -> bool:
        return len(self.candidates) > 1

    @property
    def image_url(self) -> str:
        return self.images[0] if self.images else ""


def _first_tokens(value: str, count: int = 2) -> str:
    return "-".join(value.split("-")[:count])


class ImageResolver:
    """Resolve asset folders and image references for catalog records."""

    def __init__(
        self,
        folders: Dict[str, List[str]],
        image_prefix: str = DEFAULT_IMAGE_PREFIX,
        denylist: Iterable[str] = (),
        scrub_dangling: bool = True,
    ):
        """
        Args:
            folders: Folder name -> sorted image file names, as discovered
            image_prefix: Path prefix written in front of ``<folder>/<file>``
            denylist: Known-bad placeholder paths never assigned to a
                record that does not own them
            scrub_dangling: Let :meth:`scrub` drop local references whose
                file is not in the discovered folders
        """
        self.folders = folders
        self.image_prefix = image_prefix.rstrip("/")
        self.denylist = frozenset(denylist)
        self.scrub_dangling = scrub_dangling
        self._normalized = {name: normalize_folder_name(name) for name in sorted(folders)}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], folders: Dict[str, List[str]]) -> "ImageResolver":
        images_cfg = cfg.get("images", {})
        return cls(
            folders,
            image_prefix=cfg.get("catalog", {}).get("image_prefix", DEFAULT_IMAGE_PREFIX),
            denylist=images_cfg.get("placeholder_denylist", []),
            scrub_dangling=images_cfg.get("scrub_dangling", True),
        )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def image_ref(self, folder: str, filename: str) -> str:
        return f"{self.image_prefix}/{folder}/{filename}" if self.image_prefix else f"{folder}/{filename}"

    def _split_ref(self, path: str) -> Optional[Tuple[str, str]]:
        """Return ``(folder, filename)`` for a local reference, else ``None``."""
        prefix = f"{self.image_prefix}/" if self.image_prefix else ""
        if not path.startswith(prefix):
            return None
        parts = path[len(prefix):].split("/")
        if len(parts) != 2:
            return None
        return parts[0], parts[1]

    def owns(self, slug: str, path: str) -> bool:
        """True when ``path`` lives in the folder named after ``slug``."""
        ref = self._split_ref(path)
        return bool(slug) and ref is not None and normalize_folder_name(ref[0]) == slug

    def is_denied(self, path: str, slug: str) -> bool:
        return path in self.denylist and not self.owns(slug, path)

    def is_dangling(self, path: str) -> bool:
        ref = self._split_ref(path)
        if ref is None:
            return False
        folder, filename = ref
        return filename not in self.folders.get(folder, ())

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    def _candidates(self, slug: str) -> Tuple[Optional[MatchRule], List[str]]:
        if not slug:
            return None, []

        exact = [name for name, norm in self._normalized.items() if norm == slug]
        if exact:
            return MatchRule.EXACT, exact

        base = _first_tokens(slug)
        partial = [
            name for name, norm in self._normalized.items() if _first_tokens(norm) == base
        ]
        if partial:
            return MatchRule.PARTIAL, partial

        first = slug.split("-")[0]
        if first:
            token = [name for name, norm in self._normalized.items() if first in norm]
            if token:
                return MatchRule.TOKEN, token
        return None, []

    def resolve(self, scientific_name: str) -> AssetMatch:
        """Find the asset folder and image list for ``scientific_name``."""
        slug = slugify(scientific_name)
        rule, candidates = self._candidates(slug)
        if rule is None:
            return AssetMatch(AssetStatus.NO_ASSET_FOUND, slug=slug)

        folder = candidates[0]
        images = tuple(
            ref
            for ref in (self.image_ref(folder, f) for f in self.folders.get(folder, []))
            if not self.is_denied(ref, slug)
        )
        status = AssetStatus.MATCHED if images else AssetStatus.EMPTY_FOLDER
        return AssetMatch(
            status,
            slug=slug,
            folder=folder,
            rule=rule,
            images=images,
            candidates=tuple(candidates),
        )

    def propose(self, record: PlantRecord) -> Tuple[AssetMatch, Optional[RecordChange]]:
        """Resolve ``record`` and return the image rewrite, if any is needed.

        A match overwrites both ``imageUrl`` and ``images`` so the two never
        disagree. No change is proposed when nothing matched or when the
        record already carries exactly the resolved list.
        """
        match = self.resolve(record.scientific_name)
        if match.status is not AssetStatus.MATCHED:
            return match, None

        new_images = list(match.images)
        if record.image_url == match.image_url and record.images == new_images:
            return match, None
        change = RecordChange(
            record.filename,
            {"imageUrl": match.image_url, "images": new_images},
            stage="images",
            reason=f"{match.rule.value} match on {match.folder}",
        )
        return match, change

    def scrub(self, record: PlantRecord) -> Optional[RecordChange]:
        """Drop placeholder and dangling references from a record without its own assets.

        ``imageUrl`` falls back to the first surviving entry of ``images`` or
        to an empty string.
        """
        slug = slugify(record.scientific_name)

        def rejected(path: Any) -> bool:
            if not isinstance(path, str) or not path:
                return True
            if self.is_denied(path, slug):
                return True
            return self.scrub_dangling and self.is_dangling(path)

        images = [p for p in record.images if not rejected(p)]
        image_url = record.image_url
        if image_url and rejected(image_url):
            image_url = ""
        if not image_url and images:
            image_url = images[0]

        changes: Dict[str, Any] = {}
        if image_url != record.image_url:
            changes["imageUrl"] = image_url
        if "images" in record.data and images != record.images:
            changes["images"] = images
        if not changes:
            return None
        return RecordChange(record.filename, changes, stage="images", reason="removed placeholder images")


__all__ = [
    "AssetMatch",
    "AssetStatus",
    "ImageResolver",
    "MatchRule",
    "slugify",
    "DEFAULT_IMAGE_PREFIX",
]
