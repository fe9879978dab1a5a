"""Protocol definitions for external taxonomy services.

A taxonomy service answers two questions: what does a scientific name match
(``match``) and what is stored under a usage key (``usage``). The GBIF
backbone is the production implementation; tests and offline runs can swap
in anything with the same two methods.

Implementations may raise on transport or decoding failure. The resolver in
:mod:`qc.gbif` is responsible for turning those failures into an
``UNRESOLVED`` result.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class TaxonomyService(Protocol):
    """Name-matching capability consumed by the taxonomy resolver."""

    def match(
        self, name: str, rank: Optional[str] = None, kingdom: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the raw match object for ``name``."""
        ...

    def usage(self, key: int) -> Optional[Dict[str, Any]]:
        """Return the raw name usage stored under ``key``."""
        ...


__all__ = ["TaxonomyService"]
