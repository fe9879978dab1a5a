"""GBIF taxonomy resolution for catalog records.

The module decides whether a record's scientific name is a species-rank
taxon and, for synonyms, what the accepted name is. It is split in two:

``GbifBackbone``
    Thin adapter over :mod:`pygbif` implementing
    :class:`catalog.protocols.TaxonomyService`.

``TaxonomyResolver``
    Consumes any ``TaxonomyService``. Calls are issued one at a time with a
    fixed minimum gap between them, transient failures are retried with
    exponential backoff, and every distinct name is resolved at most once per
    resolver instance. ``resolve`` returns a tri-state :class:`TaxonomyMatch`
    and leaves policy to the caller. The one error it raises is
    :class:`~catalog.errors.ServiceContractError`, when the client itself
    rejects the call.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests
from pygbif import species

from catalog.errors import ServiceContractError
from catalog.protocols import TaxonomyService

DEFAULT_DELAY_MS = 900
DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_BACKOFF_FACTOR = 1.0

SPECIES_RANK = "SPECIES"
AMBIGUOUS_NOTE = "multiple equal matches"

# Failures worth another attempt; anything else is logged and given up on
TRANSIENT_ERRORS = (requests.RequestException, OSError, ValueError)
# The client was called wrongly; retrying or moving on to the next name
# cannot succeed
CONTRACT_ERRORS = (TypeError,)

logger = logging.getLogger(__name__)


class TaxonomyStatus(str, Enum):
    SPECIES_CONFIRMED = "species_confirmed"
    REJECTED_NON_SPECIES = "rejected_non_species"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class TaxonomyMatch:
    """Outcome of resolving one scientific name.

    ``UNRESOLVED`` means "no answer", never "invalid": callers must keep the
    record unchanged.
    """

    name: str
    status: TaxonomyStatus
    rank: Optional[str] = None
    usage_key: Optional[int] = None
    accepted_name: Optional[str] = None
    accepted_usage_key: Optional[int] = None
    reason: str = ""

    @property
    def is_synonym(self) -> bool:
        return bool(self.accepted_name) and self.accepted_name.lower() != self.name.lower()


def is_binomial(name: str) -> bool:
    return bool(name) and len(name.split()) >= 2


def _rank_of(obj: Any) -> str:
    if not isinstance(obj, dict):
        return ""
    return str(obj.get("rank") or "").upper()


def is_species_match(data: Optional[Dict[str, Any]]) -> bool:
    """Return True if any part of a match response sits at species rank.

    Checked: the match itself, its ``acceptedUsage``, its ``usage``, and the
    last entry of its ``classification`` chain.
    """
    if not isinstance(data, dict):
        return False
    if _rank_of(data) == SPECIES_RANK:
        return True
    if _rank_of(data.get("acceptedUsage")) == SPECIES_RANK:
        return True
    if _rank_of(data.get("usage")) == SPECIES_RANK:
        return True
    chain = data.get("classification")
    if isinstance(chain, list) and chain:
        return _rank_of(chain[-1]) == SPECIES_RANK
    return False


def _match_diagnostics(data: Dict[str, Any]) -> Dict[str, Any]:
    diagnostics = data.get("diagnostics")
    return diagnostics if isinstance(diagnostics, dict) else data


def is_ambiguous(data: Dict[str, Any]) -> bool:
    diagnostics = _match_diagnostics(data)
    match_type = str(diagnostics.get("matchType") or "").upper()
    note = str(diagnostics.get("note") or "").lower()
    return match_type == "NONE" and AMBIGUOUS_NOTE in note


def usage_key_of(data: Dict[str, Any]) -> Optional[int]:
    usage = data.get("usage")
    return data.get("usageKey") or (usage.get("key") if isinstance(usage, dict) else None)


def accepted_usage_key_of(data: Dict[str, Any]) -> Optional[int]:
    accepted = data.get("acceptedUsage")
    return data.get("acceptedUsageKey") or (
        accepted.get("key") if isinstance(accepted, dict) else None
    )


def _display_name(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    return data.get("canonicalName") or data.get("name") or data.get("scientificName")


@dataclass
class GbifBackbone:
    """GBIF backbone taxonomy accessed through pygbif."""

    timeout: float | None = DEFAULT_TIMEOUT

    def match(
        self, name: str, rank: Optional[str] = None, kingdom: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return species.name_backbone(name=name, rank=rank, kingdom=kingdom, timeout=self.timeout)

    def usage(self, key: int) -> Optional[Dict[str, Any]]:
        return species.name_usage(key=key, timeout=self.timeout)


class TaxonomyResolver:
    """Rate-limited, cached species-rank classifier."""

    def __init__(
        self,
        service: Optional[TaxonomyService] = None,
        delay_ms: int = DEFAULT_DELAY_MS,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        rank_hint: Optional[str] = None,
        kingdom: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service = service if service is not None else GbifBackbone()
        self.delay = max(delay_ms, 0) / 1000.0
        self.retry_attempts = max(retry_attempts, 1)
        self.backoff_factor = backoff_factor
        self.rank_hint = rank_hint
        self.kingdom = kingdom
        self._sleep = sleep
        self._clock = clock
        self._last_call: Optional[float] = None
        self._cache: Dict[str, TaxonomyMatch] = {}
        self.calls = 0

    @classmethod
    def from_config(
        cls, cfg: Dict[str, Any], service: Optional[TaxonomyService] = None
    ) -> "TaxonomyResolver":
        tax_cfg = cfg.get("taxonomy", {})
        if service is None:
            service = GbifBackbone(timeout=tax_cfg.get("timeout", DEFAULT_TIMEOUT))
        return cls(
            service=service,
            delay_ms=tax_cfg.get("delay_ms", DEFAULT_DELAY_MS),
            retry_attempts=tax_cfg.get("retry_attempts", DEFAULT_RETRY_ATTEMPTS),
            backoff_factor=tax_cfg.get("backoff_factor", DEFAULT_BACKOFF_FACTOR),
            rank_hint=tax_cfg.get("rank_hint") or None,
            kingdom=tax_cfg.get("kingdom") or None,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _throttle(self) -> None:
        if self._last_call is None:
            return
        wait = self.delay - (self._clock() - self._last_call)
        if wait > 0:
            self._sleep(wait)

    def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any | None:
        """Invoke a service method with throttling and retries, ``None`` on failure."""
        last_exception: Exception | None = None
        for attempt in range(self.retry_attempts):
            self._throttle()
            self.calls += 1
            try:
                return func(*args, **kwargs)
            except CONTRACT_ERRORS as e:
                logger.error("Taxonomy service rejected the call: %s", e)
                name = getattr(func, "__qualname__", repr(func))
                raise ServiceContractError(f"{name}: {e}") from e
            except TRANSIENT_ERRORS as e:
                last_exception = e
                logger.warning("Taxonomy service error on attempt %d: %s", attempt + 1, e)
            except Exception as e:
                logger.error("Taxonomy service failed: %s", e)
                return None
            finally:
                self._last_call = self._clock()

            if attempt < self.retry_attempts - 1:
                self._sleep(self.backoff_factor * (2**attempt))

        logger.error(
            "Taxonomy service failed after %d attempts: %s", self.retry_attempts, last_exception
        )
        return None

    def _accepted_name(self, data: Dict[str, Any], accepted_key: int) -> Optional[str]:
        detail = self._call(self.service.usage, accepted_key)
        return _display_name(detail) or _display_name(data.get("acceptedUsage"))

    def _resolve_uncached(self, name: str) -> TaxonomyMatch:
        data = self._call(self.service.match, name, rank=self.rank_hint, kingdom=self.kingdom)
        if not isinstance(data, dict):
            return TaxonomyMatch(name, TaxonomyStatus.UNRESOLVED, reason="no_response")
        if is_ambiguous(data):
            return TaxonomyMatch(name, TaxonomyStatus.UNRESOLVED, reason="ambiguous_match")

        rank = _rank_of(data) or _rank_of(data.get("usage")) or None
        usage_key = usage_key_of(data)
        if not is_species_match(data):
            return TaxonomyMatch(
                name,
                TaxonomyStatus.REJECTED_NON_SPECIES,
                rank=rank,
                usage_key=usage_key,
                reason=f"rank_{rank.lower()}" if rank else "no_match",
            )

        accepted_key = accepted_usage_key_of(data)
        accepted_name = None
        if accepted_key and accepted_key != usage_key:
            accepted_name = self._accepted_name(data, accepted_key)
        return TaxonomyMatch(
            name,
            TaxonomyStatus.SPECIES_CONFIRMED,
            rank=rank,
            usage_key=usage_key,
            accepted_name=accepted_name,
            accepted_usage_key=accepted_key,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def resolve(self, name: str) -> TaxonomyMatch:
        """Classify ``name`` as species-rank, rejected, or unresolved.

        Only :class:`ServiceContractError` escapes; every other failure is
        reported as ``UNRESOLVED``.
        """
        name = " ".join((name or "").split())
        if not is_binomial(name):
            return TaxonomyMatch(name, TaxonomyStatus.REJECTED_NON_SPECIES, reason="not_binomial")

        cache_key = name.lower()
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Cache hit for '%s'", name)
            return cached

        try:
            result = self._resolve_uncached(name)
        except ServiceContractError:
            raise
        except Exception as e:
            logger.error("Taxonomy resolution error for '%s': %s", name, e)
            result = TaxonomyMatch(name, TaxonomyStatus.UNRESOLVED, reason="resolver_error")

        self._cache[cache_key] = result
        return result

    def cache_size(self) -> int:
        return len(self._cache)


__all__ = [
    "GbifBackbone",
    "TaxonomyMatch",
    "TaxonomyResolver",
    "TaxonomyStatus",
    "is_ambiguous",
    "is_binomial",
    "is_species_match",
    "DEFAULT_DELAY_MS",
    "DEFAULT_TIMEOUT",
    "DEFAULT_RETRY_ATTEMPTS",
    "DEFAULT_BACKOFF_FACTOR",
]
