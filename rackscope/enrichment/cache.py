# ==============================================
# EnrichmentCache
# ==============================================
#
# PURPOSE:
#   Cache-aside layer over the persistent module catalog. A candidate
#   module (name + manufacturer from a vision or scraping front end)
#   is answered from the catalog when known, and classified + stored
#   when not, so the next lookup for the same module is a hit.
#
# FLOW: lookup_or_enrich(candidate)
#   1. key = normalize_key(name, manufacturer); store.get(key)
#   2. HIT  -> best-effort store.increment_usage(key)
#             (a failure here is logged and ignored)
#             -> source=database, cache_hit=True
#   3. MISS -> classify via ModuleTypeClassifier, build a provisional
#             CatalogEntry (source=enrichment, candidate confidence,
#             usage_count=1), store.put(entry)
#             -> source=enrichment, cache_hit=False
#   4. ANY STORAGE FAILURE in 1 or 3
#             -> source=fallback, cache_hit=False, confidence=0.5,
#                module built from the candidate alone; logged only.
#
# VERIFICATION: verify(key, verifier_id)
#   Appends the verifier once (idempotent) and raises confidence by
#   verification_boost, capped at 1.0. Confidence is never lowered.
#
# IMPORT: upsert(module, source, confidence)
#   Writes an already-identified module (vision, manual, community)
#   with the given source tag. Untyped modules are classified first.
#
# ==============================================

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from rackscope.analysis.classifier import ModuleTypeClassifier
from rackscope.analysis.models import Module, ModuleType
from rackscope.catalog.entries import CatalogEntry, EntrySource, clamp_confidence, normalize_key

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.5
DEFAULT_VERIFICATION_BOOST = 0.05
DEFAULT_IMPORT_CONFIDENCE = 0.8


class EnrichmentSource(Enum):
    DATABASE = "database"
    ENRICHMENT = "enrichment"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Candidate:
    """A raw module sighting from a vision or scraping front end."""
    name: str
    manufacturer: str = "Unknown"
    size_hint: Optional[int] = None  # HP, if the front end could measure it
    description: Optional[str] = None
    confidence: float = 0.8


@dataclass
class EnrichmentOutcome:
    """Result of one lookup. Ephemeral, used for statistics only."""
    module: Module
    source: EnrichmentSource
    confidence: float
    cache_hit: bool
    elapsed_ms: float = 0.0
    entry: Optional[CatalogEntry] = None


@dataclass
class CatalogStats:
    total_modules: int = 0
    by_manufacturer: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)
    by_source: Dict[str, int] = field(default_factory=dict)
    avg_confidence: float = 0.0


class EnrichmentCache:
    """
    Database-first module lookup with write-back on miss.
    """

    def __init__(
        self,
        store,
        classifier: Optional[ModuleTypeClassifier] = None,
        verification_boost: float = DEFAULT_VERIFICATION_BOOST,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """
        Args:
            store: catalog store (JsonCatalogStore, MongoCatalogStore, or
                   anything with get/put/increment_usage/add_verifier)
            classifier: classifier used on cache misses
            verification_boost: confidence added per new verifier
            clock: seconds counter used for elapsed time
        """
        self.store = store
        self.classifier = classifier or ModuleTypeClassifier()
        self.verification_boost = verification_boost
        self._clock = clock

    def lookup_or_enrich(self, candidate: Candidate) -> EnrichmentOutcome:
        start = self._clock()
        manufacturer = candidate.manufacturer or "Unknown"
        key = normalize_key(candidate.name, manufacturer)

        try:
            cached = self.store.get(key)

            if cached:
                self._record_usage(key)
                return EnrichmentOutcome(
                    module=cached.to_module(),
                    entry=cached,
                    source=EnrichmentSource.DATABASE,
                    confidence=cached.confidence,
                    cache_hit=True,
                    elapsed_ms=self._elapsed_ms(start),
                )

            module = Module(
                name=candidate.name,
                manufacturer=manufacturer,
                type=self.classifier.classify(candidate.name, candidate.description),
                hp=candidate.size_hint or 0,
                description=candidate.description,
            )
            entry = CatalogEntry.from_module(
                module,
                source=EntrySource.ENRICHMENT,
                confidence=candidate.confidence,
            )
            saved = self.store.put(entry)
            logger.debug("Catalog miss for %s, stored as %s", key, saved.type.value)

            return EnrichmentOutcome(
                module=saved.to_module(),
                entry=saved,
                source=EnrichmentSource.ENRICHMENT,
                confidence=clamp_confidence(candidate.confidence),
                cache_hit=False,
                elapsed_ms=self._elapsed_ms(start),
            )

        except Exception as e:
            logger.error("Enrichment failed for %s (%s): %s", candidate.name, manufacturer, e, exc_info=True)
            return EnrichmentOutcome(
                module=Module(
                    name=candidate.name,
                    manufacturer=manufacturer,
                    type=ModuleType.OTHER,
                    hp=candidate.size_hint or 0,
                    description=candidate.description,
                ),
                source=EnrichmentSource.FALLBACK,
                confidence=FALLBACK_CONFIDENCE,
                cache_hit=False,
                elapsed_ms=self._elapsed_ms(start),
            )

    def _record_usage(self, key: str) -> bool:
        """Best-effort usage increment. Returns False instead of raising."""
        try:
            return bool(self.store.increment_usage(key))
        except Exception as e:
            logger.warning("⚠ Usage increment failed for %s: %s", key, e)
            return False

    def verify(self, key: str, verifier_id: str) -> Optional[CatalogEntry]:
        """
        Record that `verifier_id` confirmed this entry.

        Returns:
            The updated entry, the unchanged entry if this verifier already
            confirmed it, or None if the key is unknown.
        """
        entry = self.store.get(key)
        if entry is None:
            return None

        if verifier_id in entry.verified_by:
            return entry

        boosted = clamp_confidence(entry.confidence + self.verification_boost)
        updated = self.store.add_verifier(key, verifier_id, max(entry.confidence, boosted))
        if updated:
            logger.info("✓ %s verified by %s (confidence %.2f)", key, verifier_id, updated.confidence)
        return updated

    def upsert(
        self,
        module: Module,
        source: EntrySource = EntrySource.VISION,
        confidence: float = DEFAULT_IMPORT_CONFIDENCE,
    ) -> CatalogEntry:
        """
        Write a module that is already known (vision pass, manual entry,
        community list) straight into the catalog. Same merge rules as
        a miss; storage errors propagate.
        """
        if module.type == ModuleType.OTHER:
            module = self.classifier.classify_module(module)
        return self.store.put(CatalogEntry.from_module(module, source=source, confidence=confidence))

    def lookup(self, name: str, manufacturer: Optional[str] = None) -> Optional[CatalogEntry]:
        """Read-only catalog lookup; does not count as usage."""
        return self.store.get(normalize_key(name, manufacturer))

    def search(self, query: str, manufacturer: Optional[str] = None) -> List[CatalogEntry]:
        """Case-insensitive substring search on module names."""
        needle = query.lower()
        wanted_manufacturer = manufacturer.lower() if manufacturer else None
        return [
            entry for entry in self.store.list_entries()
            if needle in entry.name.lower()
            and (wanted_manufacturer is None or entry.manufacturer.lower() == wanted_manufacturer)
        ]

    def popular(self, limit: int = 50) -> List[CatalogEntry]:
        entries = sorted(self.store.list_entries(), key=lambda entry: entry.usage_count, reverse=True)
        return entries[:limit]

    def catalog_stats(self) -> CatalogStats:
        entries = self.store.list_entries()
        if not entries:
            return CatalogStats()

        return CatalogStats(
            total_modules=len(entries),
            by_manufacturer=dict(Counter(entry.manufacturer for entry in entries)),
            by_type=dict(Counter(entry.type.value for entry in entries)),
            by_source=dict(Counter(entry.source.value for entry in entries)),
            avg_confidence=sum(entry.confidence for entry in entries) / len(entries),
        )

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000.0
