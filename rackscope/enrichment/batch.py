# ==============================================
# BatchEnrichmentCoordinator
# ==============================================
#
# PURPOSE:
#   Fan a list of candidates out to EnrichmentCache without hammering
#   the catalog: fixed-size chunks, each chunk looked up concurrently,
#   a fixed pause between chunks (never after the last one). That
#   pause is the only backpressure in the subsystem.
#
# CLASS: BatchEnrichmentCoordinator
# ---------------------------------
#   - enrich_batch(candidates) -> list[EnrichmentOutcome]
#       Outcomes come back in input order. Empty input -> [] with no
#       catalog access at all.
#   - upsert_many(modules, source) -> list[CatalogEntry]
#       Bulk import of already-identified modules (vision, manual,
#       community), same chunks and pause as enrich_batch.
#   - stats(outcomes) -> EnrichmentStats
#
# DATA CLASSES:
# -------------
# - EnrichmentCounters   running hit/miss totals, owned by whoever builds
#                        the coordinator and passed in; reset() clears.
# - EnrichmentStats      hit rate (percent), average latency, cost avoided.
#                        hit_rate / avg_latency_ms are NaN for empty input;
#                        use format() or math.isnan() before printing.
#
# ==============================================

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Any, Iterable, List, Optional

from rackscope.analysis.models import Module
from rackscope.catalog.entries import CatalogEntry, EntrySource
from .cache import DEFAULT_IMPORT_CONFIDENCE, Candidate, EnrichmentCache, EnrichmentOutcome

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 5
DEFAULT_CHUNK_DELAY_SECONDS = 0.2
DEFAULT_COST_PER_MISS = 0.10  # dollars per uncached lookup (search + parsing)


@dataclass
class EnrichmentCounters:
    """Running cache totals across batches."""
    cache_hits: int = 0
    cache_misses: int = 0

    @property
    def total(self) -> int:
        return self.cache_hits + self.cache_misses

    def record(self, outcomes: Iterable[EnrichmentOutcome]) -> None:
        for outcome in outcomes:
            if outcome.cache_hit:
                self.cache_hits += 1
            else:
                self.cache_misses += 1

    def reset(self) -> None:
        self.cache_hits = 0
        self.cache_misses = 0


@dataclass
class EnrichmentStats:
    total: int
    cache_hits: int
    cache_misses: int
    hit_rate: float         # percent, NaN when total == 0
    avg_latency_ms: float   # NaN when total == 0
    cost_avoided: float     # dollars

    def format(self) -> str:
        hit_rate = "n/a" if math.isnan(self.hit_rate) else f"{self.hit_rate:.1f}%"
        latency = "n/a" if math.isnan(self.avg_latency_ms) else f"{self.avg_latency_ms:.1f}ms"
        return (f"{self.total} modules, {self.cache_hits} hits / {self.cache_misses} misses "
                f"(hit rate {hit_rate}, avg {latency}, saved ${self.cost_avoided:.2f})")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": self.hit_rate,
            "avg_latency_ms": self.avg_latency_ms,
            "cost_avoided": self.cost_avoided,
        }


def calculate_stats(
    outcomes: List[EnrichmentOutcome],
    cost_per_miss: float = DEFAULT_COST_PER_MISS,
) -> EnrichmentStats:
    total = len(outcomes)
    cache_hits = sum(1 for outcome in outcomes if outcome.cache_hit)
    cache_misses = total - cache_hits
    total_time = sum(outcome.elapsed_ms for outcome in outcomes)

    return EnrichmentStats(
        total=total,
        cache_hits=cache_hits,
        cache_misses=cache_misses,
        hit_rate=(cache_hits / total) * 100 if total else math.nan,
        avg_latency_ms=total_time / total if total else math.nan,
        cost_avoided=cache_hits * cost_per_miss,
    )


class BatchEnrichmentCoordinator:
    def __init__(
        self,
        cache: EnrichmentCache,
        counters: Optional[EnrichmentCounters] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS,
        cost_per_miss: float = DEFAULT_COST_PER_MISS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.cache = cache
        self.counters = counters if counters is not None else EnrichmentCounters()
        self.chunk_size = chunk_size
        self.chunk_delay_seconds = chunk_delay_seconds
        self.cost_per_miss = cost_per_miss
        self._sleep = sleep

    def enrich_one(self, candidate: Candidate) -> EnrichmentOutcome:
        outcome = self.cache.lookup_or_enrich(candidate)
        self.counters.record([outcome])
        return outcome

    def enrich_batch(self, candidates: Iterable[Candidate]) -> List[EnrichmentOutcome]:
        candidates = list(candidates)
        if not candidates:
            return []

        start = time.perf_counter()
        logger.info("Starting batch enrichment of %d modules", len(candidates))

        results = self._run_chunked(self.cache.lookup_or_enrich, candidates, self.counters.record)

        stats = self.stats(results)
        logger.info("✓ Batch enrichment complete in %.2fs: %s",
                    time.perf_counter() - start, stats.format())
        return results

    def stats(self, outcomes: List[EnrichmentOutcome]) -> EnrichmentStats:
        return calculate_stats(outcomes, self.cost_per_miss)

    def upsert_many(
        self,
        modules: Iterable[Module],
        source: EntrySource = EntrySource.VISION,
        confidence: float = DEFAULT_IMPORT_CONFIDENCE,
    ) -> List[CatalogEntry]:
        """
        Bulk-write already-identified modules with the same chunking and
        pause as enrich_batch. The first storage error aborts the import.
        """
        modules = list(modules)
        if not modules:
            return []

        logger.info("Importing %d modules into the catalog (source: %s)", len(modules), source.value)
        entries = self._run_chunked(
            lambda module: self.cache.upsert(module, source=source, confidence=confidence),
            modules,
        )
        logger.info("✓ Imported %d modules", len(entries))
        return entries

    def _run_chunked(self, work: Callable[[Any], Any], items: List[Any],
                     on_chunk: Optional[Callable[[List[Any]], None]] = None) -> List[Any]:
        chunks = [items[i:i + self.chunk_size] for i in range(0, len(items), self.chunk_size)]
        results: List[Any] = []

        with ThreadPoolExecutor(max_workers=self.chunk_size) as executor:
            for index, chunk in enumerate(chunks):
                if index > 0:
                    # Rate limit between chunks
                    self._sleep(self.chunk_delay_seconds)
                chunk_results = list(executor.map(work, chunk))
                if on_chunk:
                    on_chunk(chunk_results)
                results.extend(chunk_results)

        return results
