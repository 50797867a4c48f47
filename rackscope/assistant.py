# ==============================================
# RackAssistant (facade)
# ==============================================
#
# PURPOSE:
#   The one class callers (CLI, an API layer, notebooks) talk to.
#   It builds every topic from AppConfig and exposes their operations
#   under a single object.
#
# HOW IT CONNECTS THE 4 TOPICS:
#
#   ┌──────────────────────────────────────────────────────────┐
#   │                      RackAssistant                       │
#   │                                                          │
#   │  TOPIC 1: ANALYSIS                                       │
#   │    ModuleTypeClassifier → CapabilityAnalyzer →           │
#   │    TechniqueInferenceEngine → summarize()                │
#   │                                                          │
#   │  TOPIC 2: CATALOG                                        │
#   │    open_store(config) → JsonCatalogStore | Mongo...      │
#   │                 │                                        │
#   │        ┌────────┴─────────┐                              │
#   │        ▼                  ▼                              │
#   │  TOPIC 3: ENRICHMENT   TOPIC 4: RACKS                    │
#   │    EnrichmentCache       RackSelector                    │
#   │    BatchEnrichment-      ModularGridScraper              │
#   │    Coordinator                                           │
#   └──────────────────────────────────────────────────────────┘
#
# PUBLIC METHODS:
# ---------------
#   - analyze_capabilities(modules) -> CapabilitySummary
#   - analyze(rack)                 -> AnalysisReport
#   - summarize(rack, report)       -> str
#   - enrich_one(candidate)         -> EnrichmentOutcome
#   - enrich_batch(candidates)      -> list[EnrichmentOutcome]
#   - stats(outcomes)               -> EnrichmentStats
#   - random_rack()                 -> CachedRack
#   - seed_cache()                  -> SeedReport
#   - import_modules(modules, src)  -> list[CatalogEntry]
#   - verify_module(key, user)      -> CatalogEntry | None
#   - catalog_stats() / rack_cache_statistics() / cleanup_stale_racks()
#   - close(), context manager
#
# Collaborators (store, scraper, rng, sleep) may be injected; anything
# not injected is built from config.
# ==============================================

import logging
import random
import time
from typing import Callable, Iterable, List, Optional, Sequence, Union

from rackscope.analysis import (
    AnalysisReport,
    AnalysisThresholds,
    CapabilityAnalyzer,
    CapabilitySummary,
    Module,
    ModuleTypeClassifier,
    RawRack,
    TechniqueInferenceEngine,
    summarize,
)
from rackscope.catalog import CatalogEntry, CachedRack, EntrySource, open_store
from rackscope.config import AppConfig, get_config
from rackscope.enrichment import (
    BatchEnrichmentCoordinator,
    Candidate,
    CatalogStats,
    EnrichmentCache,
    EnrichmentCounters,
    EnrichmentOutcome,
    EnrichmentStats,
)
from rackscope.racks import (
    ModularGridScraper,
    RackCacheStatistics,
    RackSelector,
    SeedReport,
    SelectorState,
)

logger = logging.getLogger(__name__)


class RackAssistant:
    """
    Wires analysis, catalog, enrichment and rack selection together.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store=None,
        scraper=None,
        thresholds: Optional[AnalysisThresholds] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: application configuration. If None, loads from environment.
            store: catalog store; opened from config.catalog when omitted
            scraper: scrape collaborator; a ModularGridScraper when omitted
            thresholds: analysis thresholds override
            rng: random source for rack selection
            sleep: sleep function for batch and scrape rate limiting
        """
        self._config = config or get_config()

        # TOPIC 1: Analysis
        self._classifier = ModuleTypeClassifier()
        self._engine = TechniqueInferenceEngine(thresholds)
        self._capability_analyzer = CapabilityAnalyzer(self._engine.thresholds)

        # TOPIC 2: Catalog
        self._owns_store = store is None
        self._store = store if store is not None else open_store(self._config)

        # TOPIC 3: Enrichment
        enrichment = self._config.enrichment
        self._counters = EnrichmentCounters()
        self._cache = EnrichmentCache(
            self._store,
            classifier=self._classifier,
            verification_boost=enrichment.verification_boost,
        )
        self._coordinator = BatchEnrichmentCoordinator(
            self._cache,
            counters=self._counters,
            chunk_size=enrichment.chunk_size,
            chunk_delay_seconds=enrichment.chunk_delay_seconds,
            cost_per_miss=enrichment.cost_per_miss,
            sleep=sleep,
        )

        # TOPIC 4: Racks
        selector = self._config.selector
        self._selector_state = SelectorState()
        self._selector = RackSelector(
            self._store,
            scraper if scraper is not None else ModularGridScraper(self._classifier),
            state=self._selector_state,
            engine=self._engine,
            cache_probability=selector.cache_probability,
            recent_limit=selector.recent_limit,
            min_scrape_interval=selector.min_scrape_interval_seconds,
            rack_ttl_days=self._config.catalog.rack_ttl_days,
            rng=rng,
            sleep=sleep,
        )

        logger.info("✓ RackAssistant initialized (catalog backend: %s)", self._config.catalog.backend)

    # ------------------------------------------
    # Analysis
    # ------------------------------------------

    def analyze_capabilities(self, modules: Sequence[Module]) -> CapabilitySummary:
        return self._capability_analyzer.analyze_capabilities(modules)

    def analyze(self, rack: Union[RawRack, Sequence[Module]]) -> AnalysisReport:
        return self._engine.analyze(rack)

    def summarize(self, rack: RawRack, report: Optional[AnalysisReport] = None) -> str:
        return summarize(rack, report or self.analyze(rack))

    # ------------------------------------------
    # Enrichment
    # ------------------------------------------

    def enrich_one(self, candidate: Candidate) -> EnrichmentOutcome:
        return self._coordinator.enrich_one(candidate)

    def enrich_batch(self, candidates: Iterable[Candidate]) -> List[EnrichmentOutcome]:
        return self._coordinator.enrich_batch(candidates)

    def stats(self, outcomes: List[EnrichmentOutcome]) -> EnrichmentStats:
        return self._coordinator.stats(outcomes)

    def import_modules(self, modules: Iterable[Module],
                       source: EntrySource = EntrySource.VISION) -> List[CatalogEntry]:
        return self._coordinator.upsert_many(modules, source=source)

    def verify_module(self, key: str, verifier_id: str) -> Optional[CatalogEntry]:
        return self._cache.verify(key, verifier_id)

    def catalog_stats(self) -> CatalogStats:
        return self._cache.catalog_stats()

    @property
    def counters(self) -> EnrichmentCounters:
        return self._counters

    # ------------------------------------------
    # Racks
    # ------------------------------------------

    def random_rack(self) -> CachedRack:
        return self._selector.select_random_rack()

    def seed_cache(self) -> SeedReport:
        return self._selector.seed_cache()

    def rack_cache_statistics(self) -> RackCacheStatistics:
        return self._selector.cache_statistics()

    def cleanup_stale_racks(self) -> int:
        return self._selector.cleanup_stale()

    @property
    def selector_state(self) -> SelectorState:
        return self._selector_state

    # ------------------------------------------
    # Lifecycle
    # ------------------------------------------

    def close(self) -> None:
        """Close the store if this assistant opened it."""
        if self._owns_store:
            self._store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
