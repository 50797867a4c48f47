# ==============================================
# RackSelector
# ==============================================
#
# PURPOSE:
#   Serve a "random rack" for demos and exploration. Mostly from the
#   cached-rack population (cheap), sometimes by scraping a fresh one
#   from a curated list (slow, rate-limited), and always with a rack
#   that is known to work as the last resort.
#
# FLOW: select_random_rack()
#   1. With probability cache_probability (0.9): take up to recent_limit
#      most-recently-used cached racks, pick one by usage-weighted
#      sampling (weight = usage_count + 1, so unused racks still get
#      picked), bump its counter (best-effort), return it.
#   2. Otherwise, or if the population is empty: scrape a random curated
#      URL, honoring the minimum interval since the last scrape, store it
#      with its CapabilitySummary / AnalysisReport, return it.
#   3. Any failure in 1 or 2: fall back to FALLBACK_RACK_URL, from cache
#      if present, else scrape-and-cache. Only a failure HERE surfaces,
#      as RackUnavailableError.
#
# SHARED STATE:
#   SelectorState holds the last scrape time and hit/miss counters. The
#   owner creates it and passes it to every selector that should share
#   one rate limit; reset() clears it between tests.
#
#   Weighted sampling reads usage counts that other callers may be
#   incrementing at the same time. Selection is therefore approximate,
#   never transactional.
#
# ==============================================

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from rackscope.analysis.capabilities import CapabilityAnalyzer
from rackscope.analysis.techniques import TechniqueInferenceEngine
from rackscope.catalog.entries import CachedRack, utc_now
from rackscope.errors import RackUnavailableError
from .scraper import extract_rack_id

logger = logging.getLogger(__name__)

# Curated known-good public racks
CURATED_RACK_URLS = (
    "https://modulargrid.net/e/racks/view/2383104",  # Original demo rack
    "https://modulargrid.net/e/racks/view/1899091",  # Make Noise system
    "https://modulargrid.net/e/racks/view/1674485",  # Moog system
    "https://modulargrid.net/e/racks/view/1956789",  # Intellijel case
    "https://modulargrid.net/e/racks/view/2142567",  # Performance case
    "https://modulargrid.net/e/racks/view/1823456",  # Generative system
    "https://modulargrid.net/e/racks/view/1945678",  # West Coast
    "https://modulargrid.net/e/racks/view/2089234",  # Ambient drone
    "https://modulargrid.net/e/racks/view/1767890",  # Techno system
    "https://modulargrid.net/e/racks/view/2123456",  # Modulation heaven
    "https://modulargrid.net/e/racks/view/1854321",  # Sequencer focused
    "https://modulargrid.net/e/racks/view/2045678",  # Effects processing
    "https://modulargrid.net/e/racks/view/1923456",  # Video synthesis
    "https://modulargrid.net/e/racks/view/2167890",  # Minimal setup
    "https://modulargrid.net/e/racks/view/1789012",  # Complete system
)
FALLBACK_RACK_URL = CURATED_RACK_URLS[0]

DEFAULT_CACHE_PROBABILITY = 0.9
DEFAULT_RECENT_LIMIT = 100
DEFAULT_MIN_SCRAPE_INTERVAL_SECONDS = 5.0
DEFAULT_RACK_TTL_DAYS = 30


@dataclass
class SelectorState:
    """Rate-limit clock and cache counters shared by cooperating selectors."""
    last_scrape_time: Optional[float] = None
    cache_hits: int = 0
    cache_misses: int = 0

    def reset(self) -> None:
        self.last_scrape_time = None
        self.cache_hits = 0
        self.cache_misses = 0

    def statistics(self) -> Dict[str, Any]:
        total = self.cache_hits + self.cache_misses
        hit_rate = round(self.cache_hits / total * 100) if total else 0
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": f"{hit_rate}%",
        }


@dataclass
class SeedReport:
    total: int = 0
    success: int = 0
    errors: int = 0


@dataclass
class RackCacheStatistics:
    total_racks: int = 0
    total_use_count: int = 0
    average_use_count: float = 0.0
    most_popular: List[Dict[str, Any]] = field(default_factory=list)


def weighted_choice(racks: Sequence[CachedRack], rng: random.Random) -> CachedRack:
    """Pick one rack with probability proportional to usage_count + 1."""
    if not racks:
        raise ValueError("Cannot select from an empty rack population")
    if len(racks) == 1:
        return racks[0]
    weights = [max(0, rack.usage_count) + 1 for rack in racks]
    return rng.choices(racks, weights=weights, k=1)[0]


class RackSelector:
    def __init__(
        self,
        store,
        scraper,
        state: Optional[SelectorState] = None,
        engine: Optional[TechniqueInferenceEngine] = None,
        sources: Sequence[str] = CURATED_RACK_URLS,
        fallback_url: Optional[str] = None,
        cache_probability: float = DEFAULT_CACHE_PROBABILITY,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
        min_scrape_interval: float = DEFAULT_MIN_SCRAPE_INTERVAL_SECONDS,
        rack_ttl_days: int = DEFAULT_RACK_TTL_DAYS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            store: catalog store holding cached racks
            scraper: collaborator with scrape(source_id) -> RawRack
            state: shared rate-limit/counter state (a private one if omitted)
            engine: technique engine used to analyze freshly scraped racks
            sources: curated rack URLs to scrape from
            fallback_url: guaranteed-available rack (first source by default)
        """
        if not sources:
            raise ValueError("RackSelector needs at least one source URL")
        self.store = store
        self.scraper = scraper
        self.state = state if state is not None else SelectorState()
        self.engine = engine or TechniqueInferenceEngine()
        self.capability_analyzer = CapabilityAnalyzer(self.engine.thresholds)
        self.sources = tuple(sources)
        self.fallback_url = fallback_url or self.sources[0]
        self.cache_probability = cache_probability
        self.recent_limit = recent_limit
        self.min_scrape_interval = min_scrape_interval
        self.rack_ttl_days = rack_ttl_days
        self.rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep

    def select_random_rack(self) -> CachedRack:
        """
        Get a random rack, preferring cached racks but occasionally scraping.

        Raises:
            RackUnavailableError: only if the guaranteed fallback rack also fails
        """
        try:
            if self.rng.random() < self.cache_probability:
                racks = self.store.list_recent(self.recent_limit)

                if racks:
                    chosen = weighted_choice(racks, self.rng)
                    self._record_usage(chosen.rack_id)
                    self.state.cache_hits += 1
                    logger.info("Random rack from cache: %s (use count %d, hit rate %s)",
                                chosen.rack_id, chosen.usage_count + 1,
                                self.state.statistics()["hit_rate"])
                    return chosen

                logger.info("Rack cache is empty, falling back to scraping")

            self.state.cache_misses += 1
            return self._scrape_and_cache(self.rng.choice(self.sources))

        except Exception as e:
            logger.error("Failed to get random rack: %s", e)
            logger.info("Using fallback rack %s", self.fallback_url)
            return self._fallback_rack()

    def seed_cache(self) -> SeedReport:
        """Scrape every curated rack that is not cached yet."""
        report = SeedReport(total=len(self.sources))
        logger.info("Seeding rack cache with %d curated racks", report.total)

        for url in self.sources:
            try:
                rack_id = extract_rack_id(url)
                if rack_id and self.store.get_rack(rack_id):
                    logger.debug("Rack already cached: %s", url)
                    report.success += 1
                    continue

                cached = self._scrape_and_cache(url)
                report.success += 1
                logger.info("✓ Rack seeded: %s (%d modules)", url, len(cached.rack.modules))
            except Exception as e:
                report.errors += 1
                logger.error("✗ Failed to seed rack %s: %s", url, e)

        logger.info("Cache seeding completed: %d ok, %d errors", report.success, report.errors)
        return report

    def cache_statistics(self) -> RackCacheStatistics:
        racks = self.store.list_racks()
        if not racks:
            return RackCacheStatistics()

        total_use_count = sum(rack.usage_count for rack in racks)
        popular = sorted(racks, key=lambda rack: rack.usage_count, reverse=True)[:10]
        return RackCacheStatistics(
            total_racks=len(racks),
            total_use_count=total_use_count,
            average_use_count=round(total_use_count / len(racks), 2),
            most_popular=[
                {"rack_id": rack.rack_id, "usage_count": rack.usage_count, "url": rack.url}
                for rack in popular
            ],
        )

    def cleanup_stale(self) -> int:
        """Delete cached racks older than rack_ttl_days. Returns how many went."""
        now = utc_now()
        deleted = 0
        for rack in self.store.list_racks():
            if rack.is_stale(self.rack_ttl_days, now) and self.store.delete_rack(rack.rack_id):
                deleted += 1
        logger.info("Stale rack cleanup removed %d racks", deleted)
        return deleted

    def _fallback_rack(self) -> CachedRack:
        try:
            rack_id = extract_rack_id(self.fallback_url)
            if rack_id:
                cached = self.store.get_rack(rack_id)
                if cached:
                    logger.info("Fallback rack from cache: %s", self.fallback_url)
                    return cached

            logger.info("Scraping fallback rack %s", self.fallback_url)
            return self._scrape_and_cache(self.fallback_url)
        except Exception as e:
            logger.error("Failed to get fallback rack: %s", e)
            raise RackUnavailableError("Unable to retrieve any rack - please try again later") from e

    def _scrape_and_cache(self, url: str) -> CachedRack:
        self._wait_for_rate_limit()
        try:
            rack = self.scraper.scrape(url)
        finally:
            # A failed attempt still counts against the source's rate limit
            self.state.last_scrape_time = self._clock()

        capabilities = self.capability_analyzer.analyze_capabilities(rack.modules)
        analysis = self.engine.analyze(rack, capabilities)
        cached = CachedRack(
            rack_id=rack.rack_id or extract_rack_id(url) or url,
            url=url,
            rack=rack,
            capabilities=capabilities,
            analysis=analysis,
        )
        saved = self.store.save_rack(cached)
        logger.info("Rack scraped and cached: %s (%d modules, %dHP)",
                    url, len(rack.modules), capabilities.total_hp)
        return saved

    def _wait_for_rate_limit(self) -> None:
        last = self.state.last_scrape_time
        if last is None:
            return
        elapsed = self._clock() - last
        if elapsed < self.min_scrape_interval:
            wait = self.min_scrape_interval - elapsed
            logger.debug("Rate limiting scrape, waiting %.2fs", wait)
            self._sleep(wait)

    def _record_usage(self, rack_id: str) -> bool:
        try:
            return bool(self.store.increment_rack_usage(rack_id))
        except Exception as e:
            logger.warning("⚠ Rack usage increment failed for %s: %s", rack_id, e)
            return False
