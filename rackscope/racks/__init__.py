# ==============================================
# TOPIC 4: RACKS (Random rack selection)
# ==============================================
#
# Modules:
# --------
# - selector.py  -> RackSelector: usage-weighted pick from cached racks,
#                   rate-limited scraping, guaranteed fallback rack
# - scraper.py   -> ModularGridScraper: public rack page -> RawRack
#
# ==============================================

from .scraper import ModularGridScraper, extract_rack_id, is_valid_rack_url
from .selector import (
    CURATED_RACK_URLS,
    FALLBACK_RACK_URL,
    RackCacheStatistics,
    RackSelector,
    SeedReport,
    SelectorState,
    weighted_choice,
)

__all__ = [
    "CURATED_RACK_URLS",
    "FALLBACK_RACK_URL",
    "ModularGridScraper",
    "RackCacheStatistics",
    "RackSelector",
    "SeedReport",
    "SelectorState",
    "extract_rack_id",
    "is_valid_rack_url",
    "weighted_choice",
]
