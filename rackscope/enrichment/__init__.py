# ==============================================
# TOPIC 3: ENRICHMENT (Cache-aside module lookups)
# ==============================================
#
# Modules:
# --------
# - cache.py  -> EnrichmentCache: catalog hit / classify-and-store on miss
# - batch.py  -> BatchEnrichmentCoordinator: chunked fan-out + statistics
#
# ==============================================

from .cache import (
    Candidate,
    CatalogStats,
    EnrichmentCache,
    EnrichmentOutcome,
    EnrichmentSource,
    FALLBACK_CONFIDENCE,
)
from .batch import (
    BatchEnrichmentCoordinator,
    EnrichmentCounters,
    EnrichmentStats,
    calculate_stats,
)

__all__ = [
    "BatchEnrichmentCoordinator",
    "Candidate",
    "CatalogStats",
    "EnrichmentCache",
    "EnrichmentCounters",
    "EnrichmentOutcome",
    "EnrichmentSource",
    "EnrichmentStats",
    "FALLBACK_CONFIDENCE",
    "calculate_stats",
]
