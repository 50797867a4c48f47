# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - MongoConfig (dataclass)
#     host: str            (default "localhost")
#     port: int            (default 27017)
#     user: str | None     (default None)
#     password: str | None (default None)
#     database: str        (default "rackscope")
#
# - CatalogConfig (dataclass)
#     backend: str         (default "json"; "json" or "mongo")
#     directory: str       (default "catalog/", used by the JSON backend)
#     rack_ttl_days: int   (default 30)
#
# - EnrichmentConfig (dataclass)
#     chunk_size: int            (default 5)
#     chunk_delay_seconds: float (default 0.2)
#     cost_per_miss: float       (default 0.10 dollars)
#     verification_boost: float  (default 0.05)
#
# - SelectorConfig (dataclass)
#     cache_probability: float           (default 0.9)
#     recent_limit: int                  (default 100)
#     min_scrape_interval_seconds: float (default 5.0)
#
# - AppConfig (dataclass)
#     mongo, catalog, enrichment, selector, log_level
#
# FUNCTION:
# ---------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# - reset_config() -> None
#     Forget the singleton (tests change the environment).
#
# USAGE:
# ------
#   from rackscope.config import get_config
#   config = get_config()
#   print(config.enrichment.chunk_size)
#
# ==============================================

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class MongoConfig:
    """MongoDB database configuration."""
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "rackscope"


@dataclass
class CatalogConfig:
    """Which catalog store to use and where it keeps its data."""
    backend: str = "json"
    directory: str = "catalog/"
    rack_ttl_days: int = 30


@dataclass
class EnrichmentConfig:
    """Batch fan-out and cache accounting knobs."""
    chunk_size: int = 5
    chunk_delay_seconds: float = 0.2
    cost_per_miss: float = 0.10
    verification_boost: float = 0.05


@dataclass
class SelectorConfig:
    """Random rack selection knobs."""
    cache_probability: float = 0.9
    recent_limit: int = 100
    min_scrape_interval_seconds: float = 5.0


@dataclass
class AppConfig:
    """Main application configuration."""
    mongo: MongoConfig = field(default_factory=MongoConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    selector: SelectorConfig = field(default_factory=SelectorConfig)
    log_level: str = "INFO"


# Singleton instance
_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    mongo_config = MongoConfig(
        host=os.getenv("MONGO_HOST", "localhost"),
        port=int(os.getenv("MONGO_PORT", "27017")),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None,
        database=os.getenv("MONGO_DATABASE", "rackscope")
    )

    catalog_config = CatalogConfig(
        backend=os.getenv("CATALOG_BACKEND", "json").lower(),
        directory=os.getenv("CATALOG_DIR", "catalog/"),
        rack_ttl_days=int(os.getenv("RACK_TTL_DAYS", "30"))
    )

    enrichment_config = EnrichmentConfig(
        chunk_size=int(os.getenv("ENRICH_CHUNK_SIZE", "5")),
        chunk_delay_seconds=float(os.getenv("ENRICH_CHUNK_DELAY_SECONDS", "0.2")),
        cost_per_miss=float(os.getenv("ENRICH_COST_PER_MISS", "0.10")),
        verification_boost=float(os.getenv("ENRICH_VERIFICATION_BOOST", "0.05"))
    )

    selector_config = SelectorConfig(
        cache_probability=float(os.getenv("RACK_CACHE_PROBABILITY", "0.9")),
        recent_limit=int(os.getenv("RACK_RECENT_LIMIT", "100")),
        min_scrape_interval_seconds=float(os.getenv("RACK_MIN_SCRAPE_INTERVAL_SECONDS", "5.0"))
    )

    if enrichment_config.chunk_size < 1:
        raise ValueError("ENRICH_CHUNK_SIZE must be at least 1")
    if not 0.0 <= selector_config.cache_probability <= 1.0:
        raise ValueError("RACK_CACHE_PROBABILITY must be between 0 and 1")

    _config_instance = AppConfig(
        mongo=mongo_config,
        catalog=catalog_config,
        enrichment=enrichment_config,
        selector=selector_config,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper()
    )

    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
