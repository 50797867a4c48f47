# ==============================================
# TOPIC 2: CATALOG (Persistent module catalog + cached racks)
# ==============================================
#
# This package owns everything that is persisted: module catalog
# entries keyed by normalized (name, manufacturer), and scraped racks
# kept around for random selection.
#
# Modules:
# --------
# - entries.py      -> CatalogEntry, CachedRack, normalize_key()
# - json_store.py   -> JSON-file store (default backend)
# - mongo_store.py  -> MongoDB store
#
# open_store(config) picks the backend from CatalogConfig.backend.
# ==============================================

from rackscope.config import AppConfig
from .entries import CachedRack, CatalogEntry, EntrySource, clamp_confidence, normalize_key
from .json_store import JsonCatalogStore
from .mongo_store import MongoCatalogStore


def open_store(config: AppConfig):
    """Build (and for MongoDB, connect) the store named by config.catalog.backend."""
    backend = config.catalog.backend
    if backend == "mongo":
        store = MongoCatalogStore(
            host=config.mongo.host,
            port=config.mongo.port,
            database=config.mongo.database,
            user=config.mongo.user,
            password=config.mongo.password,
            rack_ttl_days=config.catalog.rack_ttl_days,
        )
        store.connect()
        store.ensure_indexes()
        return store
    if backend == "json":
        return JsonCatalogStore(config.catalog.directory, rack_ttl_days=config.catalog.rack_ttl_days)
    raise ValueError(f"Unknown CATALOG_BACKEND '{backend}' (expected 'json' or 'mongo')")


__all__ = [
    "CachedRack",
    "CatalogEntry",
    "EntrySource",
    "JsonCatalogStore",
    "MongoCatalogStore",
    "clamp_confidence",
    "normalize_key",
    "open_store",
]
