# ==============================================
# JsonCatalogStore
# ==============================================
#
# PURPOSE:
#   Persist the module catalog and the cached-rack population to JSON
#   files on disk, so lookups survive restarts without a database.
#   Default backend; the MongoDB store implements the same methods.
#
# CLASS: JsonCatalogStore
# -----------------------
#   Stateful: holds the storage directory and a lock.
#
#   Constructor:
#   ------------
#   - __init__(storage_dir: str = "catalog/", rack_ttl_days: int = 30)
#       Create storage directory if it doesn't exist.
#
#   MODULE CATALOG:
#   - get(key) -> CatalogEntry | None
#   - put(entry) -> CatalogEntry
#       Upsert. An existing entry keeps its usage_count, verified_by and
#       created_at; confidence becomes max(existing, new).
#   - increment_usage(key) -> bool
#   - add_verifier(key, verifier_id, confidence) -> CatalogEntry | None
#   - list_entries() -> list[CatalogEntry]
#
#   CACHED RACKS:
#   - get_rack(rack_id) -> CachedRack | None     (stale racks -> None)
#   - save_rack(cached) -> CachedRack            (keeps usage_count and
#                                                 cached_at unless stale)
#   - increment_rack_usage(rack_id) -> bool
#   - list_recent(limit) -> list[CachedRack]     (by last_used_at desc)
#   - list_racks() -> list[CachedRack]
#   - delete_rack(rack_id) -> bool
#
#   UTILITY:
#   - exists() -> bool
#   - clear() -> None
#
# Every read-modify-write runs under one lock, so concurrent threads in
# one process never lose each other's writes. Any I/O or decode failure
# is raised as StorageError.
#
# FILE STRUCTURE:
# ---------------
#   catalog/
#   ├── modules.json   -> {key: CatalogEntry.to_dict()}
#   └── racks.json     -> {rack_id: CachedRack.to_dict()}
#
# ==============================================

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rackscope.errors import StorageError
from .entries import CachedRack, CatalogEntry, utc_now

logger = logging.getLogger(__name__)


class JsonCatalogStore:
    """
    Catalog store backed by two JSON files.
    """

    def __init__(self, storage_dir: str = "catalog/", rack_ttl_days: int = 30):
        self.storage_dir = Path(storage_dir)
        self.rack_ttl_days = rack_ttl_days
        self._lock = threading.RLock()

        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create catalog directory {self.storage_dir}: {e}") from e

        self.modules_file = self.storage_dir / "modules.json"
        self.racks_file = self.storage_dir / "racks.json"

    # ------------------------------------------
    # Module catalog
    # ------------------------------------------

    def get(self, key: str) -> Optional[CatalogEntry]:
        with self._lock:
            data = self._read(self.modules_file).get(key)
        return CatalogEntry.from_dict(data) if data else None

    def put(self, entry: CatalogEntry) -> CatalogEntry:
        def merge(documents: Dict[str, Any]) -> CatalogEntry:
            existing = documents.get(entry.key)
            merged = CatalogEntry.from_dict(entry.to_dict())
            if existing:
                previous = CatalogEntry.from_dict(existing)
                merged.usage_count = previous.usage_count
                merged.verified_by = previous.verified_by
                merged.created_at = previous.created_at
                merged.confidence = max(previous.confidence, entry.confidence)
            merged.updated_at = utc_now()
            documents[entry.key] = merged.to_dict()
            return merged

        return self._update(self.modules_file, merge)

    def increment_usage(self, key: str) -> bool:
        def bump(documents: Dict[str, Any]) -> bool:
            document = documents.get(key)
            if document is None:
                return False
            document["usage_count"] = int(document.get("usage_count", 0)) + 1
            document["updated_at"] = utc_now().isoformat()
            return True

        return self._update(self.modules_file, bump)

    def add_verifier(self, key: str, verifier_id: str, confidence: float) -> Optional[CatalogEntry]:
        def verify(documents: Dict[str, Any]) -> Optional[CatalogEntry]:
            document = documents.get(key)
            if document is None:
                return None
            entry = CatalogEntry.from_dict(document)
            if verifier_id not in entry.verified_by:
                entry.verified_by.append(verifier_id)
            entry.confidence = max(entry.confidence, confidence)
            entry.updated_at = utc_now()
            documents[key] = entry.to_dict()
            return entry

        return self._update(self.modules_file, verify)

    def list_entries(self) -> List[CatalogEntry]:
        with self._lock:
            documents = self._read(self.modules_file)
        return [CatalogEntry.from_dict(data) for data in documents.values()]

    # ------------------------------------------
    # Cached racks
    # ------------------------------------------

    def get_rack(self, rack_id: str) -> Optional[CachedRack]:
        with self._lock:
            data = self._read(self.racks_file).get(rack_id)
        if not data:
            return None

        cached = CachedRack.from_dict(data)
        if cached.is_stale(self.rack_ttl_days):
            logger.debug("Rack %s is stale, treating as not cached", rack_id)
            return None
        return cached

    def save_rack(self, cached: CachedRack) -> CachedRack:
        def save(documents: Dict[str, Any]) -> CachedRack:
            now = utc_now()
            existing = documents.get(cached.rack_id)
            previous = CachedRack.from_dict(existing) if existing else None
            if previous and not previous.is_stale(self.rack_ttl_days, now):
                cached.usage_count = previous.usage_count
                cached.cached_at = previous.cached_at
            elif previous:
                # Expired copy: the re-save starts a fresh cache lifetime
                cached.usage_count = 0
                cached.cached_at = now
            cached.last_used_at = now
            documents[cached.rack_id] = cached.to_dict()
            return cached

        saved = self._update(self.racks_file, save)
        logger.info("Rack saved to cache: %s (%d modules)", saved.rack_id, len(saved.rack.modules))
        return saved

    def increment_rack_usage(self, rack_id: str) -> bool:
        def bump(documents: Dict[str, Any]) -> bool:
            document = documents.get(rack_id)
            if document is None:
                return False
            document["usage_count"] = int(document.get("usage_count", 0)) + 1
            document["last_used_at"] = utc_now().isoformat()
            return True

        return self._update(self.racks_file, bump)

    def list_recent(self, limit: int = 100) -> List[CachedRack]:
        racks = self.list_racks()
        racks.sort(key=lambda rack: rack.last_used_at, reverse=True)
        return racks[:limit]

    def list_racks(self) -> List[CachedRack]:
        with self._lock:
            documents = self._read(self.racks_file)
        return [CachedRack.from_dict(data) for data in documents.values()]

    def delete_rack(self, rack_id: str) -> bool:
        return self._update(self.racks_file, lambda documents: documents.pop(rack_id, None) is not None)

    # ------------------------------------------
    # Utility
    # ------------------------------------------

    def exists(self) -> bool:
        return self.modules_file.exists() or self.racks_file.exists()

    def clear(self) -> None:
        with self._lock:
            for file in (self.modules_file, self.racks_file):
                if file.exists():
                    file.unlink()
                    logger.info("Deleted %s", file)

    def close(self) -> None:
        pass

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def _write(self, path: Path, documents: Dict[str, Any]) -> None:
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(documents, f, indent=2, ensure_ascii=False)
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def _update(self, path: Path, mutate: Callable[[Dict[str, Any]], Any]) -> Any:
        with self._lock:
            documents = self._read(path)
            result = mutate(documents)
            self._write(path, documents)
            return result

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
