# ==============================================
# MongoCatalogStore
# ==============================================
#
# PURPOSE:
#   Keep the module catalog and the cached-rack population in MongoDB.
#   Same methods as JsonCatalogStore; selected with CATALOG_BACKEND=mongo.
#
# COLLECTIONS:
#   modules  -> one document per CatalogEntry, _id = normalized key
#   racks    -> one document per CachedRack,  _id = ModularGrid rack id
#
# CONCURRENCY:
#   No read-modify-write in Python. Every update is a single-document
#   operator so concurrent writers on the same key stay consistent:
#     - usage counters   -> $inc
#     - confidence       -> $max (never lowered)
#     - verifiers        -> $addToSet (idempotent)
#     - first-write-only -> $setOnInsert (usage_count, created_at, ...)
#     - expired racks    -> filtered update on cached_at resets the
#                           rack before the upsert
#
# CLASS: MongoCatalogStore
# ------------------------
#   Stateful: holds connection to MongoDB.
#
#   - connect() / disconnect()
#   - ensure_indexes()
#   - get / put / increment_usage / add_verifier / list_entries
#   - get_rack / save_rack / increment_rack_usage / list_recent /
#     list_racks / delete_rack
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoCatalogStore(...) as store:` usage.
#
# Any pymongo failure is re-raised as StorageError.
# ==============================================

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

import pymongo
from pymongo import MongoClient as PyMongoClient
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from rackscope.errors import StorageError
from .entries import CachedRack, CatalogEntry, utc_now

logger = logging.getLogger(__name__)

MODULES_COLLECTION = "modules"
RACKS_COLLECTION = "racks"


class MongoCatalogStore:
    def __init__(self, host="localhost", port=27017, database="rackscope",
                 user=None, password=None, rack_ttl_days: int = 30,
                 timeout_ms: int = 5000):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.rack_ttl_days = rack_ttl_days
        self.timeout_ms = timeout_ms
        self.client = None  # Will hold the actual MongoDB client connection

    def connect(self):
        try:
            if self.user and self.password:
                uri = f"mongodb://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"
            else:
                uri = f"mongodb://{self.host}:{self.port}/{self.database}"
            self.client = PyMongoClient(uri, serverSelectionTimeoutMS=self.timeout_ms)
            # Test connection
            self.client.admin.command('ping')
            logger.info("Connected to MongoDB at %s:%s", self.host, self.port)
        except ConnectionFailure as e:
            raise StorageError(f"Could not connect to MongoDB: {e}") from e
        except OperationFailure as e:
            raise StorageError(f"MongoDB authentication failed: {e}") from e

    def disconnect(self):
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB.")
            self.client = None

    def close(self):
        self.disconnect()

    def ensure_indexes(self):
        try:
            self._collection(MODULES_COLLECTION).create_index("usage_count")
            self._collection(MODULES_COLLECTION).create_index("manufacturer")
            self._collection(RACKS_COLLECTION).create_index([("last_used_at", pymongo.DESCENDING)])
            self._collection(RACKS_COLLECTION).create_index("usage_count")
        except PyMongoError as e:
            raise StorageError(f"Could not create indexes: {e}") from e

    # ------------------------------------------
    # Module catalog
    # ------------------------------------------

    def get(self, key: str) -> Optional[CatalogEntry]:
        try:
            document = self._collection(MODULES_COLLECTION).find_one({"_id": key})
        except PyMongoError as e:
            raise StorageError(f"Catalog read failed for {key}: {e}") from e
        return CatalogEntry.from_dict(document) if document else None

    def put(self, entry: CatalogEntry) -> CatalogEntry:
        document = entry.to_dict()
        insert_only = {
            field: document.pop(field)
            for field in ("usage_count", "verified_by", "created_at")
        }
        confidence = document.pop("confidence")
        document["updated_at"] = utc_now().isoformat()

        try:
            saved = self._collection(MODULES_COLLECTION).find_one_and_update(
                {"_id": entry.key},
                {
                    "$set": document,
                    "$setOnInsert": insert_only,
                    "$max": {"confidence": confidence},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageError(f"Catalog write failed for {entry.key}: {e}") from e
        return CatalogEntry.from_dict(saved)

    def increment_usage(self, key: str) -> bool:
        try:
            result = self._collection(MODULES_COLLECTION).update_one(
                {"_id": key},
                {"$inc": {"usage_count": 1}, "$set": {"updated_at": utc_now().isoformat()}},
            )
        except PyMongoError as e:
            raise StorageError(f"Usage increment failed for {key}: {e}") from e
        return result.matched_count > 0

    def add_verifier(self, key: str, verifier_id: str, confidence: float) -> Optional[CatalogEntry]:
        try:
            document = self._collection(MODULES_COLLECTION).find_one_and_update(
                {"_id": key},
                {
                    "$addToSet": {"verified_by": verifier_id},
                    "$max": {"confidence": confidence},
                    "$set": {"updated_at": utc_now().isoformat()},
                },
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageError(f"Verification failed for {key}: {e}") from e
        return CatalogEntry.from_dict(document) if document else None

    def list_entries(self) -> List[CatalogEntry]:
        try:
            documents = list(self._collection(MODULES_COLLECTION).find({}))
        except PyMongoError as e:
            raise StorageError(f"Catalog listing failed: {e}") from e
        return [CatalogEntry.from_dict(document) for document in documents]

    # ------------------------------------------
    # Cached racks
    # ------------------------------------------

    def get_rack(self, rack_id: str) -> Optional[CachedRack]:
        try:
            document = self._collection(RACKS_COLLECTION).find_one({"_id": rack_id})
        except PyMongoError as e:
            raise StorageError(f"Rack read failed for {rack_id}: {e}") from e
        if not document:
            return None

        cached = CachedRack.from_dict(document)
        if cached.is_stale(self.rack_ttl_days):
            logger.debug("Rack %s is stale, treating as not cached", rack_id)
            return None
        return cached

    def save_rack(self, cached: CachedRack) -> CachedRack:
        document = cached.to_dict()
        insert_only = {
            "usage_count": document.pop("usage_count"),
            "cached_at": document.pop("cached_at"),
        }
        now = utc_now()
        document["last_used_at"] = now.isoformat()
        cutoff = (now - timedelta(days=self.rack_ttl_days)).isoformat()

        try:
            # An expired copy starts a fresh cache lifetime
            self._collection(RACKS_COLLECTION).update_one(
                {"_id": cached.rack_id, "cached_at": {"$lt": cutoff}},
                {"$set": {"usage_count": 0, "cached_at": now.isoformat()}},
            )
            saved = self._collection(RACKS_COLLECTION).find_one_and_update(
                {"_id": cached.rack_id},
                {"$set": document, "$setOnInsert": insert_only},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageError(f"Rack write failed for {cached.rack_id}: {e}") from e

        logger.info("Rack saved to cache: %s (%d modules)", cached.rack_id, len(cached.rack.modules))
        return CachedRack.from_dict(saved)

    def increment_rack_usage(self, rack_id: str) -> bool:
        try:
            result = self._collection(RACKS_COLLECTION).update_one(
                {"_id": rack_id},
                {"$inc": {"usage_count": 1}, "$set": {"last_used_at": utc_now().isoformat()}},
            )
        except PyMongoError as e:
            raise StorageError(f"Rack usage increment failed for {rack_id}: {e}") from e
        return result.matched_count > 0

    def list_recent(self, limit: int = 100) -> List[CachedRack]:
        return self._find_racks(sort=("last_used_at", pymongo.DESCENDING), limit=limit)

    def list_racks(self) -> List[CachedRack]:
        return self._find_racks()

    def delete_rack(self, rack_id: str) -> bool:
        try:
            result = self._collection(RACKS_COLLECTION).delete_one({"_id": rack_id})
        except PyMongoError as e:
            raise StorageError(f"Rack delete failed for {rack_id}: {e}") from e
        return result.deleted_count > 0

    def _find_racks(self, sort=None, limit: int = 0) -> List[CachedRack]:
        try:
            cursor = self._collection(RACKS_COLLECTION).find({})
            if sort:
                cursor = cursor.sort(*sort)
            if limit:
                cursor = cursor.limit(limit)
            documents: List[Dict[str, Any]] = list(cursor)
        except PyMongoError as e:
            raise StorageError(f"Rack listing failed: {e}") from e
        return [CachedRack.from_dict(document) for document in documents]

    def _collection(self, name: str):
        if not self.client:
            raise StorageError("Not connected to MongoDB.")
        return self.client[self.database][name]

    def __enter__(self):
        # For `with MongoCatalogStore(...) as store:` usage.
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
