# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests.
#
# FIXTURES:
# ---------
# - voice_modules     classic VCO/VCF/VCA/EG voice
# - video_modules     LZX-style video system (sync, ramps, colorizer, encoder)
# - json_store        JsonCatalogStore in tmp_path
# - recording_store   in-memory store double that counts calls and can fail
# - fake_clock        manual clock whose sleep() advances time
# - fake_scraper      scrape collaborator serving canned racks
# - reset_rackscope_logger (autouse) drops handlers added by configure_logging
#
# HELPERS:
# --------
# - make_module(name, type, hp, positive_12v, ...)
# - make_rack(rack_id, modules)
# - make_cached_rack(rack_id, usage_count, age_days)
# ==============================================

import logging
from collections import Counter
from dataclasses import replace
from datetime import timedelta
from typing import Dict, List, Optional

import pytest

from rackscope.analysis.models import Module, ModuleType, Position, PowerDraw, RawRack
from rackscope.catalog.entries import CachedRack, CatalogEntry, utc_now
from rackscope.catalog.json_store import JsonCatalogStore
from rackscope.errors import ScrapeError, StorageError


RACK_URL = "https://modulargrid.net/e/racks/view/{}"


def make_module(name, module_type=ModuleType.OTHER, hp=4, positive_12v=None,
                negative_12v=None, positive_5v=None, manufacturer="Test Co", row=0):
    return Module(
        name=name,
        manufacturer=manufacturer,
        type=module_type,
        hp=hp,
        power=PowerDraw(positive_12v, negative_12v, positive_5v),
        position=Position(row=row, column=0),
    )


def make_rack(rack_id: str, modules: Optional[List[Module]] = None) -> RawRack:
    modules = modules if modules is not None else [make_module("Plain VCO", ModuleType.VCO)]
    return RawRack.from_modules(RACK_URL.format(rack_id), modules, rack_id=rack_id,
                                rack_name=f"Rack {rack_id}")


def make_cached_rack(rack_id: str, usage_count: int = 0, age_days: float = 0) -> CachedRack:
    now = utc_now()
    return CachedRack(
        rack_id=rack_id,
        url=RACK_URL.format(rack_id),
        rack=make_rack(rack_id),
        usage_count=usage_count,
        cached_at=now - timedelta(days=age_days),
        last_used_at=now - timedelta(days=age_days),
    )


@pytest.fixture
def voice_modules() -> List[Module]:
    return [
        make_module("Dual VCO", ModuleType.VCO, hp=10, positive_12v=120, negative_12v=40),
        make_module("Ladder Filter", ModuleType.VCF, hp=8, positive_12v=50, negative_12v=50),
        make_module("Linear VCA", ModuleType.VCA, hp=4, positive_12v=20),
        make_module("ADSR", ModuleType.EG, hp=4, positive_12v=None),
    ]


@pytest.fixture
def video_modules() -> List[Module]:
    return [
        make_module("ESG3", ModuleType.SYNC_GENERATOR, hp=16, manufacturer="LZX Industries"),
        make_module("Angles", ModuleType.RAMP_GENERATOR, hp=8, manufacturer="LZX Industries"),
        make_module("Passage", ModuleType.COLORIZER, hp=8, manufacturer="LZX Industries"),
        make_module("Sortie", ModuleType.VIDEO_ENCODER, hp=8, manufacturer="Syntonie"),
    ]


@pytest.fixture
def json_store(tmp_path):
    with JsonCatalogStore(str(tmp_path / "catalog")) as store:
        yield store


class RecordingStore:
    """
    In-memory catalog store double.

    `calls` counts every method invocation; `fail` names methods that
    raise StorageError instead of running.
    """

    def __init__(self, racks: Optional[List[CachedRack]] = None, frozen_recent: bool = False):
        self.entries: Dict[str, CatalogEntry] = {}
        self.racks: Dict[str, CachedRack] = {rack.rack_id: rack for rack in racks or []}
        self.calls: Counter = Counter()
        self.fail: set = set()
        self.frozen_recent = frozen_recent
        self._frozen = [replace(rack) for rack in self.racks.values()]

    def _enter(self, name):
        self.calls[name] += 1
        if name in self.fail:
            raise StorageError(f"{name} unavailable")

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def get(self, key):
        self._enter("get")
        return self.entries.get(key)

    def put(self, entry):
        self._enter("put")
        existing = self.entries.get(entry.key)
        if existing:
            entry.usage_count = existing.usage_count
            entry.verified_by = existing.verified_by
            entry.confidence = max(existing.confidence, entry.confidence)
        self.entries[entry.key] = entry
        return entry

    def increment_usage(self, key):
        self._enter("increment_usage")
        if key not in self.entries:
            return False
        self.entries[key].usage_count += 1
        return True

    def add_verifier(self, key, verifier_id, confidence):
        self._enter("add_verifier")
        entry = self.entries.get(key)
        if entry is None:
            return None
        if verifier_id not in entry.verified_by:
            entry.verified_by.append(verifier_id)
        entry.confidence = max(entry.confidence, confidence)
        return entry

    def list_entries(self):
        self._enter("list_entries")
        return list(self.entries.values())

    def get_rack(self, rack_id):
        self._enter("get_rack")
        return self.racks.get(rack_id)

    def save_rack(self, cached):
        self._enter("save_rack")
        self.racks[cached.rack_id] = cached
        return cached

    def increment_rack_usage(self, rack_id):
        self._enter("increment_rack_usage")
        if rack_id not in self.racks:
            return False
        self.racks[rack_id].usage_count += 1
        return True

    def list_recent(self, limit=100):
        self._enter("list_recent")
        if self.frozen_recent:
            return self._frozen[:limit]
        return list(self.racks.values())[:limit]

    def list_racks(self):
        self._enter("list_racks")
        return list(self.racks.values())

    def delete_rack(self, rack_id):
        self._enter("delete_rack")
        return self.racks.pop(rack_id, None) is not None

    def close(self):
        self.calls["close"] += 1


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()


class FakeClock:
    """Monotonic clock for rate-limit tests; sleep() advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


class FakeScraper:
    """Serves canned racks by URL; URLs in `failing` raise ScrapeError."""

    def __init__(self, racks: Optional[Dict[str, RawRack]] = None, failing=(), fail_all: bool = False):
        self.racks = dict(racks or {})
        self.failing = set(failing)
        self.fail_all = fail_all
        self.calls: List[str] = []

    def scrape(self, url: str) -> RawRack:
        self.calls.append(url)
        if self.fail_all or url in self.failing:
            raise ScrapeError(url, "simulated failure")
        if url in self.racks:
            return self.racks[url]
        rack_id = url.rstrip("/").rsplit("/", 1)[-1]
        return make_rack(rack_id)


@pytest.fixture
def fake_scraper() -> FakeScraper:
    return FakeScraper()


@pytest.fixture(autouse=True)
def reset_rackscope_logger():
    """Undo configure_logging() so handlers never outlive a test's captured streams."""
    yield
    logger = logging.getLogger("rackscope")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
