# ==============================================
# Tests for BatchEnrichmentCoordinator and stats
# ==============================================

import math

import pytest

from rackscope.enrichment.batch import (
    BatchEnrichmentCoordinator,
    EnrichmentCounters,
    calculate_stats,
)
from rackscope.analysis.models import ModuleType
from rackscope.catalog.entries import EntrySource
from rackscope.enrichment.cache import Candidate, EnrichmentCache, EnrichmentSource
from rackscope.errors import StorageError

from conftest import make_module


def candidates(count):
    return [Candidate(name=f"Module {i}", manufacturer="Test Co") for i in range(count)]


@pytest.fixture
def coordinator(recording_store, fake_clock):
    return BatchEnrichmentCoordinator(EnrichmentCache(recording_store), sleep=fake_clock.sleep)


class TestEnrichBatch:
    def test_empty_batch_touches_nothing(self, coordinator, recording_store, fake_clock):
        assert coordinator.enrich_batch([]) == []
        assert recording_store.total_calls == 0
        assert fake_clock.sleeps == []

    def test_outcomes_in_input_order(self, coordinator):
        batch = candidates(12)
        outcomes = coordinator.enrich_batch(batch)
        assert [o.module.name for o in outcomes] == [c.name for c in batch]

    def test_sleeps_between_chunks_only(self, coordinator, fake_clock):
        coordinator.enrich_batch(candidates(12))
        # 12 candidates -> chunks of 5, 5, 2 -> two pauses
        assert fake_clock.sleeps == [0.2, 0.2]

    def test_single_chunk_does_not_sleep(self, coordinator, fake_clock):
        coordinator.enrich_batch(candidates(5))
        assert fake_clock.sleeps == []

    def test_custom_chunking(self, recording_store, fake_clock):
        coordinator = BatchEnrichmentCoordinator(EnrichmentCache(recording_store), chunk_size=2,
                                                 chunk_delay_seconds=1.5, sleep=fake_clock.sleep)
        coordinator.enrich_batch(candidates(5))
        assert fake_clock.sleeps == [1.5, 1.5]

    def test_counters_accumulate_and_reset(self, recording_store, fake_clock):
        counters = EnrichmentCounters()
        coordinator = BatchEnrichmentCoordinator(EnrichmentCache(recording_store), counters=counters,
                                                 sleep=fake_clock.sleep)
        coordinator.enrich_batch(candidates(3))
        coordinator.enrich_batch(candidates(3))

        assert (counters.cache_hits, counters.cache_misses, counters.total) == (3, 3, 6)
        counters.reset()
        assert counters.total == 0

    def test_failures_become_fallback_outcomes(self, coordinator, recording_store):
        recording_store.fail.add("get")
        outcomes = coordinator.enrich_batch(candidates(3))
        assert all(o.source == EnrichmentSource.FALLBACK for o in outcomes)

    def test_enrich_one_counts(self, coordinator):
        coordinator.enrich_one(Candidate(name="Maths"))
        coordinator.enrich_one(Candidate(name="Maths"))
        assert (coordinator.counters.cache_misses, coordinator.counters.cache_hits) == (1, 1)

    def test_chunk_size_must_be_positive(self, recording_store):
        with pytest.raises(ValueError):
            BatchEnrichmentCoordinator(EnrichmentCache(recording_store), chunk_size=0)


class TestUpsertMany:
    def test_imports_with_source_and_pause(self, coordinator, recording_store, fake_clock):
        modules = [make_module(f"Module {i}", ModuleType.VCO) for i in range(7)]

        entries = coordinator.upsert_many(modules, source=EntrySource.MANUAL)

        assert [entry.name for entry in entries] == [m.name for m in modules]
        assert {entry.source for entry in recording_store.entries.values()} == {EntrySource.MANUAL}
        assert fake_clock.sleeps == [pytest.approx(0.2)]
        assert coordinator.counters.total == 0

    def test_untyped_modules_are_classified(self, coordinator, recording_store):
        coordinator.upsert_many([make_module("Quad VCA")])
        entry = recording_store.entries["test-co_quad-vca"]
        assert entry.type == ModuleType.VCA
        assert entry.source == EntrySource.VISION

    def test_storage_error_aborts_import(self, coordinator, recording_store):
        recording_store.fail.add("put")
        with pytest.raises(StorageError):
            coordinator.upsert_many([make_module("Quad VCA")])

    def test_empty_import(self, coordinator, recording_store):
        assert coordinator.upsert_many([]) == []
        assert recording_store.total_calls == 0


class TestStats:
    def test_empty(self):
        stats = calculate_stats([])

        assert stats.total == 0
        assert math.isnan(stats.hit_rate)
        assert math.isnan(stats.avg_latency_ms)
        assert stats.cost_avoided == 0
        assert "n/a" in stats.format()

    def test_all_hits(self, coordinator):
        batch = candidates(4)
        coordinator.enrich_batch(batch)
        stats = coordinator.stats(coordinator.enrich_batch(batch))

        assert stats.hit_rate == 100
        assert stats.cache_misses == 0
        assert stats.cost_avoided == pytest.approx(0.40)

    def test_mixed(self, coordinator):
        coordinator.enrich_batch(candidates(1))
        stats = coordinator.stats(coordinator.enrich_batch(candidates(4)))

        assert (stats.cache_hits, stats.cache_misses) == (1, 3)
        assert stats.hit_rate == pytest.approx(25.0)
        assert stats.avg_latency_ms >= 0
        assert stats.to_dict()["total"] == 4
