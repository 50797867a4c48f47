# ==============================================
# Tests for RackSelector
# ==============================================

import random
from collections import Counter

import pytest

from rackscope.errors import RackUnavailableError
from rackscope.racks.selector import (
    CURATED_RACK_URLS,
    FALLBACK_RACK_URL,
    RackSelector,
    SelectorState,
    weighted_choice,
)

from conftest import FakeScraper, RecordingStore, make_cached_rack


def build_selector(store, scraper, clock, **kwargs):
    kwargs.setdefault("rng", random.Random(1234))
    return RackSelector(store, scraper, clock=clock, sleep=clock.sleep, **kwargs)


class TestWeightedSampling:
    def test_frequencies_follow_usage_plus_one(self, fake_clock, fake_scraper):
        usage = {"a": 0, "b": 1, "c": 3, "d": 5}
        store = RecordingStore([make_cached_rack(rack_id, count) for rack_id, count in usage.items()],
                               frozen_recent=True)
        selector = build_selector(store, fake_scraper, fake_clock, cache_probability=1.0)

        trials = 20000
        picks = Counter(selector.select_random_rack().rack_id for _ in range(trials))

        total_weight = sum(count + 1 for count in usage.values())
        for rack_id, count in usage.items():
            expected = (count + 1) / total_weight
            assert picks[rack_id] / trials == pytest.approx(expected, abs=0.02)
        assert fake_scraper.calls == []
        assert selector.state.cache_hits == trials

    def test_weighted_choice_single(self):
        only = make_cached_rack("x")
        assert weighted_choice([only], random.Random(0)) is only

    def test_weighted_choice_empty(self):
        with pytest.raises(ValueError):
            weighted_choice([], random.Random(0))


class TestSelectRandomRack:
    def test_cache_hit_increments_usage(self, fake_clock, fake_scraper):
        store = RecordingStore([make_cached_rack("a", 2)])
        selector = build_selector(store, fake_scraper, fake_clock, cache_probability=1.0)

        chosen = selector.select_random_rack()

        assert chosen.rack_id == "a"
        assert store.racks["a"].usage_count == 3
        assert selector.state.statistics() == {"cache_hits": 1, "cache_misses": 0, "hit_rate": "100%"}

    def test_increment_failure_still_returns_rack(self, fake_clock, fake_scraper):
        store = RecordingStore([make_cached_rack("a")])
        store.fail.add("increment_rack_usage")
        selector = build_selector(store, fake_scraper, fake_clock, cache_probability=1.0)

        assert selector.select_random_rack().rack_id == "a"
        assert fake_scraper.calls == []

    def test_empty_cache_scrapes(self, fake_clock, fake_scraper, recording_store):
        selector = build_selector(recording_store, fake_scraper, fake_clock, cache_probability=1.0)

        cached = selector.select_random_rack()

        assert fake_scraper.calls == [cached.url]
        assert cached.url in CURATED_RACK_URLS
        assert cached.rack_id in recording_store.racks
        assert cached.capabilities.has_vco
        assert cached.analysis is not None
        assert selector.state.cache_misses == 1

    def test_scrape_branch_when_probability_zero(self, fake_clock, fake_scraper):
        store = RecordingStore([make_cached_rack("a")])
        selector = build_selector(store, fake_scraper, fake_clock, cache_probability=0.0)

        selector.select_random_rack()

        assert len(fake_scraper.calls) == 1
        assert store.calls["list_recent"] == 0

    def test_scrapes_are_rate_limited(self, fake_clock, fake_scraper, recording_store):
        selector = build_selector(recording_store, fake_scraper, fake_clock, cache_probability=0.0)

        selector.select_random_rack()
        fake_clock.advance(2.0)
        selector.select_random_rack()
        fake_clock.advance(10.0)
        selector.select_random_rack()

        assert fake_clock.sleeps == [pytest.approx(3.0)]

    def test_shared_state_shares_rate_limit(self, fake_clock, recording_store):
        state = SelectorState()
        first = build_selector(recording_store, FakeScraper(), fake_clock, state=state, cache_probability=0.0)
        second = build_selector(recording_store, FakeScraper(), fake_clock, state=state, cache_probability=0.0)

        first.select_random_rack()
        second.select_random_rack()

        assert fake_clock.sleeps == [pytest.approx(5.0)]
        state.reset()
        assert state.last_scrape_time is None
        assert state.statistics()["hit_rate"] == "0%"

    def test_fallback_from_cache(self, fake_clock, recording_store):
        fallback = make_cached_rack("2383104")
        recording_store.racks[fallback.rack_id] = fallback
        scraper = FakeScraper(fail_all=True)
        selector = build_selector(recording_store, scraper, fake_clock, cache_probability=0.0)

        assert selector.select_random_rack() is fallback
        assert len(scraper.calls) == 1

    def test_fallback_scraped_when_not_cached(self, fake_clock, recording_store):
        failing = [url for url in CURATED_RACK_URLS if url != FALLBACK_RACK_URL]
        scraper = FakeScraper(failing=failing)
        selector = build_selector(recording_store, scraper, fake_clock, cache_probability=0.0,
                                  rng=random.Random(3))
        # Force a non-fallback first pick
        selector.sources = tuple(failing)
        selector.fallback_url = FALLBACK_RACK_URL

        cached = selector.select_random_rack()

        assert cached.url == FALLBACK_RACK_URL
        assert scraper.calls[-1] == FALLBACK_RACK_URL
        assert "2383104" in recording_store.racks

    def test_store_failure_uses_fallback(self, fake_clock, fake_scraper, recording_store):
        recording_store.fail.add("list_recent")
        selector = build_selector(recording_store, fake_scraper, fake_clock, cache_probability=1.0)

        assert selector.select_random_rack().url == FALLBACK_RACK_URL

    def test_total_failure_raises(self, fake_clock, recording_store):
        selector = build_selector(recording_store, FakeScraper(fail_all=True), fake_clock,
                                  cache_probability=0.0)
        with pytest.raises(RackUnavailableError, match="Unable to retrieve any rack"):
            selector.select_random_rack()

    def test_requires_sources(self, fake_clock, recording_store, fake_scraper):
        with pytest.raises(ValueError):
            build_selector(recording_store, fake_scraper, fake_clock, sources=())


class TestSeedCache:
    def test_seeds_every_curated_rack(self, fake_clock, fake_scraper, recording_store):
        selector = build_selector(recording_store, fake_scraper, fake_clock)

        report = selector.seed_cache()

        assert (report.total, report.success, report.errors) == (15, 15, 0)
        assert len(recording_store.racks) == 15
        # Rate limited between every scrape after the first
        assert len(fake_clock.sleeps) == 14

    def test_skips_cached_and_survives_failures(self, fake_clock, recording_store):
        recording_store.racks["2383104"] = make_cached_rack("2383104")
        scraper = FakeScraper(failing=[CURATED_RACK_URLS[1]])
        selector = build_selector(recording_store, scraper, fake_clock)

        report = selector.seed_cache()

        assert (report.success, report.errors) == (14, 1)
        assert FALLBACK_RACK_URL not in scraper.calls
        assert len(scraper.calls) == 14


class TestCacheMaintenance:
    def test_cache_statistics(self, fake_clock, fake_scraper):
        store = RecordingStore([make_cached_rack("a", 1), make_cached_rack("b", 5), make_cached_rack("c", 0)])
        stats = build_selector(store, fake_scraper, fake_clock).cache_statistics()

        assert stats.total_racks == 3
        assert stats.total_use_count == 6
        assert stats.average_use_count == 2.0
        assert [r["rack_id"] for r in stats.most_popular] == ["b", "a", "c"]

    def test_cache_statistics_empty(self, fake_clock, fake_scraper, recording_store):
        assert build_selector(recording_store, fake_scraper, fake_clock).cache_statistics().total_racks == 0

    def test_cleanup_stale(self, fake_clock, fake_scraper):
        store = RecordingStore([make_cached_rack("fresh"), make_cached_rack("old", age_days=45)])
        selector = build_selector(store, fake_scraper, fake_clock)

        assert selector.cleanup_stale() == 1
        assert list(store.racks) == ["fresh"]


class TestWithJsonStore:
    def test_expired_fallback_is_scraped_once(self, fake_clock, json_store):
        json_store.save_rack(make_cached_rack("2383104", usage_count=9, age_days=40))
        scraper = FakeScraper(failing=[CURATED_RACK_URLS[1]])
        selector = build_selector(json_store, scraper, fake_clock, cache_probability=0.0,
                                  sources=(CURATED_RACK_URLS[1],))

        racks = [selector.select_random_rack() for _ in range(3)]

        assert [rack.rack_id for rack in racks] == ["2383104"] * 3
        assert scraper.calls.count(FALLBACK_RACK_URL) == 1
        cached = json_store.get_rack("2383104")
        assert cached is not None
        assert cached.usage_count == 0

    def test_seed_rescrapes_expired_rack_only_once(self, fake_clock, json_store):
        json_store.save_rack(make_cached_rack("2383104", age_days=40))
        scraper = FakeScraper()
        selector = build_selector(json_store, scraper, fake_clock, sources=(FALLBACK_RACK_URL,))

        selector.seed_cache()
        selector.seed_cache()

        assert scraper.calls == [FALLBACK_RACK_URL]
