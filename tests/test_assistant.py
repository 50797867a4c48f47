# ==============================================
# Tests for the RackAssistant facade and the CLI
# ==============================================

import json
import random

import pytest

from rackscope.analysis.models import Module, ModuleType
from rackscope.assistant import RackAssistant
from rackscope.catalog.entries import EntrySource
from rackscope.catalog.json_store import JsonCatalogStore
from rackscope.cli import load_candidates, load_rack, main
from rackscope.analysis.classifier import ModuleTypeClassifier
from rackscope.config import AppConfig, CatalogConfig, reset_config
from rackscope.enrichment.cache import Candidate, EnrichmentSource

from conftest import FakeScraper, make_cached_rack


@pytest.fixture
def config(tmp_path):
    return AppConfig(catalog=CatalogConfig(directory=str(tmp_path / "catalog")))


@pytest.fixture
def assistant(config, fake_clock):
    with RackAssistant(config, scraper=FakeScraper(), rng=random.Random(5),
                       sleep=fake_clock.sleep) as assistant:
        yield assistant


class TestRackAssistant:
    def test_analysis_operations(self, assistant, voice_modules):
        caps = assistant.analyze_capabilities(voice_modules)
        report = assistant.analyze(voice_modules)

        assert caps.has_vco and not caps.is_hybrid_rack
        assert ModuleType.VCO not in report.missing_fundamentals

    def test_enrichment_round_trip(self, assistant):
        candidate = Candidate(name="Maths", manufacturer="Make Noise", description="envelope")

        first = assistant.enrich_one(candidate)
        outcomes = assistant.enrich_batch([candidate, Candidate(name="Quad VCA")])

        assert first.source == EnrichmentSource.ENRICHMENT
        assert [o.cache_hit for o in outcomes] == [True, False]
        assert assistant.stats(outcomes).hit_rate == pytest.approx(50.0)
        assert assistant.counters.total == 3

    def test_verify_module(self, assistant):
        assistant.enrich_one(Candidate(name="Maths", manufacturer="Make Noise"))
        entry = assistant.verify_module("make-noise_maths", "alice")
        assert entry.verified_by == ["alice"]
        assert assistant.catalog_stats().total_modules == 1

    def test_import_modules_then_hit(self, assistant):
        assistant.import_modules([Module(name="Maths", manufacturer="Make Noise", type=ModuleType.EG)])

        outcome = assistant.enrich_one(Candidate(name="Maths", manufacturer="Make Noise"))

        assert outcome.cache_hit
        assert outcome.entry.source == EntrySource.VISION
        assert assistant.catalog_stats().by_source == {"vision": 1}

    def test_random_rack_and_seed(self, assistant):
        report = assistant.seed_cache()
        rack = assistant.random_rack()

        assert report.success == 15
        assert rack.rack_id
        assert assistant.rack_cache_statistics().total_racks == 15

    def test_summarize_computes_report_when_missing(self, assistant):
        cached = make_cached_rack("1")
        assert "Module Breakdown:" in assistant.summarize(cached.rack)

    def test_injected_store_is_not_closed(self, config, recording_store):
        RackAssistant(config, store=recording_store, scraper=FakeScraper()).close()
        assert recording_store.calls["close"] == 0

    def test_opens_json_store_from_config(self, config):
        with RackAssistant(config, scraper=FakeScraper()) as assistant:
            assert isinstance(assistant._store, JsonCatalogStore)


class TestCli:
    @pytest.fixture(autouse=True)
    def cli_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CATALOG_BACKEND", "json")
        monkeypatch.setenv("CATALOG_DIR", str(tmp_path / "catalog"))
        reset_config()
        yield
        reset_config()

    def write_json(self, tmp_path, name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    def test_load_rack_classifies_untyped_modules(self, tmp_path):
        path = self.write_json(tmp_path, "rack.json", [
            {"name": "Quad VCA", "hp": 12},
            {"name": "Mystery", "type": "VCO"},
        ])
        rack = load_rack(path, ModuleTypeClassifier())
        assert [m.type for m in rack.modules] == [ModuleType.VCA, ModuleType.VCO]

    def test_load_candidates(self, tmp_path):
        path = self.write_json(tmp_path, "c.json", [{"name": "Maths", "manufacturer": "Make Noise", "hp": 20}])
        assert load_candidates(path) == [Candidate(name="Maths", manufacturer="Make Noise", size_hint=20)]

    def test_analyze_command(self, tmp_path, capsys):
        path = self.write_json(tmp_path, "rack.json", {"url": "local", "modules": [
            {"name": "Complex Oscillator"}, {"name": "Ladder Filter"}, {"name": "Quad VCA"},
        ]})

        assert main(["analyze", path]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Your rack contains 3 modules")
        assert "Classic voice architecture" in out

    def test_enrich_and_verify_commands(self, tmp_path, capsys):
        path = self.write_json(tmp_path, "c.json", [{"name": "Maths", "manufacturer": "Make Noise"}])

        assert main(["enrich", path]) == 0
        assert main(["verify", "make-noise_maths", "alice"]) == 0
        assert main(["verify", "nobody_nothing", "alice"]) == 1
        assert "verified by 1 user(s)" in capsys.readouterr().out

    def test_import_command(self, tmp_path, capsys):
        path = self.write_json(tmp_path, "modules.json", [
            {"name": "Maths", "manufacturer": "Make Noise", "type": "EG", "hp": 20},
            {"name": "Quad VCA", "manufacturer": "Intellijel", "hp": 12},
        ])

        assert main(["import", path, "--source", "manual"]) == 0
        assert "Imported 2 modules as manual" in capsys.readouterr().out

        store = JsonCatalogStore(str(tmp_path / "catalog"))
        assert store.get("intellijel_quad-vca").type == ModuleType.VCA
        assert {entry.source.value for entry in store.list_entries()} == {"manual"}

    def test_missing_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.json")]) == 2
