# ==============================================
# CLI: Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Command-line interface over RackAssistant.
#
# COMMANDS:
# ---------
# 1. Diagnose a rack from a JSON file (module list, or {"url", "modules"}):
#    python -m rackscope.cli analyze rack.json
#    python -m rackscope.cli analyze rack.json --json
#
# 2. Enrich candidate modules through the catalog:
#    python -m rackscope.cli enrich candidates.json
#
# 3. Get a random rack (cache first, scrape sometimes):
#    python -m rackscope.cli random
#
# 4. Pre-populate the rack cache from the curated list:
#    python -m rackscope.cli seed
#
# 5. Show catalog and rack cache statistics:
#    python -m rackscope.cli stats
#
# 6. Mark a catalog entry as verified by a user:
#    python -m rackscope.cli verify make-noise_maths alice
#
# 7. Bulk-import known modules (vision pass, manual list):
#    python -m rackscope.cli import modules.json --source manual
#
# Exit codes: 0 ok, 1 rackscope error, 2 bad input.
# ==============================================

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List

from rackscope.analysis import Module, ModuleTypeClassifier, RawRack
from rackscope.assistant import RackAssistant
from rackscope.catalog import EntrySource
from rackscope.config import get_config
from rackscope.enrichment import Candidate
from rackscope.errors import RackscopeError
from rackscope.log import configure_logging

logger = logging.getLogger("rackscope.cli")


def _read_json(path: str) -> Any:
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def load_rack(path: str, classifier: ModuleTypeClassifier) -> RawRack:
    """
    Read a rack file. Modules without a "type" are classified from their
    name and description.
    """
    data = _read_json(path)
    if isinstance(data, list):
        data = {"modules": data}

    modules: List[Module] = []
    for raw in data.get("modules", []):
        module = Module.from_dict(raw)
        if not raw.get("type"):
            module = classifier.classify_module(module)
        modules.append(module)

    return RawRack.from_modules(
        url=data.get("url") or str(Path(path).resolve()),
        modules=modules,
        rack_id=data.get("rack_id"),
        rack_name=data.get("rack_name"),
    )


def load_candidates(path: str) -> List[Candidate]:
    data = _read_json(path)
    return [
        Candidate(
            name=raw["name"],
            manufacturer=raw.get("manufacturer") or "Unknown",
            size_hint=raw.get("size_hint", raw.get("hp")),
            description=raw.get("description"),
            confidence=raw.get("confidence", 0.8),
        )
        for raw in data
    ]


def cmd_analyze(assistant: RackAssistant, args) -> int:
    rack = load_rack(args.file, ModuleTypeClassifier())
    report = assistant.analyze(rack)
    if args.json:
        print(json.dumps({
            "capabilities": assistant.analyze_capabilities(rack.modules).to_dict(),
            "analysis": report.to_dict(),
        }, indent=2))
    else:
        print(assistant.summarize(rack, report))
    return 0


def cmd_enrich(assistant: RackAssistant, args) -> int:
    outcomes = assistant.enrich_batch(load_candidates(args.file))
    for outcome in outcomes:
        module = outcome.module
        print(f"{module.manufacturer} {module.name}: {module.type.value} "
              f"[{outcome.source.value}, confidence {outcome.confidence:.2f}]")
    print(assistant.stats(outcomes).format())
    return 0


def cmd_random(assistant: RackAssistant, args) -> int:
    cached = assistant.random_rack()
    print(f"{cached.rack.rack_name or cached.rack_id} ({cached.url})")
    print()
    print(assistant.summarize(cached.rack, cached.analysis))
    return 0


def cmd_seed(assistant: RackAssistant, args) -> int:
    report = assistant.seed_cache()
    print(f"Seeded {report.success}/{report.total} racks ({report.errors} errors)")
    return 0 if report.errors == 0 else 1


def cmd_stats(assistant: RackAssistant, args) -> int:
    catalog = assistant.catalog_stats()
    racks = assistant.rack_cache_statistics()
    print("📊 Catalog")
    print(f"   → Modules: {catalog.total_modules}")
    print(f"   → Average confidence: {catalog.avg_confidence:.2f}")
    for manufacturer, count in sorted(catalog.by_manufacturer.items(), key=lambda item: (-item[1], item[0])):
        print(f"   → {manufacturer}: {count}")
    print("📊 Rack cache")
    print(f"   → Racks: {racks.total_racks}")
    print(f"   → Total uses: {racks.total_use_count} (avg {racks.average_use_count})")
    for rack in racks.most_popular:
        print(f"   → {rack['rack_id']}: {rack['usage_count']} uses")
    return 0


def cmd_import(assistant: RackAssistant, args) -> int:
    modules = [Module.from_dict(raw) for raw in _read_json(args.file)]
    entries = assistant.import_modules(modules, EntrySource(args.source))
    print(f"✓ Imported {len(entries)} modules as {args.source}")
    return 0


def cmd_verify(assistant: RackAssistant, args) -> int:
    entry = assistant.verify_module(args.key, args.user)
    if entry is None:
        print(f"✗ No catalog entry '{args.key}'", file=sys.stderr)
        return 1
    print(f"✓ {entry.key} verified by {len(entry.verified_by)} user(s), confidence {entry.confidence:.2f}")
    return 0


COMMANDS = {
    "analyze": cmd_analyze,
    "enrich": cmd_enrich,
    "random": cmd_random,
    "seed": cmd_seed,
    "stats": cmd_stats,
    "verify": cmd_verify,
    "import": cmd_import,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rackscope",
        description="Eurorack capability analysis and module catalog",
    )
    parser.add_argument("--log-level", default=None, help="override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="diagnose a rack JSON file")
    analyze.add_argument("file")
    analyze.add_argument("--json", action="store_true", help="print machine-readable output")

    enrich = subparsers.add_parser("enrich", help="look up candidate modules in the catalog")
    enrich.add_argument("file")

    subparsers.add_parser("random", help="show a random rack")
    subparsers.add_parser("seed", help="scrape curated racks into the cache")
    subparsers.add_parser("stats", help="catalog and rack cache statistics")

    verify = subparsers.add_parser("verify", help="confirm a catalog entry")
    verify.add_argument("key")
    verify.add_argument("user")

    importer = subparsers.add_parser("import", help="bulk-import known modules into the catalog")
    importer.add_argument("file")
    importer.add_argument("--source", default=EntrySource.VISION.value,
                          choices=[source.value for source in EntrySource])

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(args.log_level or config.log_level)

    try:
        with RackAssistant(config) as assistant:
            return COMMANDS[args.command](assistant, args)
    except (OSError, ValueError, KeyError) as e:
        logger.error("Bad input: %s", e)
        return 2
    except RackscopeError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
