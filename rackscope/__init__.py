# ==============================================
# rackscope: Rack Capability Analysis & Module Catalog
# ==============================================
#
# Package Structure (4 Topics + Facade):
#
# rackscope/
# ├── analysis/         # Topic 1: Classify modules, summarize & diagnose racks
# ├── catalog/          # Topic 2: Persistent module catalog + cached racks
# ├── enrichment/       # Topic 3: Cache-aside module lookups, batch fan-out
# ├── racks/            # Topic 4: Random rack selection + ModularGrid scraper
# ├── config.py         # Configuration management
# ├── errors.py         # Exception taxonomy
# ├── log.py            # Logging setup
# ├── assistant.py      # Facade wiring all topics together
# └── cli.py            # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
