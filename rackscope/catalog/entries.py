# ==============================================
# Catalog Entries (Data Classes)
# ==============================================
#
# PURPOSE:
#   The persisted shapes: one CatalogEntry per known module, one
#   CachedRack per scraped rack. Both serialize to plain dicts so the
#   JSON store and the MongoDB store share one document layout.
#
# KEY NORMALIZATION:
#   normalize_key(name, manufacturer) -> "<manufacturer>_<name>"
#     - lower-case
#     - "/", "\", "#", "?" and whitespace runs -> "-"
#     - runs of "-" collapse to a single "-"
#   These characters are illegal in document ids of the hosted
#   document store the catalog was first built on; the rule is kept so
#   keys stay stable across backends.
#
# ==============================================

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from rackscope.analysis.models import (
    AnalysisReport,
    CapabilitySummary,
    Module,
    ModuleType,
    Port,
    PowerDraw,
    RawRack,
)


_ILLEGAL_KEY_CHARS = re.compile(r"[\\/#?\s]+")
_DASH_RUNS = re.compile(r"-+")


def _clean_key_part(value: str) -> str:
    cleaned = _ILLEGAL_KEY_CHARS.sub("-", value.strip().lower())
    return _DASH_RUNS.sub("-", cleaned)


def normalize_key(name: str, manufacturer: Optional[str] = None) -> str:
    """Catalog key for a (name, manufacturer) pair."""
    return f"{_clean_key_part(manufacturer or 'Unknown')}_{_clean_key_part(name)}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        # pymongo hands back naive UTC datetimes
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromisoformat(value)


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class EntrySource(Enum):
    """Where a catalog entry's data came from."""
    MANUAL = "manual"
    VISION = "vision"
    ENRICHMENT = "enrichment"
    COMMUNITY = "community"


@dataclass
class CatalogEntry:
    """
    One module specification in the persistent catalog.

    Created on the first cache miss; updated on hits (usage_count) and on
    verification (verified_by, confidence). Never deleted.
    """

    # --- Identity ---
    key: str
    name: str
    manufacturer: str

    # --- Classification & specs ---
    type: ModuleType = ModuleType.OTHER
    hp: int = 0
    power: PowerDraw = field(default_factory=PowerDraw)
    inputs: List[Port] = field(default_factory=list)
    outputs: List[Port] = field(default_factory=list)
    description: Optional[str] = None

    # --- Provenance ---
    source: EntrySource = EntrySource.ENRICHMENT
    confidence: float = 0.8
    usage_count: int = 1
    verified_by: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.confidence = clamp_confidence(self.confidence)
        self.usage_count = max(0, int(self.usage_count))

    @classmethod
    def from_module(
        cls,
        module: Module,
        source: EntrySource = EntrySource.ENRICHMENT,
        confidence: float = 0.8,
    ) -> "CatalogEntry":
        return cls(
            key=normalize_key(module.name, module.manufacturer),
            name=module.name,
            manufacturer=module.manufacturer,
            type=module.type,
            hp=module.hp,
            power=module.power,
            inputs=list(module.inputs),
            outputs=list(module.outputs),
            description=module.description,
            source=source,
            confidence=confidence,
        )

    def to_module(self) -> Module:
        return Module(
            name=self.name,
            manufacturer=self.manufacturer,
            type=self.type,
            hp=self.hp,
            power=self.power,
            inputs=tuple(self.inputs),
            outputs=tuple(self.outputs),
            description=self.description,
            module_id=self.key,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "manufacturer": self.manufacturer,
            "type": self.type.value,
            "hp": self.hp,
            "power": self.power.to_dict(),
            "inputs": [port.to_dict() for port in self.inputs],
            "outputs": [port.to_dict() for port in self.outputs],
            "description": self.description,
            "source": self.source.value,
            "confidence": self.confidence,
            "usage_count": self.usage_count,
            "verified_by": list(self.verified_by),
            "created_at": _to_iso(self.created_at),
            "updated_at": _to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogEntry":
        return cls(
            key=data.get("key") or data["_id"],
            name=data["name"],
            manufacturer=data.get("manufacturer") or "Unknown",
            type=ModuleType.parse(data.get("type")),
            hp=int(data.get("hp") or 0),
            power=PowerDraw.from_dict(data.get("power")),
            inputs=[Port.from_dict(p) for p in data.get("inputs", [])],
            outputs=[Port.from_dict(p) for p in data.get("outputs", [])],
            description=data.get("description"),
            source=EntrySource(data.get("source", "enrichment")),
            confidence=data.get("confidence", 0.8),
            usage_count=data.get("usage_count", 0),
            verified_by=list(data.get("verified_by") or []),
            created_at=_from_iso(data.get("created_at")) or utc_now(),
            updated_at=_from_iso(data.get("updated_at")) or utc_now(),
        )


@dataclass
class CachedRack:
    """
    A scraped rack kept for random selection, with its derived
    CapabilitySummary / AnalysisReport and a usage counter that
    weights how often it is picked.
    """
    rack_id: str
    url: str
    rack: RawRack
    capabilities: Optional[CapabilitySummary] = None
    analysis: Optional[AnalysisReport] = None
    usage_count: int = 0
    cached_at: datetime = field(default_factory=utc_now)
    last_used_at: datetime = field(default_factory=utc_now)

    def is_stale(self, ttl_days: int, now: Optional[datetime] = None) -> bool:
        age = (now or utc_now()) - self.cached_at
        return age.total_seconds() > ttl_days * 24 * 60 * 60

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rack_id": self.rack_id,
            "url": self.url,
            "rack": self.rack.to_dict(),
            "capabilities": self.capabilities.to_dict() if self.capabilities else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "usage_count": self.usage_count,
            "cached_at": _to_iso(self.cached_at),
            "last_used_at": _to_iso(self.last_used_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CachedRack":
        capabilities = data.get("capabilities")
        analysis = data.get("analysis")
        return cls(
            rack_id=data.get("rack_id") or data["_id"],
            url=data["url"],
            rack=RawRack.from_dict(data["rack"]),
            capabilities=CapabilitySummary.from_dict(capabilities) if capabilities else None,
            analysis=AnalysisReport.from_dict(analysis) if analysis else None,
            usage_count=max(0, int(data.get("usage_count", 0))),
            cached_at=_from_iso(data.get("cached_at")) or utc_now(),
            last_used_at=_from_iso(data.get("last_used_at")) or utc_now(),
        )
