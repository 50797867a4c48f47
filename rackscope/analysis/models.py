# ==============================================
# Models (Data Classes)
# ==============================================
#
# PURPOSE:
#   Data classes that represent modules, racks and the OUTPUT of
#   rack analysis. Every other topic speaks in these types.
#
# ENUMS:
# ------
# - ModuleType(Enum)   closed functional taxonomy (audio + video + Other)
# - SignalType(Enum)   audio, cv, gate, clock, video
#
# CLASSES:
# --------
# - Port, PowerDraw, Position   small value objects
# - Module                      one hardware module (frozen)
# - RackRow, RawRack            a scraped or assembled rack
# - CapabilitySummary           aggregate of a module list (frozen)
# - AnalysisReport              diagnosis produced from a summary
#
# All classes provide to_dict() / from_dict() so the catalog stores
# can persist them as plain JSON / BSON documents.
# ==============================================

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple


class ModuleType(Enum):
    """
    Functional category of a module.

    Audio categories mirror classic subtractive building blocks; video
    categories follow the LZX-style video synthesis taxonomy.
    """
    # --- Audio ---
    VCO = "VCO"
    VCF = "VCF"
    VCA = "VCA"
    LFO = "LFO"
    EG = "EG"
    SEQUENCER = "Sequencer"
    UTILITY = "Utility"
    EFFECT = "Effect"
    MIXER = "Mixer"
    MIDI = "MIDI"
    CLOCK = "Clock"
    LOGIC = "Logic"
    RANDOM = "Random"

    # --- Video ---
    VIDEO = "Video"
    VIDEO_OSCILLATOR = "VideoOscillator"
    RAMP_GENERATOR = "RampGenerator"
    SHAPE_GENERATOR = "ShapeGenerator"
    SYNC_GENERATOR = "SyncGenerator"
    VIDEO_ENCODER = "VideoEncoder"
    VIDEO_DECODER = "VideoDecoder"
    COLORIZER = "Colorizer"
    KEYER = "Keyer"
    VIDEO_MIXER = "VideoMixer"
    VIDEO_PROCESSOR = "VideoProcessor"
    VIDEO_UTILITY = "VideoUtility"
    VIDEO_DISPLAY = "VideoDisplay"

    OTHER = "Other"

    @property
    def is_video(self) -> bool:
        return self in VIDEO_MODULE_TYPES

    @classmethod
    def parse(cls, value: Any) -> "ModuleType":
        """Lenient conversion from stored values; unknown strings become OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


VIDEO_MODULE_TYPES = frozenset({
    ModuleType.VIDEO,
    ModuleType.VIDEO_OSCILLATOR,
    ModuleType.RAMP_GENERATOR,
    ModuleType.SHAPE_GENERATOR,
    ModuleType.SYNC_GENERATOR,
    ModuleType.VIDEO_ENCODER,
    ModuleType.VIDEO_DECODER,
    ModuleType.COLORIZER,
    ModuleType.KEYER,
    ModuleType.VIDEO_MIXER,
    ModuleType.VIDEO_PROCESSOR,
    ModuleType.VIDEO_UTILITY,
    ModuleType.VIDEO_DISPLAY,
})


class SignalType(Enum):
    AUDIO = "audio"
    CV = "cv"
    GATE = "gate"
    CLOCK = "clock"
    VIDEO = "video"


@dataclass(frozen=True)
class Port:
    """A named jack on a module panel."""
    name: str
    signal_type: SignalType = SignalType.CV
    voltage_range: Optional[str] = None  # e.g. "-5V to +5V", "0-1V"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "signal_type": self.signal_type.value,
            "voltage_range": self.voltage_range,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Port":
        return cls(
            name=data["name"],
            signal_type=SignalType(data.get("signal_type", "cv")),
            voltage_range=data.get("voltage_range"),
        )


@dataclass(frozen=True)
class PowerDraw:
    """Current draw per rail in mA. None means 'not published'."""
    positive_12v: Optional[int] = None
    negative_12v: Optional[int] = None
    positive_5v: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "positive_12v": self.positive_12v,
            "negative_12v": self.negative_12v,
            "positive_5v": self.positive_5v,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PowerDraw":
        data = data or {}
        return cls(
            positive_12v=data.get("positive_12v"),
            negative_12v=data.get("negative_12v"),
            positive_5v=data.get("positive_5v"),
        )


@dataclass(frozen=True)
class Position:
    row: int = 0
    column: int = 0


@dataclass(frozen=True)
class Module:
    """
    One hardware module in a rack.

    Frozen: a module only changes when its name/description text changes,
    and that goes through ModuleTypeClassifier.with_text() so the type is
    recomputed along with it.
    """

    # --- Identity ---
    name: str
    manufacturer: str = "Unknown"
    type: ModuleType = ModuleType.OTHER

    # --- Physical ---
    hp: int = 0  # Horizontal Pitch (width in Eurorack units)
    power: PowerDraw = field(default_factory=PowerDraw)
    depth_mm: Optional[int] = None

    # --- Panel ---
    inputs: Tuple[Port, ...] = ()
    outputs: Tuple[Port, ...] = ()

    # --- Descriptive ---
    description: Optional[str] = None
    special_capabilities: Tuple[str, ...] = ()  # e.g. ("through-zero FM",)
    position: Optional[Position] = None
    module_id: Optional[str] = None
    source_url: Optional[str] = None

    @property
    def is_video(self) -> bool:
        return self.type.is_video

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "manufacturer": self.manufacturer,
            "type": self.type.value,
            "hp": self.hp,
            "power": self.power.to_dict(),
            "depth_mm": self.depth_mm,
            "inputs": [port.to_dict() for port in self.inputs],
            "outputs": [port.to_dict() for port in self.outputs],
            "description": self.description,
            "special_capabilities": list(self.special_capabilities),
            "position": (
                {"row": self.position.row, "column": self.position.column}
                if self.position else None
            ),
            "module_id": self.module_id,
            "source_url": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Module":
        position = data.get("position")
        return cls(
            name=data["name"],
            manufacturer=data.get("manufacturer") or "Unknown",
            type=ModuleType.parse(data.get("type")),
            hp=int(data.get("hp") or 0),
            power=PowerDraw.from_dict(data.get("power")),
            depth_mm=data.get("depth_mm"),
            inputs=tuple(Port.from_dict(p) for p in data.get("inputs", [])),
            outputs=tuple(Port.from_dict(p) for p in data.get("outputs", [])),
            description=data.get("description"),
            special_capabilities=tuple(data.get("special_capabilities", [])),
            position=Position(**position) if position else None,
            module_id=data.get("module_id"),
            source_url=data.get("source_url"),
        )


STANDARD_ROW_HP = 168  # 2x 84HP rows


@dataclass
class RackRow:
    row_number: int
    modules: List[Module] = field(default_factory=list)
    max_hp: int = STANDARD_ROW_HP

    @property
    def total_hp(self) -> int:
        return sum(module.hp for module in self.modules)


@dataclass
class RawRack:
    """
    A rack as produced by the scrape collaborator (or assembled by hand).

    `modules` is the flat, ordered list; `rows` groups the same modules
    by their panel row.
    """
    url: str
    modules: List[Module] = field(default_factory=list)
    rows: List[RackRow] = field(default_factory=list)
    rack_id: Optional[str] = None
    rack_name: Optional[str] = None
    user_name: Optional[str] = None

    @classmethod
    def from_modules(
        cls,
        url: str,
        modules: List[Module],
        rack_id: Optional[str] = None,
        rack_name: Optional[str] = None,
    ) -> "RawRack":
        """Build a rack and group its modules into rows by position.row."""
        by_row: Dict[int, List[Module]] = {}
        for module in modules:
            row = module.position.row if module.position else 0
            by_row.setdefault(row, []).append(module)

        rows = [RackRow(row_number=number, modules=members)
                for number, members in sorted(by_row.items())]
        return cls(url=url, modules=list(modules), rows=rows,
                   rack_id=rack_id, rack_name=rack_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "rack_id": self.rack_id,
            "rack_name": self.rack_name,
            "user_name": self.user_name,
            "modules": [module.to_dict() for module in self.modules],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawRack":
        rack = cls.from_modules(
            url=data["url"],
            modules=[Module.from_dict(m) for m in data.get("modules", [])],
            rack_id=data.get("rack_id"),
            rack_name=data.get("rack_name"),
        )
        rack.user_name = data.get("user_name")
        return rack


@dataclass(frozen=True)
class CapabilitySummary:
    """
    Aggregate view of what a module list can do.

    Always recomputed from scratch by CapabilityAnalyzer; never mutated.
    """

    # --- Audio presence ---
    has_vco: bool = False
    has_vcf: bool = False
    has_vca: bool = False
    has_lfo: bool = False
    has_envelope: bool = False
    has_sequencer: bool = False
    has_effects: bool = False

    # --- Video presence ---
    has_video_sync: bool = False
    has_ramp_generator: bool = False
    has_colorizer: bool = False
    has_keyer: bool = False
    has_video_encoder: bool = False
    has_video_decoder: bool = False
    video_module_types: Tuple[ModuleType, ...] = ()
    video_sync_source: Optional[str] = None
    is_video_rack: bool = False
    is_hybrid_rack: bool = False

    # --- General ---
    module_types: Tuple[ModuleType, ...] = ()
    total_hp: int = 0
    total_power: PowerDraw = field(default_factory=lambda: PowerDraw(0, 0, 0))

    def has_type(self, module_type: ModuleType) -> bool:
        return module_type in self.module_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_vco": self.has_vco,
            "has_vcf": self.has_vcf,
            "has_vca": self.has_vca,
            "has_lfo": self.has_lfo,
            "has_envelope": self.has_envelope,
            "has_sequencer": self.has_sequencer,
            "has_effects": self.has_effects,
            "has_video_sync": self.has_video_sync,
            "has_ramp_generator": self.has_ramp_generator,
            "has_colorizer": self.has_colorizer,
            "has_keyer": self.has_keyer,
            "has_video_encoder": self.has_video_encoder,
            "has_video_decoder": self.has_video_decoder,
            "video_module_types": [t.value for t in self.video_module_types],
            "video_sync_source": self.video_sync_source,
            "is_video_rack": self.is_video_rack,
            "is_hybrid_rack": self.is_hybrid_rack,
            "module_types": [t.value for t in self.module_types],
            "total_hp": self.total_hp,
            "total_power": self.total_power.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapabilitySummary":
        flags = {
            name: bool(data.get(name, False))
            for name in (
                "has_vco", "has_vcf", "has_vca", "has_lfo", "has_envelope",
                "has_sequencer", "has_effects", "has_video_sync",
                "has_ramp_generator", "has_colorizer", "has_keyer",
                "has_video_encoder", "has_video_decoder",
                "is_video_rack", "is_hybrid_rack",
            )
        }
        return cls(
            video_module_types=tuple(ModuleType.parse(t) for t in data.get("video_module_types", [])),
            video_sync_source=data.get("video_sync_source"),
            module_types=tuple(ModuleType.parse(t) for t in data.get("module_types", [])),
            total_hp=int(data.get("total_hp", 0)),
            total_power=PowerDraw.from_dict(data.get("total_power")),
            **flags,
        )


@dataclass
class AnalysisReport:
    """Diagnosis of a rack: gaps, advice, unlocked techniques, hazards."""
    missing_fundamentals: List[ModuleType] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    techniques_possible: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "missing_fundamentals": [t.value for t in self.missing_fundamentals],
            "suggestions": list(self.suggestions),
            "techniques_possible": list(self.techniques_possible),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisReport":
        return cls(
            missing_fundamentals=[ModuleType.parse(t) for t in data.get("missing_fundamentals", [])],
            suggestions=list(data.get("suggestions", [])),
            techniques_possible=list(data.get("techniques_possible", [])),
            warnings=list(data.get("warnings", [])),
        )
