# ==============================================
# TOPIC 1: ANALYSIS
# ==============================================
#
# This package turns a list of modules into a diagnosis of the rack.
#
# Three-step process:
#   Step 1 (Classification): name/description text -> ModuleType
#   Step 2 (Capabilities):   module list -> CapabilitySummary
#   Step 3 (Inference):      summary + modules -> AnalysisReport
#
# Modules:
# --------
# - models.py        -> Module, RawRack, CapabilitySummary, AnalysisReport
# - classifier.py    -> Ordered substring table -> ModuleType
# - capabilities.py  -> Single-pass aggregation into a CapabilitySummary
# - techniques.py    -> Domain rules -> AnalysisReport, plus summarize()
# - thresholds.py    -> Named, overridable thresholds
#
# ==============================================

from .models import (
    AnalysisReport,
    CapabilitySummary,
    Module,
    ModuleType,
    Port,
    Position,
    PowerDraw,
    RackRow,
    RawRack,
    SignalType,
    VIDEO_MODULE_TYPES,
)
from .classifier import ModuleTypeClassifier, MODULE_TYPE_PATTERNS, classify_module_type
from .capabilities import CapabilityAnalyzer, analyze_capabilities
from .techniques import TechniqueInferenceEngine, analyze_rack, summarize
from .thresholds import AnalysisThresholds

__all__ = [
    "AnalysisReport",
    "AnalysisThresholds",
    "CapabilityAnalyzer",
    "CapabilitySummary",
    "MODULE_TYPE_PATTERNS",
    "Module",
    "ModuleType",
    "ModuleTypeClassifier",
    "Port",
    "Position",
    "PowerDraw",
    "RackRow",
    "RawRack",
    "SignalType",
    "TechniqueInferenceEngine",
    "VIDEO_MODULE_TYPES",
    "analyze_capabilities",
    "analyze_rack",
    "classify_module_type",
    "summarize",
]
