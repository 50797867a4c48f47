# ==============================================
# TechniqueInferenceEngine
# ==============================================
#
# PURPOSE:
#   Turn a CapabilitySummary (plus the module list it came from) into
#   an AnalysisReport: missing fundamentals, suggestions, possible
#   techniques and warnings. This is the "brain" of rack diagnosis.
#
# CLASS: TechniqueInferenceEngine
# -------------------------------
#   Stateless: pure function of (summary, modules).
#
#   - analyze(rack_or_modules, capabilities=None) -> AnalysisReport
#       Rules are additive; their order only affects presentation:
#
#       RULE 1: FUNDAMENTALS (skipped for video-dominant racks)
#         Missing VCO / VCF / VCA / EG -> missing fundamental + suggestion.
#         Missing VCA also warns (no amplitude control).
#
#       RULE 2: AUDIO TECHNIQUES
#         VCF                -> Subtractive synthesis
#         VCO + VCF + VCA    -> Classic voice architecture
#         2+ VCOs            -> FM synthesis, Cross-modulation
#         LFO                -> Modulation effects, Tremolo & vibrato
#         Sequencer          -> Generative sequences, Melodic patterns
#         Effect             -> Effects processing
#         Random             -> Generative patching, Chaotic systems
#
#       RULE 3: VIDEO (video-dominant or hybrid racks)
#         No sync generator  -> missing fundamental + warnings + suggestion
#         Sync present       -> "distribute it first" suggestion
#         No encoder / ramp  -> warning + suggestion each
#         Ramp + colorizer, keyer, decoder, ramp + processor,
#         sync + ramp + encoder -> named techniques
#         Hybrid             -> voltage mismatch warning + cross-mod tip
#
#       RULE 4: GLOBAL
#         +12V draw > max_positive_12v_ma -> PSU warning
#         total HP > standard_case_hp     -> oversize warning
#
# FUNCTION: summarize(rack, report) -> str
#   Deterministic human-readable summary of a rack and its report.
#
# ==============================================

from typing import Dict, List, Optional, Sequence, Union

from .capabilities import CapabilityAnalyzer
from .models import AnalysisReport, CapabilitySummary, Module, ModuleType, RawRack
from .thresholds import AnalysisThresholds


# --- Technique names ---
SUBTRACTIVE_SYNTHESIS = "Subtractive synthesis"
CLASSIC_VOICE = "Classic voice architecture"
FM_SYNTHESIS = "FM synthesis"
CROSS_MODULATION = "Cross-modulation"
MODULATION_EFFECTS = "Modulation effects"
TREMOLO_VIBRATO = "Tremolo & vibrato"
GENERATIVE_SEQUENCES = "Generative sequences"
MELODIC_PATTERNS = "Melodic patterns"
EFFECTS_PROCESSING = "Effects processing"
GENERATIVE_PATCHING = "Generative patching"
CHAOTIC_SYSTEMS = "Chaotic systems"
GEOMETRIC_COLOR_PATTERNS = "Geometric color patterns (ramps + colorization)"
VIDEO_COMPOSITING = "Video compositing & keying effects"
EXTERNAL_VIDEO_PROCESSING = "External video processing & effects"
RASTER_FEEDBACK = "Raster manipulation & feedback loops"
COMPLETE_VIDEO_WORKFLOW = "Complete video synthesis workflow (sync -> ramps -> processing -> output)"
AUDIO_VISUAL_CROSS_MODULATION = "Audio-visual cross-modulation (experimental)"

# --- Warnings ---
NO_VCA_WARNING = "No VCA detected - you may not be able to control amplitude"
NO_SYNC_WARNING = "NO SYNC GENERATOR - video system will not function without master sync"
SYNC_TIMING_WARNING = "Video synthesis requires synchronized timing across all modules (unlike audio)"
NO_ENCODER_WARNING = "No video encoder detected - you may not be able to output to HDMI/composite displays"
NO_RAMP_WARNING = "No ramp generator - ramps are the core building block of video synthesis (like VCOs for audio)"
FEEDBACK_WARNING = "Video feedback can be unstable/unpredictable - start with subtle amounts"
HYBRID_VOLTAGE_WARNING = "HYBRID RACK: audio modules output ±5V, video expects 0-1V (signals will clip/saturate)"

Rackish = Union[RawRack, Sequence[Module]]


class TechniqueInferenceEngine:
    """
    Applies domain rules to a CapabilitySummary to produce an AnalysisReport.
    """

    def __init__(self, thresholds: Optional[AnalysisThresholds] = None):
        self.thresholds = thresholds or AnalysisThresholds()
        self._capability_analyzer = CapabilityAnalyzer(self.thresholds)

    def analyze(
        self,
        rack: Rackish,
        capabilities: Optional[CapabilitySummary] = None,
    ) -> AnalysisReport:
        """
        Diagnose a rack.

        Args:
            rack: a RawRack or a plain module list
            capabilities: precomputed summary for the same modules; computed
                          here when omitted

        Returns:
            AnalysisReport
        """
        modules = list(rack.modules if isinstance(rack, RawRack) else rack)
        caps = capabilities or self._capability_analyzer.analyze_capabilities(modules)
        report = AnalysisReport()

        if not caps.is_video_rack:
            self._check_fundamentals(caps, report)

        self._audio_techniques(caps, modules, report)

        if caps.is_video_rack or caps.is_hybrid_rack:
            self._video_rules(caps, report)

        self._global_rules(caps, report)
        return report

    def _check_fundamentals(self, caps: CapabilitySummary, report: AnalysisReport) -> None:
        if not caps.has_vco:
            report.missing_fundamentals.append(ModuleType.VCO)
            report.suggestions.append("Add a VCO (oscillator) to generate sound sources")

        if not caps.has_vcf:
            report.missing_fundamentals.append(ModuleType.VCF)
            report.suggestions.append("Add a VCF (filter) for subtractive synthesis")

        if not caps.has_vca:
            report.missing_fundamentals.append(ModuleType.VCA)
            report.suggestions.append("Add a VCA (amplifier) to shape the level of your voices")
            report.warnings.append(NO_VCA_WARNING)

        if not caps.has_envelope:
            report.missing_fundamentals.append(ModuleType.EG)
            report.suggestions.append("Add an envelope generator for dynamic control")

    def _audio_techniques(
        self,
        caps: CapabilitySummary,
        modules: List[Module],
        report: AnalysisReport,
    ) -> None:
        techniques = report.techniques_possible

        if caps.has_vcf:
            techniques.append(SUBTRACTIVE_SYNTHESIS)

        if caps.has_vco and caps.has_vcf and caps.has_vca:
            techniques.append(CLASSIC_VOICE)

        vco_count = sum(1 for module in modules if module.type == ModuleType.VCO)
        if vco_count >= 2:
            techniques.extend([FM_SYNTHESIS, CROSS_MODULATION])

        if caps.has_lfo:
            techniques.extend([MODULATION_EFFECTS, TREMOLO_VIBRATO])

        if caps.has_sequencer:
            techniques.extend([GENERATIVE_SEQUENCES, MELODIC_PATTERNS])

        if caps.has_effects:
            techniques.append(EFFECTS_PROCESSING)

        if caps.has_type(ModuleType.RANDOM):
            techniques.extend([GENERATIVE_PATCHING, CHAOTIC_SYSTEMS])

    def _video_rules(self, caps: CapabilitySummary, report: AnalysisReport) -> None:
        # Video needs shared timing; audio can free-run
        if not caps.has_video_sync:
            report.missing_fundamentals.append(ModuleType.SYNC_GENERATOR)
            report.warnings.append(NO_SYNC_WARNING)
            report.warnings.append(SYNC_TIMING_WARNING)
            report.suggestions.append(
                "Add a sync generator (LZX ESG3, Visual Cortex, Chromagnon, or equivalent)"
            )
        elif caps.video_sync_source:
            report.suggestions.append(
                f"Sync provided by {caps.video_sync_source} - distribute to all video modules first"
            )

        if not caps.has_video_encoder:
            report.warnings.append(NO_ENCODER_WARNING)
            report.suggestions.append(
                "Add a video encoder (LZX ESG3, Visual Cortex) to convert signals to standard video formats"
            )

        if not caps.has_ramp_generator:
            report.warnings.append(NO_RAMP_WARNING)
            report.suggestions.append(
                "Add ramp generators (LZX Angles/Scrolls, Syntonie Rampes) for creating visual patterns"
            )

        techniques = report.techniques_possible
        if caps.has_ramp_generator and caps.has_colorizer:
            techniques.append(GEOMETRIC_COLOR_PATTERNS)

        if caps.has_keyer:
            techniques.append(VIDEO_COMPOSITING)

        if caps.has_video_decoder:
            techniques.append(EXTERNAL_VIDEO_PROCESSING)

        if caps.has_ramp_generator and ModuleType.VIDEO_PROCESSOR in caps.video_module_types:
            techniques.append(RASTER_FEEDBACK)
            report.warnings.append(FEEDBACK_WARNING)

        if caps.has_video_sync and caps.has_ramp_generator and caps.has_video_encoder:
            techniques.append(COMPLETE_VIDEO_WORKFLOW)

        if caps.is_hybrid_rack:
            report.warnings.append(HYBRID_VOLTAGE_WARNING)
            report.suggestions.append(
                "Creative tip: audio oscillators can modulate video signals for interesting effects (expect clipping)"
            )
            techniques.append(AUDIO_VISUAL_CROSS_MODULATION)

        if caps.has_ramp_generator:
            report.suggestions.append(
                "Horizontal ramps create VERTICAL bars, vertical ramps create HORIZONTAL bars "
                "(scan direction vs. pattern orientation)"
            )

    def _global_rules(self, caps: CapabilitySummary, report: AnalysisReport) -> None:
        positive_12v = caps.total_power.positive_12v or 0
        if positive_12v > self.thresholds.max_positive_12v_ma:
            report.warnings.append(
                f"High +12V power draw ({positive_12v}mA) - ensure your PSU can handle it"
            )

        if caps.total_hp > self.thresholds.standard_case_hp:
            report.warnings.append(
                f"Rack exceeds standard case size "
                f"({caps.total_hp}HP > {self.thresholds.standard_case_hp}HP)"
            )


def analyze_rack(rack: Rackish, thresholds: Optional[AnalysisThresholds] = None) -> AnalysisReport:
    return TechniqueInferenceEngine(thresholds).analyze(rack)


def summarize(rack: RawRack, report: AnalysisReport) -> str:
    """Human-readable rack summary. Same input always yields the same text."""
    modules = rack.modules
    row_count = len(rack.rows) if rack.rows else (1 if modules else 0)

    lines = [f"Your rack contains {len(modules)} modules across {row_count} row(s).", ""]

    type_counts: Dict[str, int] = {}
    for module in modules:
        type_counts[module.type.value] = type_counts.get(module.type.value, 0) + 1

    lines.append("Module Breakdown:")
    for type_name, count in sorted(type_counts.items(), key=lambda item: (-item[1], item[0])):
        lines.append(f"  • {type_name}: {count}")
    lines.append("")

    sections = (
        ("Possible Techniques:", report.techniques_possible),
        ("Warnings:", report.warnings),
        ("Suggestions:", report.suggestions),
    )
    for title, items in sections:
        if not items:
            continue
        lines.append(title)
        lines.extend(f"  • {item}" for item in items)
        lines.append("")

    return "\n".join(lines).rstrip("\n") + "\n"
