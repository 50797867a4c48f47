# ==============================================
# CapabilityAnalyzer
# ==============================================
#
# PURPOSE:
#   Reduce a list of classified modules into a CapabilitySummary:
#   presence flags, distinct types, total HP, total power per rail,
#   and whether the rack is video-dominant or hybrid.
#
# CLASS: CapabilityAnalyzer
# -------------------------
#   Stateless: modules in, summary out. Safe to share between threads.
#
#   - analyze_capabilities(modules: list[Module]) -> CapabilitySummary
#       Single pass:
#         - total_hp += hp
#         - each rail += reading (absent reading counts as 0)
#         - module_types collects distinct types (first-seen order)
#         - video modules are counted; their types collected
#         - first SyncGenerator's name becomes video_sync_source
#
#       Then:
#         is_video_rack  = video_count / total > video_fraction
#         is_hybrid_rack = video_count > 0 and not is_video_rack
#
# ==============================================

from typing import List, Optional, Sequence

from .models import CapabilitySummary, Module, ModuleType, PowerDraw
from .thresholds import AnalysisThresholds


class CapabilityAnalyzer:
    """Builds a CapabilitySummary from a module list."""

    def __init__(self, thresholds: Optional[AnalysisThresholds] = None):
        self.thresholds = thresholds or AnalysisThresholds()

    def analyze_capabilities(self, modules: Sequence[Module]) -> CapabilitySummary:
        module_types: List[ModuleType] = []
        video_module_types: List[ModuleType] = []
        total_hp = 0
        positive_12v = negative_12v = positive_5v = 0
        video_sync_source: Optional[str] = None

        for module in modules:
            if module.type not in module_types:
                module_types.append(module.type)

            total_hp += module.hp or 0
            positive_12v += module.power.positive_12v or 0
            negative_12v += module.power.negative_12v or 0
            positive_5v += module.power.positive_5v or 0

            if module.is_video:
                video_module_types.append(module.type)

            if module.type == ModuleType.SYNC_GENERATOR and video_sync_source is None:
                video_sync_source = module.name

        video_count = len(video_module_types)
        total_count = len(modules)
        is_video_rack = total_count > 0 and video_count > total_count * self.thresholds.video_fraction
        is_hybrid_rack = video_count > 0 and not is_video_rack

        present = set(module_types)
        return CapabilitySummary(
            has_vco=ModuleType.VCO in present,
            has_vcf=ModuleType.VCF in present,
            has_vca=ModuleType.VCA in present,
            has_lfo=ModuleType.LFO in present,
            has_envelope=ModuleType.EG in present,
            has_sequencer=ModuleType.SEQUENCER in present,
            has_effects=ModuleType.EFFECT in present,
            has_video_sync=ModuleType.SYNC_GENERATOR in present,
            has_ramp_generator=ModuleType.RAMP_GENERATOR in present,
            has_colorizer=ModuleType.COLORIZER in present,
            has_keyer=ModuleType.KEYER in present,
            has_video_encoder=ModuleType.VIDEO_ENCODER in present,
            has_video_decoder=ModuleType.VIDEO_DECODER in present,
            video_module_types=tuple(video_module_types),
            video_sync_source=video_sync_source,
            is_video_rack=is_video_rack,
            is_hybrid_rack=is_hybrid_rack,
            module_types=tuple(module_types),
            total_hp=total_hp,
            total_power=PowerDraw(
                positive_12v=positive_12v,
                negative_12v=negative_12v,
                positive_5v=positive_5v,
            ),
        )


def analyze_capabilities(
    modules: Sequence[Module],
    thresholds: Optional[AnalysisThresholds] = None,
) -> CapabilitySummary:
    return CapabilityAnalyzer(thresholds).analyze_capabilities(modules)
