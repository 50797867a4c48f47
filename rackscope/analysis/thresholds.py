# ==============================================
# Thresholds (Data Class)
# ==============================================
#
# PURPOSE:
#   Named, overridable constants used by CapabilityAnalyzer and
#   TechniqueInferenceEngine. The defaults are the values the rack
#   diagnosis has always used; they have not been reviewed by a domain
#   expert, so keep them overridable rather than "correcting" them.
#
# ==============================================

from dataclasses import dataclass


DEFAULT_VIDEO_FRACTION = 0.5
DEFAULT_MAX_POSITIVE_12V_MA = 2000
DEFAULT_STANDARD_CASE_HP = 168  # 2x 84HP rows


@dataclass(frozen=True)
class AnalysisThresholds:
    """
    Configurable thresholds that control rack diagnosis.
    """

    video_fraction: float = DEFAULT_VIDEO_FRACTION
    """
    Fraction of video modules above which a rack counts as a video rack.
    At or below it (but above zero) the rack is hybrid.
    Default 0.5 = more than half of the modules must be video.
    """

    max_positive_12v_ma: int = DEFAULT_MAX_POSITIVE_12V_MA
    """
    Total +12V draw (mA) above which a power-supply warning is raised.
    """

    standard_case_hp: int = DEFAULT_STANDARD_CASE_HP
    """
    Total HP above which the rack no longer fits a standard case.
    """
