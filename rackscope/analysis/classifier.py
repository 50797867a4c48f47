# ==============================================
# ModuleTypeClassifier
# ==============================================
#
# PURPOSE:
#   Map free-text module name + description to one ModuleType.
#
# HOW:
#   Lower-case "<name> <description>", walk MODULE_TYPE_PATTERNS top to
#   bottom and return the type of the first pattern that is a substring.
#   Names in WHOLE_WORD_PATTERNS must match a whole word instead.
#   Nothing matches -> ModuleType.OTHER (ambiguity is never an error).
#
# ORDERING RULES FOR THE TABLE:
#   1. Product-specific video patterns (LZX Industries, Syntonie) first:
#      "esg3" must win before "encoder", "cbv002 ... delay" before "delay".
#   2. Generic video phrases next, ending with the bare "video" fallback:
#      "ramp generator" must win before any audio pattern.
#   3. Audio patterns last; "lfo"/"low frequency" before "oscillator".
#
#   The table is append-only data. New products go into the right
#   section; dispatch logic never changes.
#
# CLASS: ModuleTypeClassifier
# ---------------------------
#   Stateless after construction, safe to share between threads.
#
#   - classify(name, description=None) -> ModuleType
#   - classify_module(module) -> Module        (copy with recomputed type)
#   - with_text(module, name=None, description=None) -> Module
#
# ==============================================

import re
from dataclasses import replace
from typing import Iterable, Optional, Sequence, Tuple

from .models import Module, ModuleType


MODULE_TYPE_PATTERNS: Tuple[Tuple[str, ModuleType], ...] = (
    # --- Video: LZX Industries ---
    ("esg3", ModuleType.SYNC_GENERATOR),
    ("visual cortex", ModuleType.SYNC_GENERATOR),
    ("chromagnon", ModuleType.SYNC_GENERATOR),
    ("angles", ModuleType.RAMP_GENERATOR),
    ("scrolls", ModuleType.RAMP_GENERATOR),
    ("diver", ModuleType.RAMP_GENERATOR),
    ("dsg3", ModuleType.SHAPE_GENERATOR),
    ("passage", ModuleType.COLORIZER),
    ("contour generator", ModuleType.EG),  # envelope wording, not LZX Contour
    ("contour", ModuleType.COLORIZER),
    ("fkg3", ModuleType.KEYER),
    ("smx3", ModuleType.VIDEO_MIXER),
    ("visionary", ModuleType.VIDEO_MIXER),
    ("dwo3", ModuleType.VIDEO_OSCILLATOR),
    ("escher sketch", ModuleType.VIDEO_DISPLAY),
    ("liquid tv", ModuleType.VIDEO_DISPLAY),
    ("tbc2", ModuleType.VIDEO_PROCESSOR),
    ("video motion", ModuleType.VIDEO_PROCESSOR),
    ("video calculator", ModuleType.VIDEO_PROCESSOR),
    ("mapper", ModuleType.VIDEO_PROCESSOR),
    ("polar fringe", ModuleType.VIDEO_PROCESSOR),
    ("staircase", ModuleType.VIDEO_UTILITY),

    # --- Video: Syntonie ---
    ("rampes", ModuleType.RAMP_GENERATOR),
    ("entrée", ModuleType.VIDEO_DECODER),
    ("entree", ModuleType.VIDEO_DECODER),
    ("sortie", ModuleType.VIDEO_ENCODER),
    ("isohélie", ModuleType.KEYER),
    ("isohelie", ModuleType.KEYER),
    ("seuils", ModuleType.VIDEO_PROCESSOR),
    ("cbv00", ModuleType.VIDEO_PROCESSOR),
    ("vu008", ModuleType.VIDEO_PROCESSOR),

    # --- Video: generic phrases ---
    ("sync generator", ModuleType.SYNC_GENERATOR),
    ("ramp generator", ModuleType.RAMP_GENERATOR),
    ("shape generator", ModuleType.SHAPE_GENERATOR),
    ("colorizer", ModuleType.COLORIZER),
    ("colourizer", ModuleType.COLORIZER),
    ("key generator", ModuleType.KEYER),
    ("keyer", ModuleType.KEYER),
    ("video encoder", ModuleType.VIDEO_ENCODER),
    ("video decoder", ModuleType.VIDEO_DECODER),
    ("rgb decoder", ModuleType.VIDEO_DECODER),
    ("video mixer", ModuleType.VIDEO_MIXER),
    ("video oscillator", ModuleType.VIDEO_OSCILLATOR),
    ("multiplier", ModuleType.VIDEO_PROCESSOR),
    ("visualizer", ModuleType.VIDEO_DISPLAY),
    ("video", ModuleType.VIDEO),

    # --- Audio ---
    ("low frequency", ModuleType.LFO),
    ("lfo", ModuleType.LFO),
    ("oscillator", ModuleType.VCO),
    ("vco", ModuleType.VCO),
    ("filter", ModuleType.VCF),
    ("vcf", ModuleType.VCF),
    ("amplifier", ModuleType.VCA),
    ("vca", ModuleType.VCA),
    ("envelope", ModuleType.EG),
    ("adsr", ModuleType.EG),
    ("sequencer", ModuleType.SEQUENCER),
    ("mixer", ModuleType.MIXER),
    ("reverb", ModuleType.EFFECT),
    ("delay", ModuleType.EFFECT),
    ("chorus", ModuleType.EFFECT),
    ("flanger", ModuleType.EFFECT),
    ("distortion", ModuleType.EFFECT),
    ("effect", ModuleType.EFFECT),
    ("midi", ModuleType.MIDI),
    ("clock", ModuleType.CLOCK),
    ("tempo", ModuleType.CLOCK),
    ("logic", ModuleType.LOGIC),
    ("boolean", ModuleType.LOGIC),
    ("random", ModuleType.RANDOM),
    ("noise", ModuleType.RANDOM),
    ("s&h", ModuleType.RANDOM),
    ("sample and hold", ModuleType.RANDOM),
    ("utility", ModuleType.UTILITY),
    ("attenuverter", ModuleType.UTILITY),
    ("mult", ModuleType.UTILITY),
)

# Short product names that also occur inside ordinary words ("triangles",
# "diverse"). These only match as whole words.
WHOLE_WORD_PATTERNS = frozenset({
    "angles", "scrolls", "diver", "passage", "contour", "mapper", "staircase",
    "visionary", "rampes", "entrée", "entree", "sortie", "seuils",
})


def _compile_pattern(pattern: str) -> re.Pattern:
    if pattern in WHOLE_WORD_PATTERNS:
        return re.compile(rf"(?<!\w){re.escape(pattern)}(?!\w)")
    return re.compile(re.escape(pattern))


class ModuleTypeClassifier:
    """
    Substring-table classifier for module text.

    Extra (pattern, type) pairs passed to the constructor are checked
    before the built-in table, so callers can pin product names without
    editing MODULE_TYPE_PATTERNS.
    """

    def __init__(self, extra_patterns: Optional[Iterable[Tuple[str, ModuleType]]] = None):
        extra = tuple((pattern.lower(), module_type) for pattern, module_type in (extra_patterns or ()))
        self._patterns: Sequence[Tuple[str, ModuleType]] = extra + MODULE_TYPE_PATTERNS
        self._matchers = [(_compile_pattern(pattern), module_type) for pattern, module_type in self._patterns]

    @property
    def patterns(self) -> Sequence[Tuple[str, ModuleType]]:
        return self._patterns

    def classify(self, name: str, description: Optional[str] = None) -> ModuleType:
        search_text = f"{name or ''} {description or ''}".lower()

        for matcher, module_type in self._matchers:
            if matcher.search(search_text):
                return module_type

        return ModuleType.OTHER

    def classify_module(self, module: Module) -> Module:
        """Return a copy of `module` with its type recomputed from its text."""
        module_type = self.classify(module.name, module.description)
        if module_type == module.type:
            return module
        return replace(module, type=module_type)

    def with_text(
        self,
        module: Module,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Module:
        """
        Change a module's text. The type is always recomputed because the
        text is what the type was derived from.
        """
        updated = replace(
            module,
            name=name if name is not None else module.name,
            description=description if description is not None else module.description,
        )
        return replace(updated, type=self.classify(updated.name, updated.description))


_default_classifier = ModuleTypeClassifier()


def classify_module_type(name: str, description: Optional[str] = None) -> ModuleType:
    """Classify with the built-in table."""
    return _default_classifier.classify(name, description)
