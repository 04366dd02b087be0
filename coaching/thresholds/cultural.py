"""Cultural context presets and the effective-threshold computation.

A cultural preset stretches or shrinks the timing gates so that the engine
respects conversational norms around silence and pacing:

* the gap between displayed prompts scales with ``question_pacing_multiplier``;
* the post-speech delay scales with ``silence_tolerance_seconds`` relative to
  the Western baseline of 5 seconds.

Everything else passes through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from coaching.defaults import BASELINE_SILENCE_TOLERANCE
from coaching.thresholds.model import ThresholdSet

__all__ = [
    "CulturalContext",
    "CulturalPreset",
    "EffectiveThresholds",
    "FormalityLevel",
    "compute_effective",
    "customize",
    "preset_dials",
]


class CulturalPreset(str, Enum):
    WESTERN = "western"
    EAST_ASIAN = "east_asian"
    LATIN_AMERICAN = "latin_american"
    MIDDLE_EASTERN = "middle_eastern"
    CUSTOM = "custom"


class FormalityLevel(str, Enum):
    CASUAL = "casual"
    NEUTRAL = "neutral"
    FORMAL = "formal"


@dataclass(frozen=True, slots=True)
class CulturalContext:
    """Selected preset plus the dials it implies."""

    preset: CulturalPreset
    silence_tolerance_seconds: float
    question_pacing_multiplier: float
    interruption_sensitivity: float
    formality_level: FormalityLevel
    show_coaching_explanations: bool = True
    enable_bias_alerts: bool = True


# (silence tolerance s, pacing multiplier, interruption sensitivity, formality)
_PRESET_DIALS: dict[CulturalPreset, tuple[float, float, float, FormalityLevel]] = {
    CulturalPreset.WESTERN: (5.0, 1.0, 0.5, FormalityLevel.CASUAL),
    CulturalPreset.EAST_ASIAN: (12.0, 1.5, 0.8, FormalityLevel.FORMAL),
    CulturalPreset.LATIN_AMERICAN: (4.0, 0.8, 0.3, FormalityLevel.CASUAL),
    CulturalPreset.MIDDLE_EASTERN: (8.0, 1.3, 0.7, FormalityLevel.FORMAL),
}


def preset_dials(preset: CulturalPreset) -> CulturalContext:
    """Return the canonical context for *preset*.

    ``CUSTOM`` yields the Western dials tagged as custom, so later manual
    edits can be told apart from a pristine preset.
    """
    source = CulturalPreset.WESTERN if preset is CulturalPreset.CUSTOM else preset
    silence, pacing, interruption, formality = _PRESET_DIALS[source]
    return CulturalContext(
        preset=preset,
        silence_tolerance_seconds=silence,
        question_pacing_multiplier=pacing,
        interruption_sensitivity=interruption,
        formality_level=formality,
    )


def customize(context: CulturalContext, **changes) -> CulturalContext:
    """Edit dials on *context*; the result is always tagged ``CUSTOM``."""
    changes.pop("preset", None)
    return replace(context, preset=CulturalPreset.CUSTOM, **changes)


DEFAULT_CULTURAL_CONTEXT = preset_dials(CulturalPreset.WESTERN)


@dataclass(frozen=True, slots=True)
class EffectiveThresholds:
    """Thresholds after cultural adjustment. Derived per gating check, never stored."""

    minimum_confidence: float
    cooldown: float
    speech_cooldown: float
    max_prompts_per_session: int
    auto_dismiss_duration: float
    fade_in_duration: float
    fade_out_duration: float
    sensitivity_multiplier: float


def compute_effective(thresholds: ThresholdSet, context: CulturalContext) -> EffectiveThresholds:
    return EffectiveThresholds(
        minimum_confidence=thresholds.minimum_confidence,
        cooldown=thresholds.cooldown_duration * context.question_pacing_multiplier,
        speech_cooldown=thresholds.speech_cooldown
        * (context.silence_tolerance_seconds / BASELINE_SILENCE_TOLERANCE),
        max_prompts_per_session=thresholds.max_prompts_per_session,
        auto_dismiss_duration=thresholds.auto_dismiss_duration,
        fade_in_duration=thresholds.fade_in_duration,
        fade_out_duration=thresholds.fade_out_duration,
        sensitivity_multiplier=thresholds.sensitivity_multiplier,
    )
