"""Gating thresholds for the coaching engine.

Defaults are deliberately conservative: a prompt is worth showing only when
the suggestion is confident, the interview has been quiet for a while and the
previous prompt is long gone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from coaching.defaults import (
    DEFAULT_AUTO_DISMISS_SECONDS,
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_FADE_IN_SECONDS,
    DEFAULT_FADE_OUT_SECONDS,
    DEFAULT_MAX_PROMPTS_PER_SESSION,
    DEFAULT_MIN_CONFIDENCE,
    DEFAULT_SPEECH_COOLDOWN_SECONDS,
    SENSITIVITY_MAX,
    SENSITIVITY_MIN,
)

logger = logging.getLogger(__name__)

_DURATION_FIELDS = (
    "cooldown_duration",
    "speech_cooldown",
    "auto_dismiss_duration",
    "fade_in_duration",
    "fade_out_duration",
)


@dataclass(frozen=True, slots=True)
class ThresholdSet:
    """Immutable bundle of tunable gating parameters.

    Out-of-range values are clamped on construction (durations to ``>= 0``,
    confidence to ``[0, 1]``, the session cap to ``>= 0`` and the sensitivity
    multiplier to ``[0.1, 3.0]``) and a warning is logged.

    Fade timings are carried through untouched for the presentation layer.
    """

    minimum_confidence: float = DEFAULT_MIN_CONFIDENCE
    cooldown_duration: float = DEFAULT_COOLDOWN_SECONDS
    speech_cooldown: float = DEFAULT_SPEECH_COOLDOWN_SECONDS
    max_prompts_per_session: int = DEFAULT_MAX_PROMPTS_PER_SESSION
    auto_dismiss_duration: float = DEFAULT_AUTO_DISMISS_SECONDS
    fade_in_duration: float = DEFAULT_FADE_IN_SECONDS
    fade_out_duration: float = DEFAULT_FADE_OUT_SECONDS
    sensitivity_multiplier: float = 1.0

    def __post_init__(self) -> None:
        self._clamp("minimum_confidence", 0.0, 1.0)
        for name in _DURATION_FIELDS:
            self._clamp(name, 0.0, None)
        self._clamp("max_prompts_per_session", 0, None)
        self._clamp("sensitivity_multiplier", SENSITIVITY_MIN, SENSITIVITY_MAX)

    def _clamp(self, name: str, low: float, high: float | None) -> None:
        value = getattr(self, name)
        clamped = max(low, value)
        if high is not None:
            clamped = min(high, clamped)
        if clamped != value:
            logger.warning("ThresholdSet.%s=%r out of range, clamped to %r", name, value, clamped)
            object.__setattr__(self, name, clamped)

    def with_overrides(self, **changes) -> ThresholdSet:
        """Return a copy with the given fields replaced (``None`` values are ignored)."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


DEFAULT_THRESHOLDS = ThresholdSet()

MINIMAL_THRESHOLDS = ThresholdSet(
    minimum_confidence=0.95,
    cooldown_duration=180.0,
    speech_cooldown=8.0,
    max_prompts_per_session=2,
    auto_dismiss_duration=6.0,
    sensitivity_multiplier=0.5,
)

BALANCED_THRESHOLDS = ThresholdSet(
    minimum_confidence=0.80,
    cooldown_duration=90.0,
    speech_cooldown=4.0,
    max_prompts_per_session=4,
    auto_dismiss_duration=10.0,
    sensitivity_multiplier=1.0,
)

ACTIVE_THRESHOLDS = ThresholdSet(
    minimum_confidence=0.70,
    cooldown_duration=60.0,
    speech_cooldown=3.0,
    max_prompts_per_session=6,
    auto_dismiss_duration=12.0,
    sensitivity_multiplier=1.5,
)


class CoachingLevel(str, Enum):
    """Named intervention levels, each mapped to a threshold preset."""

    OFF = "off"
    MINIMAL = "minimal"
    BALANCED = "balanced"
    ACTIVE = "active"

    @property
    def thresholds(self) -> ThresholdSet:
        if self is CoachingLevel.OFF:
            return replace(DEFAULT_THRESHOLDS, max_prompts_per_session=0)
        if self is CoachingLevel.MINIMAL:
            return MINIMAL_THRESHOLDS
        if self is CoachingLevel.ACTIVE:
            return ACTIVE_THRESHOLDS
        return BALANCED_THRESHOLDS
