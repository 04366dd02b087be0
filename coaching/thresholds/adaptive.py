from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from coaching.thresholds.model import ThresholdSet

logger = logging.getLogger(__name__)

from coaching.defaults import (
    ADAPTIVE_MIN_PROMPTS as MIN_PROMPTS,
    ADAPTIVE_HIGH_DISMISSAL_RATE as HIGH_DISMISSAL_RATE,
    ADAPTIVE_HIGH_ACCEPTANCE_RATE as HIGH_ACCEPTANCE_RATE,
    ADAPTIVE_CONFIDENCE_RAISE as CONFIDENCE_RAISE,
    ADAPTIVE_CONFIDENCE_CEILING as CONFIDENCE_CEILING,
    ADAPTIVE_CONFIDENCE_DROP as CONFIDENCE_DROP,
    ADAPTIVE_CONFIDENCE_FLOOR as CONFIDENCE_FLOOR,
    ADAPTIVE_MIN_MAX_PROMPTS as MIN_MAX_PROMPTS,
)


@dataclass(slots=True)
class ResponseTotals:
    """Running response counts across every session seen by this process."""

    shown: int = 0
    accepted: int = 0
    dismissed: int = 0

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.shown if self.shown else 0.0

    @property
    def dismissal_rate(self) -> float:
        return self.dismissed / self.shown if self.shown else 0.0


class AdaptiveThresholdCalibrator:
    """Nudges the base thresholds toward what the interviewer actually responds to."""

    def adapt(self, base: ThresholdSet, totals: ResponseTotals) -> ThresholdSet:
        if totals.shown < MIN_PROMPTS:
            return base

        adapted = base
        if totals.dismissal_rate > HIGH_DISMISSAL_RATE:
            adapted = replace(
                base,
                minimum_confidence=min(CONFIDENCE_CEILING, base.minimum_confidence + CONFIDENCE_RAISE),
                cooldown_duration=base.cooldown_duration * 1.2,
                max_prompts_per_session=min(
                    base.max_prompts_per_session,
                    max(MIN_MAX_PROMPTS, base.max_prompts_per_session - 1),
                ),
                sensitivity_multiplier=base.sensitivity_multiplier * 0.8,
            )
            logger.info(
                "Adaptive thresholds: dismissal rate %.2f, confidence %.2f→%.2f",
                totals.dismissal_rate,
                base.minimum_confidence,
                adapted.minimum_confidence,
            )

        if totals.acceptance_rate > HIGH_ACCEPTANCE_RATE:
            adapted = replace(
                base,
                minimum_confidence=max(CONFIDENCE_FLOOR, base.minimum_confidence - CONFIDENCE_DROP),
                cooldown_duration=base.cooldown_duration * 0.9,
            )
            logger.info(
                "Adaptive thresholds: acceptance rate %.2f, confidence %.2f→%.2f",
                totals.acceptance_rate,
                base.minimum_confidence,
                adapted.minimum_confidence,
            )

        return adapted
