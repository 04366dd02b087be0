from __future__ import annotations

import logging
from enum import Enum
from typing import TypeVar

from config import (
    COACH_ADAPTIVE_THRESHOLDS,
    COACH_AUTO_DISMISS_PRESET,
    COACH_AUTO_DISMISS_SECONDS,
    COACH_COOLDOWN_SECONDS,
    COACH_CULTURAL_PRESET,
    COACH_DELIVERY_MODE,
    COACH_ENABLED_BY_DEFAULT,
    COACH_LEVEL,
    COACH_MAX_PROMPTS,
    COACH_MIN_CONFIDENCE,
    COACH_SPEECH_COOLDOWN_SECONDS,
)
from coaching.engine.delivery import AutoDismissPreset, DeliveryController, DeliveryMode
from coaching.engine.service import CoachingService
from coaching.engine.tracker import CoachingEventTracker
from coaching.scheduler.timers import APSchedulerTimers, Timers
from coaching.thresholds.cultural import CulturalPreset, preset_dials
from coaching.thresholds.model import CoachingLevel, ThresholdSet

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def parse_setting(enum_cls: type[E], value: str, variable: str) -> E:
    try:
        return enum_cls(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{variable}={value!r} is not one of: {allowed}") from exc


def build_thresholds(
    level: str = COACH_LEVEL,
    *,
    min_confidence: float | None = COACH_MIN_CONFIDENCE,
    cooldown_seconds: float | None = COACH_COOLDOWN_SECONDS,
    speech_cooldown_seconds: float | None = COACH_SPEECH_COOLDOWN_SECONDS,
    max_prompts: int | None = COACH_MAX_PROMPTS,
    auto_dismiss_seconds: float | None = COACH_AUTO_DISMISS_SECONDS,
) -> ThresholdSet:
    base = parse_setting(CoachingLevel, level, "COACH_LEVEL").thresholds
    return base.with_overrides(
        minimum_confidence=min_confidence,
        cooldown_duration=cooldown_seconds,
        speech_cooldown=speech_cooldown_seconds,
        max_prompts_per_session=max_prompts,
        auto_dismiss_duration=auto_dismiss_seconds,
    )


def build_service(
    timers: Timers | None = None,
    *,
    thresholds: ThresholdSet | None = None,
    cultural_preset: str = COACH_CULTURAL_PRESET,
    delivery_mode: str = COACH_DELIVERY_MODE,
    auto_dismiss_preset: str = COACH_AUTO_DISMISS_PRESET,
    enabled: bool = COACH_ENABLED_BY_DEFAULT,
    adaptive: bool = COACH_ADAPTIVE_THRESHOLDS,
    tracker: CoachingEventTracker | None = None,
) -> CoachingService:
    preset = parse_setting(CulturalPreset, cultural_preset, "COACH_CULTURAL_PRESET")
    mode = parse_setting(DeliveryMode, delivery_mode, "COACH_DELIVERY_MODE")
    dismiss_preset = (
        parse_setting(AutoDismissPreset, auto_dismiss_preset, "COACH_AUTO_DISMISS_PRESET")
        if auto_dismiss_preset
        else None
    )

    service = CoachingService(
        timers or APSchedulerTimers(),
        thresholds=thresholds or build_thresholds(),
        cultural_context=preset_dials(preset),
        delivery=DeliveryController(mode=mode, auto_dismiss_preset=dismiss_preset),
        tracker=tracker,
        enabled=enabled,
        adaptive=adaptive,
    )
    logger.debug(
        "Built CoachingService: preset=%s mode=%s auto_dismiss=%s enabled=%s adaptive=%s",
        preset.value,
        mode.value,
        dismiss_preset.value if dismiss_preset else "thresholds",
        enabled,
        adaptive,
    )
    return service
