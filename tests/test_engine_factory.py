import pytest

from coaching.engine.delivery import AutoDismissPreset, DeliveryMode
from coaching.engine.service import CoachingService, EngineState
from coaching.scheduler.timers import APSchedulerTimers, ManualTimers
from coaching.thresholds.cultural import CulturalPreset
from coaching.thresholds.model import ACTIVE_THRESHOLDS, MINIMAL_THRESHOLDS
from interfaces.engine_factory import build_service, build_thresholds, parse_setting

NO_OVERRIDES = dict(
    min_confidence=None,
    cooldown_seconds=None,
    speech_cooldown_seconds=None,
    max_prompts=None,
    auto_dismiss_seconds=None,
)


def test_parse_setting_is_case_insensitive():
    assert parse_setting(DeliveryMode, " PULL ", "COACH_DELIVERY_MODE") is DeliveryMode.PULL


def test_parse_setting_names_the_variable():
    with pytest.raises(ValueError, match="COACH_DELIVERY_MODE='sideways' is not one of: immediate, pull, preview"):
        parse_setting(DeliveryMode, "sideways", "COACH_DELIVERY_MODE")


def test_build_thresholds_from_level():
    assert build_thresholds("active", **NO_OVERRIDES) == ACTIVE_THRESHOLDS


def test_build_thresholds_applies_overrides():
    thresholds = build_thresholds("minimal", **{**NO_OVERRIDES, "min_confidence": 0.6, "max_prompts": 5})
    assert thresholds.minimum_confidence == 0.6
    assert thresholds.max_prompts_per_session == 5
    assert thresholds.cooldown_duration == MINIMAL_THRESHOLDS.cooldown_duration


def test_build_thresholds_rejects_unknown_level():
    with pytest.raises(ValueError, match="COACH_LEVEL"):
        build_thresholds("loud", **NO_OVERRIDES)


def test_build_service_wires_settings():
    service = build_service(
        ManualTimers(),
        thresholds=ACTIVE_THRESHOLDS,
        cultural_preset="east_asian",
        delivery_mode="pull",
        auto_dismiss_preset="quick",
        enabled=True,
        adaptive=False,
    )
    assert isinstance(service, CoachingService)
    assert service.thresholds is ACTIVE_THRESHOLDS
    assert service.cultural_context.preset is CulturalPreset.EAST_ASIAN
    assert service.delivery_mode is DeliveryMode.PULL
    assert service.auto_dismiss_preset is AutoDismissPreset.QUICK
    assert service.state is EngineState.IDLE


def test_empty_auto_dismiss_preset_defers_to_thresholds():
    service = build_service(ManualTimers(), auto_dismiss_preset="", enabled=False)
    assert service.auto_dismiss_preset is None
    assert service.state is EngineState.DISABLED


def test_build_service_defaults_to_apscheduler():
    service = build_service()
    assert isinstance(service.timers, APSchedulerTimers)
    assert not service.timers.is_running


def test_build_service_rejects_bad_preset():
    with pytest.raises(ValueError, match="COACH_CULTURAL_PRESET"):
        build_service(ManualTimers(), cultural_preset="martian")
