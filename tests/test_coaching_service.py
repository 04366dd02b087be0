import pytest

from coaching.engine.delivery import AutoDismissPreset
from coaching.engine.service import CoachingService, EngineState
from coaching.prompts.model import CoachingPrompt, CoachingResponse, PromptType
from coaching.prompts.parser import RawCandidate
from coaching.scheduler.timers import ManualTimers
from coaching.thresholds.cultural import CulturalPreset, preset_dials
from coaching.thresholds.model import ThresholdSet

# No cooldown and no speech delay, so only the display slot and the cap gate.
FAST = ThresholdSet(cooldown_duration=0.0, speech_cooldown=0.0)


def _prompt(
    prompt_type: PromptType = PromptType.SUGGEST_FOLLOW_UP,
    *,
    confidence: float = 0.9,
    timestamp: float = 0.0,
    text: str = "Ask about the trade-offs",
) -> CoachingPrompt:
    return CoachingPrompt(type=prompt_type, text=text, reason="", confidence=confidence, timestamp=timestamp)


def _service(**kwargs) -> tuple[CoachingService, ManualTimers]:
    timers = ManualTimers()
    service = CoachingService(timers, **kwargs)
    service.start_session(enabled=True)
    return service, timers


class Recorder:
    def __init__(self, service: CoachingService) -> None:
        self.shown: list = []
        self.dismissed: list = []
        self.auto_dismissed: list = []
        self.toggles: list[str] = []
        service.on_prompt_shown(lambda e: self.shown.append(e.payload["prompt"]))
        service.on_prompt_dismissed(lambda e: self.dismissed.append((e.payload["prompt"], e.payload["response"])))
        service.on_prompt_auto_dismissed(lambda e: self.auto_dismissed.append(e.payload["prompt"]))
        service.on_coaching_enabled(lambda e: self.toggles.append("enabled"))
        service.on_coaching_disabled(lambda e: self.toggles.append("disabled"))


# ── Enable / disable ─────────────────────────────────────────────


def test_coaching_is_off_until_enabled():
    timers = ManualTimers()
    service = CoachingService(timers)
    service.start_session()

    assert service.state is EngineState.DISABLED
    assert service.submit_prompt(_prompt()) is False
    assert service.process_candidate(RawCandidate(name="suggest_follow_up")) is None
    assert service.pending_prompts == []
    assert service.prompt_count == 0


def test_enable_and_disable_publish_events():
    timers = ManualTimers()
    service = CoachingService(timers)
    service.start_session()
    recorder = Recorder(service)

    service.enable()
    service.enable()
    assert service.state is EngineState.IDLE
    service.disable()
    assert service.state is EngineState.DISABLED
    assert recorder.toggles == ["enabled", "disabled"]


def test_disable_while_displaying_dismisses_and_drops_pending():
    service, timers = _service()
    recorder = Recorder(service)
    shown = _prompt()
    service.submit_prompt(shown)
    service.submit_prompt(_prompt(PromptType.GENERAL_TIP))
    assert len(service.pending_prompts) == 1

    service.disable()

    assert service.current_prompt is None
    assert service.pending_prompts == []
    assert recorder.dismissed == [(shown, CoachingResponse.DISMISSED)]
    assert service.history[-1].response is CoachingResponse.DISMISSED
    timers.advance(100)
    assert recorder.auto_dismissed == []

    assert service.submit_prompt(_prompt()) is False
    timers.advance(100)
    assert recorder.shown == [shown]

    service.enable()
    timers.advance(100)
    assert recorder.shown == [shown]
    assert service.state is EngineState.IDLE


# ── Validation ───────────────────────────────────────────────────


def test_shows_immediately_when_gates_are_clear():
    service, _ = _service()
    recorder = Recorder(service)
    prompt = _prompt()

    assert service.submit_prompt(prompt) is True
    assert service.current_prompt is prompt
    assert service.state is EngineState.DISPLAYING
    assert service.is_showing_prompt
    assert service.prompt_count == 1
    assert recorder.shown == [prompt]
    assert service.can_show_now() is False


def test_low_confidence_is_dropped_silently():
    service, _ = _service()
    assert service.submit_prompt(_prompt(confidence=0.5)) is False
    assert service.current_prompt is None
    assert service.pending_prompts == []


def test_confidence_floor_is_inclusive():
    service, _ = _service()
    assert service.submit_prompt(_prompt(confidence=0.85)) is True


def test_session_cap_is_enforced():
    service, timers = _service(thresholds=FAST.with_overrides(max_prompts_per_session=2))
    for _ in range(2):
        prompt = _prompt()
        assert service.submit_prompt(prompt) is True
        service.accept(prompt.id)
        timers.advance(1)

    assert service.has_reached_max_prompts
    assert service.submit_prompt(_prompt()) is False
    assert service.prompt_count == 2


def test_process_candidate_parses_and_submits():
    service, _ = _service()
    prompt = service.process_candidate(
        RawCandidate(name="explore_deeper", arguments={"text": "Dig into the outage", "confidence": "0.95"})
    )
    assert prompt is not None
    assert service.current_prompt is prompt
    assert prompt.type is PromptType.EXPLORE_DEEPER

    assert service.process_candidate(RawCandidate(name="summarize_notes")) is None
    assert service.process_candidate(RawCandidate(name="general_tip", arguments={"confidence": "0.2"})) is None


# ── Timing gates and the pending queue ───────────────────────────


def test_cooldown_queues_and_retries():
    service, timers = _service()
    first = _prompt()
    service.submit_prompt(first)
    timers.advance(1)
    service.accept(first.id)

    second = _prompt(PromptType.EXPLORE_DEEPER)
    assert service.submit_prompt(second) is True
    assert service.current_prompt is None
    assert service.pending_prompts == [second]
    assert service.cooldown_remaining == pytest.approx(119.0)

    timers.advance_to(120.0)
    assert service.current_prompt is None
    timers.advance_to(121.0)
    assert service.current_prompt is second
    assert service.pending_prompts == []


def test_recent_speech_defers_prompt():
    service, timers = _service()
    service.notify_speech_detected()
    prompt = _prompt()

    service.submit_prompt(prompt)
    assert service.current_prompt is None
    assert service.speech_cooldown_remaining == pytest.approx(5.0)

    timers.advance_to(5.0)
    assert service.current_prompt is None
    timers.advance_to(6.0)
    assert service.current_prompt is prompt


def test_explicit_speech_timestamp():
    service, timers = _service()
    timers.advance_to(10.0)
    service.notify_speech_detected(8.0)
    assert service.speech_cooldown_remaining == pytest.approx(3.0)


def test_pending_prompts_follow_priority_order():
    service, timers = _service(thresholds=FAST)
    showing = _prompt(PromptType.GENERAL_TIP)
    service.submit_prompt(showing)

    tip = _prompt(PromptType.GENERAL_TIP, timestamp=1.0)
    follow = _prompt(PromptType.SUGGEST_FOLLOW_UP, timestamp=2.0)
    uncovered = _prompt(PromptType.UNCOVERED_TOPIC, timestamp=3.0)
    for prompt in (tip, follow, uncovered):
        service.submit_prompt(prompt)
    assert service.pending_prompts == [uncovered, follow, tip]

    service.dismiss(showing.id)
    assert service.current_prompt is None
    timers.advance(0.5)
    assert service.current_prompt is uncovered


def test_east_asian_context_stretches_cooldown():
    service, timers = _service(cultural_context=preset_dials(CulturalPreset.EAST_ASIAN))
    first = _prompt()
    service.submit_prompt(first)
    timers.advance(1)
    service.accept(first.id)
    second = _prompt()
    service.submit_prompt(second)

    timers.advance_to(121.0)
    assert service.current_prompt is None
    timers.advance_to(181.0)
    assert service.current_prompt is second


def test_switching_culture_mid_session_applies_to_next_check():
    service, _ = _service()
    service.submit_prompt(_prompt())
    assert service.effective_thresholds.cooldown == 120.0
    service.select_cultural_preset(CulturalPreset.LATIN_AMERICAN)
    assert service.effective_thresholds.cooldown == pytest.approx(96.0)


# ── Responses ────────────────────────────────────────────────────


def test_accept_and_dismiss_close_the_display():
    service, timers = _service(thresholds=FAST)
    recorder = Recorder(service)
    first = _prompt()
    service.submit_prompt(first)
    assert service.accept(first.id) is True

    timers.advance(1)
    second = _prompt()
    service.submit_prompt(second)
    assert service.dismiss(second.id) is True

    assert recorder.dismissed == [
        (first, CoachingResponse.ACCEPTED),
        (second, CoachingResponse.DISMISSED),
    ]
    assert [r.response for r in service.history] == [CoachingResponse.ACCEPTED, CoachingResponse.DISMISSED]
    assert service.state is EngineState.IDLE


def test_stale_ids_are_ignored():
    service, _ = _service()
    prompt = _prompt()
    service.submit_prompt(prompt)

    assert service.accept("not-a-real-id") is False
    assert service.snooze("not-a-real-id") is False
    assert service.current_prompt is prompt

    assert service.accept(prompt.id) is True
    assert service.accept(prompt.id) is False
    assert service.dismiss(prompt.id) is False
    assert len(service.history) == 1


def test_snooze_returns_prompt_to_front():
    service, timers = _service(thresholds=FAST)
    recorder = Recorder(service)
    tip = _prompt(PromptType.GENERAL_TIP)
    service.submit_prompt(tip)
    uncovered = _prompt(PromptType.UNCOVERED_TOPIC)
    service.submit_prompt(uncovered)

    assert service.snooze(tip.id) is True
    assert service.prompt_count == 0
    assert service.current_prompt is None
    assert service.pending_prompts == [tip, uncovered]
    assert recorder.dismissed == [(tip, CoachingResponse.SNOOZED)]

    timers.advance(0.5)
    assert service.current_prompt is tip
    assert service.prompt_count == 1


def test_snooze_restarts_cooldown():
    service, timers = _service()
    service.auto_dismiss_preset = AutoDismissPreset.MANUAL
    prompt = _prompt()
    service.submit_prompt(prompt)
    timers.advance(100)
    service.snooze(prompt.id)

    assert service.cooldown_remaining == pytest.approx(120.0)
    timers.advance(10)
    assert service.current_prompt is None
    timers.advance(111)
    assert service.current_prompt is prompt


# ── Auto-dismiss ─────────────────────────────────────────────────


def test_auto_dismiss_after_threshold_duration():
    service, timers = _service()
    recorder = Recorder(service)
    prompt = _prompt()
    service.submit_prompt(prompt)

    timers.advance_to(7.9)
    assert service.current_prompt is prompt
    timers.advance_to(8.0)
    assert service.current_prompt is None
    assert recorder.auto_dismissed == [prompt]
    assert recorder.dismissed == []
    assert service.history[-1].response is CoachingResponse.NOT_RESPONDED


def test_auto_dismiss_preset_overrides_threshold():
    service, timers = _service()
    service.auto_dismiss_preset = AutoDismissPreset.QUICK
    service.submit_prompt(_prompt())
    timers.advance(5)
    assert service.current_prompt is None


def test_manual_preset_never_auto_dismisses():
    service, timers = _service()
    recorder = Recorder(service)
    service.auto_dismiss_preset = AutoDismissPreset.MANUAL
    prompt = _prompt()
    service.submit_prompt(prompt)

    timers.advance(1000)
    assert service.current_prompt is prompt
    assert recorder.auto_dismissed == []


def test_old_auto_dismiss_does_not_hit_next_prompt():
    service, timers = _service(thresholds=FAST)
    recorder = Recorder(service)
    first = _prompt()
    service.submit_prompt(first)
    timers.advance(1)
    service.accept(first.id)

    timers.advance(1)
    second = _prompt()
    service.submit_prompt(second)

    timers.advance_to(9.0)
    assert service.current_prompt is second
    assert recorder.auto_dismissed == []
    timers.advance_to(10.0)
    assert recorder.auto_dismissed == [second]


def test_pending_prompt_shown_after_auto_dismiss():
    service, timers = _service(thresholds=FAST)
    first = _prompt()
    second = _prompt(PromptType.ENCOURAGEMENT)
    service.submit_prompt(first)
    service.submit_prompt(second)

    timers.advance(8)
    assert service.current_prompt is None
    timers.advance(0.5)
    assert service.current_prompt is second


# ── Session lifecycle ────────────────────────────────────────────


def test_end_session_tears_down_without_response():
    service, timers = _service()
    recorder = Recorder(service)
    service.submit_prompt(_prompt())
    service.submit_prompt(_prompt())

    service.end_session()

    assert service.state is EngineState.ENDED
    assert service.current_prompt is None
    assert service.pending_prompts == []
    assert recorder.dismissed == []
    assert service.submit_prompt(_prompt()) is False
    timers.advance(1000)
    assert recorder.auto_dismissed == []
    assert recorder.shown[1:] == []


def test_start_session_resets_everything():
    service, timers = _service(thresholds=FAST)
    prompt = _prompt()
    service.submit_prompt(prompt)
    service.submit_prompt(_prompt())
    service.accept(prompt.id)
    service.notify_speech_detected()

    service.start_session()

    assert service.is_enabled
    assert service.prompt_count == 0
    assert service.pending_prompts == []
    assert service.history == []
    assert service.cooldown_remaining == 0.0
    assert service.speech_cooldown_remaining == 0.0
    timers.advance(100)
    assert service.current_prompt is None


def test_start_session_can_change_enabled_flag():
    service, _ = _service()
    service.start_session(enabled=False)
    assert service.state is EngineState.DISABLED


def test_update_timestamp_is_recorded_by_tracker():
    service, _ = _service()
    service.update_timestamp(305.0)
    service.submit_prompt(_prompt())
    assert service.tracker.session_events[-1].session_timestamp == 305.0


def test_responses_reach_the_tracker():
    service, timers = _service(thresholds=FAST)
    first = _prompt()
    service.submit_prompt(first)
    timers.advance(2)
    service.accept(first.id)

    stats = service.tracker.session_stats
    assert stats.prompts_shown == 1
    assert stats.prompts_accepted == 1
    assert stats.average_response_time == pytest.approx(2.0)


def test_update_thresholds_takes_effect():
    service, _ = _service()
    service.update_thresholds(minimum_confidence=0.5, cooldown_duration=None)
    assert service.thresholds.minimum_confidence == 0.5
    assert service.thresholds.cooldown_duration == 120.0
    assert service.submit_prompt(_prompt(confidence=0.6)) is True


def test_adaptive_thresholds_applied_on_start():
    service, _ = _service(adaptive=True)
    totals = service.tracker.totals
    totals.shown, totals.dismissed = 10, 8

    service.start_session()

    assert service.thresholds.minimum_confidence == pytest.approx(0.90)
    assert service.thresholds.max_prompts_per_session == 2


def test_threshold_edits_do_not_compound_adaptation():
    service, _ = _service(thresholds=ThresholdSet(minimum_confidence=0.80), adaptive=True)
    totals = service.tracker.totals
    totals.shown, totals.dismissed = 20, 18

    seen = []
    for _ in range(3):
        service.update_thresholds(speech_cooldown=2.0)
        service.start_session()
        seen.append(service.thresholds)

    assert seen[0] == seen[1] == seen[2]
    assert seen[0].minimum_confidence == pytest.approx(0.85)
    assert seen[0].cooldown_duration == pytest.approx(144.0)
    assert seen[0].speech_cooldown == 2.0
    assert service.base_thresholds.minimum_confidence == pytest.approx(0.80)
    assert service.base_thresholds.cooldown_duration == 120.0


# ── Listeners ────────────────────────────────────────────────────


def test_failing_listener_does_not_break_delivery(caplog):
    service, _ = _service()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    service.on_prompt_shown(broken)
    service.on_prompt_shown(lambda e: seen.append(e.payload["prompt"]))
    prompt = _prompt()

    assert service.submit_prompt(prompt) is True
    assert service.current_prompt is prompt
    assert seen == [prompt]
    assert "Listener for prompt_shown failed" in caplog.text


def test_unsubscribe_stops_notifications():
    service, _ = _service()
    seen = []
    unsubscribe = service.on_prompt_shown(seen.append)
    unsubscribe()
    service.submit_prompt(_prompt())
    assert seen == []
