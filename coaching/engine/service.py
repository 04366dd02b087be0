"""
CoachingService — the prompt delivery state machine for one interview session.

States: ``DISABLED`` → ``IDLE`` ⇄ ``DISPLAYING`` → ``ENDED``.

Rules a prompt must pass before it is displayed:
- coaching is enabled for the session (off until explicitly enabled)
- fewer than ``max_prompts_per_session`` prompts have been shown
- confidence is at or above the confidence floor
- nothing else is on screen
- the cooldown since the previous prompt has elapsed
- no speech within the post-speech delay

Validation failures drop the prompt silently. Prompts that pass validation
but fail timing wait in a priority queue and are retried when the blocking
gate clears, or shortly after the current prompt is answered.

All calls are expected on a single event loop; the service does no locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING

from coaching.defaults import (
    RETRY_MIN_DELAY_SECONDS,
    RETRY_PADDING_SECONDS,
    SETTLE_DELAY_SECONDS,
)
from coaching.engine.delivery import AutoDismissPreset, DeliveryController, DeliveryMode
from coaching.engine.events import (
    COACHING_DISABLED,
    COACHING_ENABLED,
    PROMPT_AUTO_DISMISSED,
    PROMPT_DISMISSED,
    PROMPT_SHOWN,
    EventBus,
    Handler,
)
from coaching.engine.tracker import CoachingEventTracker
from coaching.prompts.model import CoachingPrompt, CoachingResponse, ResponseRecord
from coaching.prompts.parser import RawCandidate, parse_candidate
from coaching.prompts.queue import PromptQueue
from coaching.thresholds.cultural import (
    DEFAULT_CULTURAL_CONTEXT,
    CulturalContext,
    CulturalPreset,
    EffectiveThresholds,
    compute_effective,
    preset_dials,
)
from coaching.thresholds.model import DEFAULT_THRESHOLDS, ThresholdSet

if TYPE_CHECKING:
    from collections.abc import Callable

    from coaching.scheduler.timers import TimerHandle, Timers

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    DISABLED = "disabled"
    IDLE = "idle"
    DISPLAYING = "displaying"
    ENDED = "ended"


@dataclass(slots=True)
class SessionState:
    """Mutable per-session state. Replaced wholesale by ``start_session``."""

    enabled: bool = False
    shown_count: int = 0
    last_shown_at: float | None = None
    last_speech_at: float | None = None
    session_timestamp: float = 0.0
    pending: PromptQueue = field(default_factory=PromptQueue)
    current: CoachingPrompt | None = None
    current_origin: DeliveryMode | None = None
    history: list[ResponseRecord] = field(default_factory=list)
    auto_dismiss: TimerHandle | None = None
    settle: TimerHandle | None = None
    retry: TimerHandle | None = None
    ended: bool = False

    def cancel_timers(self) -> None:
        for handle in (self.auto_dismiss, self.settle, self.retry):
            if handle is not None:
                handle.cancel()
        self.auto_dismiss = None
        self.settle = None
        self.retry = None


class CoachingService:
    """Decides whether, when and where each coaching prompt reaches the interviewer.

    Parameters
    ----------
    timers:
        Clock and single-shot timer source (see :mod:`coaching.scheduler.timers`).
    thresholds:
        Base gating thresholds.
    cultural_context:
        Cultural dials applied on top of *thresholds* at every gating check.
    delivery:
        Delivery mode / auto-dismiss controller.
    tracker:
        Event tracker; may be shared across sessions to accumulate totals.
    enabled:
        Initial enabled flag for the first session. Coaching is opt-in.
    adaptive:
        When true, ``start_session`` adapts the base thresholds to the
        tracker's lifetime response totals.
    """

    def __init__(
        self,
        timers: Timers,
        *,
        thresholds: ThresholdSet = DEFAULT_THRESHOLDS,
        cultural_context: CulturalContext = DEFAULT_CULTURAL_CONTEXT,
        delivery: DeliveryController | None = None,
        tracker: CoachingEventTracker | None = None,
        enabled: bool = False,
        adaptive: bool = False,
    ) -> None:
        self.timers = timers
        self.delivery = delivery or DeliveryController()
        self.tracker = tracker or CoachingEventTracker()
        self.events = EventBus()
        self.adaptive = adaptive
        self._base_thresholds = thresholds
        self._thresholds = thresholds
        self._context = cultural_context
        self._session = SessionState(enabled=enabled)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(self, enabled: bool | None = None) -> None:
        """Reset all per-session state. ``enabled=None`` keeps the previous flag."""
        previous = self._session
        previous.cancel_timers()
        flag = previous.enabled if enabled is None else enabled

        self._session = SessionState(enabled=flag)
        self.delivery.clear_pull_queue()
        self.delivery.clear_preview_log()
        self.tracker.start_session()
        self._thresholds = self._adapted(self._base_thresholds)

        eff = self.effective_thresholds
        logger.info(
            "CoachingService started: enabled=%s mode=%s max_prompts=%d confidence=%.0f%% cooldown=%.0fs speech_delay=%.1fs",
            flag,
            self.delivery.mode.value,
            eff.max_prompts_per_session,
            eff.minimum_confidence * 100,
            eff.cooldown,
            eff.speech_cooldown,
        )

    def end_session(self) -> None:
        """Tear down without recording a response for any visible prompt."""
        session = self._session
        if session.ended:
            return
        session.cancel_timers()
        session.current = None
        session.current_origin = None
        session.pending.clear()
        session.ended = True
        self.delivery.clear_pull_queue()
        self.tracker.end_session()
        logger.info("CoachingService ended session")

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def enable(self) -> None:
        session = self._session
        if session.ended or session.enabled:
            return
        session.enabled = True
        logger.info("Coaching enabled")
        self.events.publish(COACHING_ENABLED, {})
        self._promote_next()

    def disable(self) -> None:
        session = self._session
        if session.ended or not session.enabled:
            return
        session.enabled = False

        if session.current is not None:
            prompt = self._end_display(CoachingResponse.DISMISSED)
            self.events.publish(
                PROMPT_DISMISSED,
                {"prompt": prompt, "response": CoachingResponse.DISMISSED},
            )

        session.cancel_timers()
        dropped = session.pending.clear()
        self.delivery.clear_pull_queue()
        logger.info("Coaching disabled (%d pending prompts dropped)", dropped)
        self.events.publish(COACHING_DISABLED, {})

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def process_candidate(self, raw: RawCandidate) -> CoachingPrompt | None:
        """Parse and submit a raw suggestion. Returns the prompt if it was accepted."""
        if not self.is_enabled:
            logger.debug("Coaching inactive, ignoring candidate: %s", raw.name)
            return None

        prompt = parse_candidate(raw)
        if prompt is None:
            return None
        return prompt if self.submit_prompt(prompt) else None

    def submit_prompt(self, prompt: CoachingPrompt) -> bool:
        """Route a prompt according to the delivery mode.

        Returns ``False`` when validation rejected it.
        """
        if not self._validate(prompt):
            return False

        mode = self.delivery.mode
        if mode is DeliveryMode.PREVIEW:
            self.delivery.log_preview(prompt)
            return True
        if mode is DeliveryMode.PULL:
            self.delivery.enqueue_for_pull(prompt)
            return True

        session = self._session
        if not session.pending and self.can_show_now():
            self._show(prompt, DeliveryMode.IMMEDIATE)
            return True

        session.pending.enqueue(prompt)
        logger.debug(
            "Prompt queued: %s, queue size: %d",
            prompt.type.display_name,
            len(session.pending),
        )
        self._promote_next()
        return True

    def notify_speech_detected(self, timestamp: float | None = None) -> None:
        """Record speech at *timestamp* (timer clock seconds; defaults to now)."""
        if self._session.ended:
            return
        self._session.last_speech_at = self.timers.now() if timestamp is None else timestamp

    def update_timestamp(self, seconds: float) -> None:
        """Set the session-relative time used when recording shown prompts."""
        self._session.session_timestamp = seconds

    # ------------------------------------------------------------------
    # User responses
    # ------------------------------------------------------------------

    def accept(self, prompt_id: str) -> bool:
        return self._respond(prompt_id, CoachingResponse.ACCEPTED)

    def dismiss(self, prompt_id: str) -> bool:
        return self._respond(prompt_id, CoachingResponse.DISMISSED)

    def snooze(self, prompt_id: str) -> bool:
        """Hide the prompt and put it back first in line.

        The shown counter is decremented, but the cooldown restarts now.
        """
        session = self._session
        if not self._matches(prompt_id):
            return False

        origin = session.current_origin
        prompt = self._end_display(CoachingResponse.SNOOZED)
        session.shown_count = max(0, session.shown_count - 1)
        session.last_shown_at = self.timers.now()
        if origin is DeliveryMode.PULL:
            self.delivery.return_to_pull(prompt)
        else:
            session.pending.push_front(prompt)

        logger.info("Prompt snoozed: %s", prompt.type.display_name)
        self.events.publish(
            PROMPT_DISMISSED,
            {"prompt": prompt, "response": CoachingResponse.SNOOZED},
        )
        self._schedule_settle()
        return True

    def pull_next(self) -> CoachingPrompt | None:
        """Display the highest-priority pulled prompt, if gating allows."""
        session = self._session
        if session.ended or not session.enabled:
            return None
        if self.delivery.mode is not DeliveryMode.PULL:
            logger.debug("pull_next ignored outside pull mode")
            return None
        if session.current is not None or self.has_reached_max_prompts:
            return None
        if not self.delivery.has_pending_pull_prompts:
            return None
        if not self.can_show_now():
            logger.debug("pull_next blocked by timing gates")
            return None

        while True:
            prompt = self.delivery.pop_pull()
            if prompt is None:
                return None
            if self._validate(prompt):
                self._show(prompt, DeliveryMode.PULL)
                return prompt
            logger.debug("Pulled prompt no longer valid, skipped: %s", prompt.id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def thresholds(self) -> ThresholdSet:
        return self._thresholds

    @thresholds.setter
    def thresholds(self, thresholds: ThresholdSet) -> None:
        """Replace the base set; adaptation, when on, is reapplied on top of it."""
        self._base_thresholds = thresholds
        self._thresholds = self._adapted(thresholds)

    @property
    def base_thresholds(self) -> ThresholdSet:
        return self._base_thresholds

    def update_thresholds(self, **overrides) -> ThresholdSet:
        self.thresholds = self._base_thresholds.with_overrides(**overrides)
        return self._thresholds

    @property
    def cultural_context(self) -> CulturalContext:
        return self._context

    @cultural_context.setter
    def cultural_context(self, context: CulturalContext) -> None:
        self._context = context
        logger.info("Cultural context updated (preset: %s)", context.preset.value)

    def select_cultural_preset(self, preset: CulturalPreset) -> None:
        self.cultural_context = preset_dials(preset)

    @property
    def delivery_mode(self) -> DeliveryMode:
        return self.delivery.mode

    @delivery_mode.setter
    def delivery_mode(self, mode: DeliveryMode) -> None:
        self.delivery.mode = mode
        if mode is DeliveryMode.IMMEDIATE:
            self._promote_next()

    @property
    def auto_dismiss_preset(self) -> AutoDismissPreset | None:
        return self.delivery.auto_dismiss_preset

    @auto_dismiss_preset.setter
    def auto_dismiss_preset(self, preset: AutoDismissPreset | None) -> None:
        self.delivery.auto_dismiss_preset = preset

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def effective_thresholds(self) -> EffectiveThresholds:
        return compute_effective(self._thresholds, self._context)

    @property
    def state(self) -> EngineState:
        session = self._session
        if session.ended:
            return EngineState.ENDED
        if session.current is not None:
            return EngineState.DISPLAYING
        return EngineState.IDLE if session.enabled else EngineState.DISABLED

    @property
    def is_enabled(self) -> bool:
        return self._session.enabled and not self._session.ended

    @property
    def current_prompt(self) -> CoachingPrompt | None:
        return self._session.current

    @property
    def is_showing_prompt(self) -> bool:
        return self._session.current is not None

    @property
    def pending_prompts(self) -> list[CoachingPrompt]:
        return self._session.pending.items

    @property
    def pull_queue(self) -> list[CoachingPrompt]:
        return self.delivery.pull_queue

    @property
    def preview_log(self) -> list[CoachingPrompt]:
        return self.delivery.preview_log

    @property
    def prompt_count(self) -> int:
        return self._session.shown_count

    @property
    def has_reached_max_prompts(self) -> bool:
        return self._session.shown_count >= self.effective_thresholds.max_prompts_per_session

    @property
    def history(self) -> list[ResponseRecord]:
        return list(self._session.history)

    @property
    def cooldown_remaining(self) -> float:
        last = self._session.last_shown_at
        if last is None:
            return 0.0
        return max(0.0, self.effective_thresholds.cooldown - (self.timers.now() - last))

    @property
    def speech_cooldown_remaining(self) -> float:
        last = self._session.last_speech_at
        if last is None:
            return 0.0
        return max(0.0, self.effective_thresholds.speech_cooldown - (self.timers.now() - last))

    def can_show_now(self) -> bool:
        session = self._session
        if session.ended or session.current is not None:
            return False

        remaining = self.cooldown_remaining
        if remaining > 0:
            logger.debug("In cooldown: %.0fs remaining", remaining)
            return False

        remaining = self.speech_cooldown_remaining
        if remaining > 0:
            logger.debug("Speech cooldown: %.1fs remaining", remaining)
            return False

        return True

    # ------------------------------------------------------------------
    # Listener hooks
    # ------------------------------------------------------------------

    def on_prompt_shown(self, handler: Handler) -> Callable[[], None]:
        return self.events.subscribe(PROMPT_SHOWN, handler)

    def on_prompt_dismissed(self, handler: Handler) -> Callable[[], None]:
        return self.events.subscribe(PROMPT_DISMISSED, handler)

    def on_prompt_auto_dismissed(self, handler: Handler) -> Callable[[], None]:
        return self.events.subscribe(PROMPT_AUTO_DISMISSED, handler)

    def on_coaching_enabled(self, handler: Handler) -> Callable[[], None]:
        return self.events.subscribe(COACHING_ENABLED, handler)

    def on_coaching_disabled(self, handler: Handler) -> Callable[[], None]:
        return self.events.subscribe(COACHING_DISABLED, handler)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _adapted(self, base: ThresholdSet) -> ThresholdSet:
        return self.tracker.adaptive_thresholds(base) if self.adaptive else base

    def _validate(self, prompt: CoachingPrompt) -> bool:
        session = self._session
        if session.ended or not session.enabled:
            logger.debug("Coaching inactive, prompt rejected: %s", prompt.type.display_name)
            return False

        eff = self.effective_thresholds
        if session.shown_count >= eff.max_prompts_per_session:
            logger.debug("Max prompts reached (%d)", eff.max_prompts_per_session)
            return False

        if prompt.confidence < eff.minimum_confidence:
            logger.debug(
                "Confidence too low: %.0f%% < %.0f%%",
                prompt.confidence * 100,
                eff.minimum_confidence * 100,
            )
            return False

        return True

    def _matches(self, prompt_id: str) -> bool:
        current = self._session.current
        if current is None or current.id != prompt_id:
            logger.debug("Response for stale prompt ignored: %s", prompt_id)
            return False
        return True

    def _show(self, prompt: CoachingPrompt, origin: DeliveryMode) -> None:
        session = self._session
        now = self.timers.now()
        if session.retry is not None:
            session.retry.cancel()
            session.retry = None

        session.shown_count += 1
        session.last_shown_at = now
        session.current = prompt
        session.current_origin = origin
        self.tracker.record_prompt_shown(prompt, session_timestamp=session.session_timestamp, now=now)

        duration = self.delivery.auto_dismiss_duration(self.effective_thresholds.auto_dismiss_duration)
        if duration is not None:
            session.auto_dismiss = self.timers.call_later(
                duration, partial(self._on_auto_dismiss, session, prompt.id)
            )

        logger.info(
            "Showing prompt: type=%s confidence=%.0f%% count=%d auto_dismiss=%s text=%.50s",
            prompt.type.display_name,
            prompt.confidence * 100,
            session.shown_count,
            f"{duration:.0f}s" if duration is not None else "manual",
            prompt.text,
        )
        self.events.publish(PROMPT_SHOWN, {"prompt": prompt})

    def _end_display(self, response: CoachingResponse) -> CoachingPrompt:
        session = self._session
        prompt = session.current
        assert prompt is not None
        if session.auto_dismiss is not None:
            session.auto_dismiss.cancel()
            session.auto_dismiss = None

        now = self.timers.now()
        session.current = None
        session.current_origin = None
        session.history.append(ResponseRecord(prompt=prompt, response=response, timestamp=now))
        self.tracker.record_response(prompt.id, response, now=now)
        return prompt

    def _respond(self, prompt_id: str, response: CoachingResponse) -> bool:
        if not self._matches(prompt_id):
            return False
        prompt = self._end_display(response)
        logger.info("Prompt dismissed with response: %s", response.value)
        self.events.publish(PROMPT_DISMISSED, {"prompt": prompt, "response": response})
        self._schedule_settle()
        return True

    def _on_auto_dismiss(self, session: SessionState, prompt_id: str) -> None:
        if session is not self._session or session.current is None or session.current.id != prompt_id:
            return
        session.auto_dismiss = None
        prompt = self._end_display(CoachingResponse.NOT_RESPONDED)
        logger.info("Prompt auto-dismissed: %s", prompt.id)
        self.events.publish(
            PROMPT_AUTO_DISMISSED,
            {"prompt": prompt, "response": CoachingResponse.NOT_RESPONDED},
        )
        self._schedule_settle()

    def _schedule_settle(self) -> None:
        session = self._session
        if session.settle is not None:
            session.settle.cancel()
        session.settle = self.timers.call_later(
            SETTLE_DELAY_SECONDS, partial(self._on_wakeup, session)
        )

    def _schedule_retry(self) -> None:
        session = self._session
        delay = RETRY_MIN_DELAY_SECONDS
        cooldown = self.cooldown_remaining
        if cooldown > 0:
            delay = max(delay, cooldown + RETRY_PADDING_SECONDS)
        speech = self.speech_cooldown_remaining
        if speech > 0:
            delay = max(delay, speech + RETRY_PADDING_SECONDS)

        if session.retry is not None:
            session.retry.cancel()
        session.retry = self.timers.call_later(delay, partial(self._on_wakeup, session))
        logger.debug("Pending prompt retry in %.1fs", delay)

    def _on_wakeup(self, session: SessionState) -> None:
        if session is not self._session or session.ended:
            return
        self._promote_next()

    def _promote_next(self) -> None:
        session = self._session
        if session.ended or not session.enabled:
            return
        if self.delivery.mode is not DeliveryMode.IMMEDIATE:
            return

        while session.pending:
            if session.current is not None:
                return
            if not self.can_show_now():
                self._schedule_retry()
                return
            prompt = session.pending.pop()
            if prompt is not None and self._validate(prompt):
                self._show(prompt, DeliveryMode.IMMEDIATE)
                return
            logger.debug("Pending prompt no longer valid, skipped")
