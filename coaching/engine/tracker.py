"""Per-session coaching event log and response statistics.

The tracker records every prompt shown and how it ended, derives session
statistics and per-type analytics, and keeps running totals across the
sessions it has seen in this process. Nothing is written to disk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from coaching.defaults import EFFECTIVE_TYPE_MIN_SAMPLES
from coaching.prompts.model import CoachingPrompt, CoachingResponse, PromptType
from coaching.thresholds.adaptive import AdaptiveThresholdCalibrator, ResponseTotals
from coaching.thresholds.model import ThresholdSet

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CoachingEventRecord:
    prompt: CoachingPrompt
    session_timestamp: float
    shown_at: float
    response: CoachingResponse = CoachingResponse.NOT_RESPONDED
    responded_at: float | None = None

    @property
    def response_time(self) -> float | None:
        if self.responded_at is None:
            return None
        return self.responded_at - self.shown_at


@dataclass(slots=True)
class SessionStats:
    prompts_shown: int = 0
    prompts_accepted: int = 0
    prompts_dismissed: int = 0
    prompts_snoozed: int = 0
    prompts_timed_out: int = 0
    total_response_time: float = 0.0

    @property
    def acceptance_rate(self) -> float:
        if self.prompts_shown == 0:
            return 0.0
        return self.prompts_accepted / self.prompts_shown

    @property
    def average_response_time(self) -> float:
        responded = self.prompts_accepted + self.prompts_dismissed + self.prompts_snoozed
        if responded == 0:
            return 0.0
        return self.total_response_time / responded


@dataclass(slots=True)
class PromptTypeAnalytics:
    type: PromptType
    total_shown: int
    accepted: int
    dismissed: int
    acceptance_rate: float
    average_response_time: float


@dataclass(slots=True)
class _SessionLog:
    events: list[CoachingEventRecord] = field(default_factory=list)
    stats: SessionStats = field(default_factory=SessionStats)


class CoachingEventTracker:
    def __init__(self, calibrator: AdaptiveThresholdCalibrator | None = None) -> None:
        self._calibrator = calibrator or AdaptiveThresholdCalibrator()
        self._session = _SessionLog()
        self.totals = ResponseTotals()
        self.sessions_completed = 0

    # ── Session lifecycle ────────────────────────────────────────

    def start_session(self) -> None:
        self._session = _SessionLog()

    def end_session(self) -> SessionStats:
        stats = self._session.stats
        self.sessions_completed += 1
        logger.info(
            "Coaching session ended: shown=%d accepted=%d dismissed=%d snoozed=%d timed_out=%d acceptance=%.1f%%",
            stats.prompts_shown,
            stats.prompts_accepted,
            stats.prompts_dismissed,
            stats.prompts_snoozed,
            stats.prompts_timed_out,
            stats.acceptance_rate * 100,
        )
        return stats

    # ── Recording ────────────────────────────────────────────────

    def record_prompt_shown(self, prompt: CoachingPrompt, *, session_timestamp: float, now: float) -> CoachingEventRecord:
        record = CoachingEventRecord(prompt=prompt, session_timestamp=session_timestamp, shown_at=now)
        self._session.events.append(record)
        self._session.stats.prompts_shown += 1
        self.totals.shown += 1
        return record

    def record_response(self, prompt_id: str, response: CoachingResponse, *, now: float) -> None:
        record = self._open_record(prompt_id)
        if record is None:
            logger.warning("Could not find open event for prompt: %s", prompt_id)
            return

        record.response = response
        record.responded_at = now
        stats = self._session.stats
        if response is CoachingResponse.ACCEPTED:
            stats.prompts_accepted += 1
            stats.total_response_time += record.response_time or 0.0
            self.totals.accepted += 1
        elif response is CoachingResponse.DISMISSED:
            stats.prompts_dismissed += 1
            stats.total_response_time += record.response_time or 0.0
            self.totals.dismissed += 1
        elif response is CoachingResponse.SNOOZED:
            stats.prompts_snoozed += 1
            stats.total_response_time += record.response_time or 0.0
        else:
            stats.prompts_timed_out += 1

    # ── Queries ──────────────────────────────────────────────────

    @property
    def session_events(self) -> list[CoachingEventRecord]:
        return list(self._session.events)

    @property
    def session_stats(self) -> SessionStats:
        return self._session.stats

    def type_analytics(self, prompt_type: PromptType) -> PromptTypeAnalytics:
        events = [e for e in self._session.events if e.prompt.type is prompt_type]
        accepted = sum(1 for e in events if e.response is CoachingResponse.ACCEPTED)
        dismissed = sum(1 for e in events if e.response is CoachingResponse.DISMISSED)
        times = [e.response_time for e in events if e.response_time is not None]
        return PromptTypeAnalytics(
            type=prompt_type,
            total_shown=len(events),
            accepted=accepted,
            dismissed=dismissed,
            acceptance_rate=accepted / len(events) if events else 0.0,
            average_response_time=sum(times) / len(times) if times else 0.0,
        )

    def most_effective_types(self) -> list[PromptType]:
        analytics = [self.type_analytics(t) for t in PromptType]
        eligible = [a for a in analytics if a.total_shown >= EFFECTIVE_TYPE_MIN_SAMPLES]
        eligible.sort(key=lambda a: a.acceptance_rate, reverse=True)
        return [a.type for a in eligible]

    def adaptive_thresholds(self, base: ThresholdSet) -> ThresholdSet:
        return self._calibrator.adapt(base, self.totals)

    def _open_record(self, prompt_id: str) -> CoachingEventRecord | None:
        for record in reversed(self._session.events):
            if record.prompt.id == prompt_id and record.responded_at is None:
                return record
        return None
