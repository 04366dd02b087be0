"""Delivery modes and auto-dismiss timing.

The controller decides *where* a validated prompt goes, not whether it passes
gating:

* ``IMMEDIATE`` — the service's own pending queue and display path;
* ``PULL``      — an independent priority queue the interviewer drains on demand;
* ``PREVIEW``   — an append-only log that is never displayed.

The three containers are independent. Switching mode neither migrates nor
drops what another mode already holds; callers clear explicitly.
"""

from __future__ import annotations

import logging
from enum import Enum

from coaching.prompts.model import CoachingPrompt
from coaching.prompts.queue import PromptQueue

logger = logging.getLogger(__name__)


class DeliveryMode(str, Enum):
    IMMEDIATE = "immediate"
    PULL = "pull"
    PREVIEW = "preview"


class AutoDismissPreset(str, Enum):
    QUICK = "quick"
    STANDARD = "standard"
    RELAXED = "relaxed"
    EXTENDED = "extended"
    MANUAL = "manual"

    @property
    def duration(self) -> float | None:
        """Seconds before auto-dismiss; ``None`` means the user dismisses manually."""
        return _PRESET_DURATIONS[self]


_PRESET_DURATIONS: dict[AutoDismissPreset, float | None] = {
    AutoDismissPreset.QUICK: 5.0,
    AutoDismissPreset.STANDARD: 8.0,
    AutoDismissPreset.RELAXED: 15.0,
    AutoDismissPreset.EXTENDED: 30.0,
    AutoDismissPreset.MANUAL: None,
}


class DeliveryController:
    """Holds the delivery mode, the auto-dismiss preset, the pull queue and the preview log.

    Parameters
    ----------
    mode:
        Initial delivery mode.
    auto_dismiss_preset:
        Initial preset. ``None`` defers to the threshold set's
        ``auto_dismiss_duration``.
    """

    def __init__(
        self,
        mode: DeliveryMode = DeliveryMode.IMMEDIATE,
        auto_dismiss_preset: AutoDismissPreset | None = None,
    ) -> None:
        self._mode = mode
        self._preset = auto_dismiss_preset
        self._pull_queue = PromptQueue()
        self._preview_log: list[CoachingPrompt] = []

    # ── Settings ─────────────────────────────────────────────────

    @property
    def mode(self) -> DeliveryMode:
        return self._mode

    @mode.setter
    def mode(self, mode: DeliveryMode) -> None:
        if mode is self._mode:
            return
        logger.info(
            "Delivery mode changed: %s → %s (pull=%d, preview=%d left in place)",
            self._mode.value,
            mode.value,
            len(self._pull_queue),
            len(self._preview_log),
        )
        self._mode = mode

    @property
    def auto_dismiss_preset(self) -> AutoDismissPreset | None:
        return self._preset

    @auto_dismiss_preset.setter
    def auto_dismiss_preset(self, preset: AutoDismissPreset | None) -> None:
        self._preset = preset
        logger.info("Auto-dismiss preset changed to: %s", preset.value if preset else "thresholds")

    def auto_dismiss_duration(self, fallback: float) -> float | None:
        """Duration for the next prompt shown; ``None`` disables auto-dismiss."""
        if self._preset is None:
            return fallback
        return self._preset.duration

    # ── Pull mode ────────────────────────────────────────────────

    def enqueue_for_pull(self, prompt: CoachingPrompt) -> None:
        self._pull_queue.enqueue(prompt)
        logger.info(
            "Enqueued prompt for pull: %s, queue size: %d",
            prompt.type.display_name,
            len(self._pull_queue),
        )

    def return_to_pull(self, prompt: CoachingPrompt) -> None:
        self._pull_queue.push_front(prompt)

    def peek_pull(self) -> CoachingPrompt | None:
        return self._pull_queue.peek()

    def pop_pull(self) -> CoachingPrompt | None:
        prompt = self._pull_queue.pop()
        if prompt is not None:
            logger.info(
                "Pulled prompt from queue: %s, %d remaining",
                prompt.type.display_name,
                len(self._pull_queue),
            )
        return prompt

    def clear_pull_queue(self) -> None:
        count = self._pull_queue.clear()
        logger.info("Pull queue cleared (%d prompts removed)", count)

    @property
    def pull_queue(self) -> list[CoachingPrompt]:
        return self._pull_queue.items

    @property
    def pull_queue_count(self) -> int:
        return len(self._pull_queue)

    @property
    def has_pending_pull_prompts(self) -> bool:
        return bool(self._pull_queue)

    # ── Preview mode ─────────────────────────────────────────────

    def log_preview(self, prompt: CoachingPrompt) -> None:
        self._preview_log.append(prompt)
        logger.info(
            "Preview logged: %s, log size: %d",
            prompt.type.display_name,
            len(self._preview_log),
        )

    def clear_preview_log(self) -> None:
        count = len(self._preview_log)
        self._preview_log.clear()
        logger.info("Preview log cleared (%d entries removed)", count)

    @property
    def preview_log(self) -> list[CoachingPrompt]:
        return list(self._preview_log)

    @property
    def preview_log_count(self) -> int:
        return len(self._preview_log)

    # ── Reset ────────────────────────────────────────────────────

    def reset_to_defaults(self) -> None:
        self.auto_dismiss_preset = None
        self.mode = DeliveryMode.IMMEDIATE
        self.clear_pull_queue()
        self.clear_preview_log()
