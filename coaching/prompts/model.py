from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4


class PromptType(str, Enum):
    SUGGEST_FOLLOW_UP = "suggest_follow_up"
    EXPLORE_DEEPER = "explore_deeper"
    UNCOVERED_TOPIC = "uncovered_topic"
    SUGGEST_PIVOT = "suggest_pivot"
    ENCOURAGEMENT = "encouragement"
    GENERAL_TIP = "general_tip"

    @property
    def priority(self) -> int:
        """Lower rank is shown first when queued."""
        return _PRIORITY[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_PRIORITY: dict[PromptType, int] = {
    PromptType.UNCOVERED_TOPIC: 1,
    PromptType.SUGGEST_FOLLOW_UP: 2,
    PromptType.EXPLORE_DEEPER: 3,
    PromptType.SUGGEST_PIVOT: 4,
    PromptType.ENCOURAGEMENT: 5,
    PromptType.GENERAL_TIP: 6,
}

_DISPLAY_NAMES: dict[PromptType, str] = {
    PromptType.SUGGEST_FOLLOW_UP: "Follow-up Suggestion",
    PromptType.EXPLORE_DEEPER: "Explore Deeper",
    PromptType.UNCOVERED_TOPIC: "Uncovered Topic",
    PromptType.SUGGEST_PIVOT: "Suggested Pivot",
    PromptType.ENCOURAGEMENT: "Encouragement",
    PromptType.GENERAL_TIP: "Tip",
}


class CoachingResponse(str, Enum):
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    SNOOZED = "snoozed"
    NOT_RESPONDED = "not_responded"


@dataclass(frozen=True, slots=True)
class CoachingPrompt:
    type: PromptType
    text: str
    reason: str
    confidence: float
    timestamp: float  # session-relative seconds the suggestion was generated for
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: float = field(default_factory=time.time)

    @property
    def sort_key(self) -> tuple[int, float]:
        return (self.type.priority, self.timestamp)


@dataclass(frozen=True, slots=True)
class ResponseRecord:
    """One closed display: which prompt, how it ended, and when."""

    prompt: CoachingPrompt
    response: CoachingResponse
    timestamp: float
