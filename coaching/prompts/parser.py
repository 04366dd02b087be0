"""
Pure functions turning raw suggestion events into typed coaching prompts.
They do not depend on engine state and are easy to test in isolation.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from coaching.defaults import FALLBACK_CONFIDENCE, FALLBACK_PROMPT_TEXT
from coaching.prompts.model import CoachingPrompt, PromptType

logger = logging.getLogger(__name__)

TEXT_KEYS = ("text", "prompt", "message")
REASON_KEYS = ("reason", "context")

# Checked top to bottom against the lowercased name; first hit wins.
TYPE_RULES: tuple[tuple[frozenset[str], PromptType], ...] = (
    (frozenset({"follow", "question"}), PromptType.SUGGEST_FOLLOW_UP),
    (frozenset({"deep", "explore"}), PromptType.EXPLORE_DEEPER),
    (frozenset({"topic", "uncovered"}), PromptType.UNCOVERED_TOPIC),
    (frozenset({"pivot", "redirect"}), PromptType.SUGGEST_PIVOT),
    (frozenset({"encourage", "good"}), PromptType.ENCOURAGEMENT),
    (frozenset({"tip", "hint"}), PromptType.GENERAL_TIP),
)


@dataclass(slots=True)
class RawCandidate:
    """A function-call style suggestion as emitted by the AI source."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0


def infer_prompt_type(name: str) -> PromptType | None:
    try:
        return PromptType(name)
    except ValueError:
        pass

    lowered = name.lower()
    for keywords, prompt_type in TYPE_RULES:
        if any(keyword in lowered for keyword in keywords):
            return prompt_type
    return None


def parse_confidence(value: Any) -> float:
    if value is None:
        return FALLBACK_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return FALLBACK_CONFIDENCE
    if not math.isfinite(confidence):
        return FALLBACK_CONFIDENCE
    return confidence


def parse_candidate(raw: RawCandidate) -> CoachingPrompt | None:
    """Map a raw candidate to a prompt, or ``None`` when its name is unrecognised.

    Dropping unknown names is policy, not an error.
    """
    prompt_type = infer_prompt_type(raw.name)
    if prompt_type is None:
        logger.debug("Unknown candidate type, dropped: %s", raw.name)
        return None

    try:
        timestamp = float(raw.timestamp)
    except (TypeError, ValueError):
        logger.debug("Unparsable candidate timestamp, dropped: %r", raw.timestamp)
        return None

    args = raw.arguments if isinstance(raw.arguments, dict) else {}
    text = _first_present(args, TEXT_KEYS) or FALLBACK_PROMPT_TEXT
    reason = _first_present(args, REASON_KEYS) or ""

    return CoachingPrompt(
        type=prompt_type,
        text=text,
        reason=reason,
        confidence=parse_confidence(args.get("confidence")),
        timestamp=timestamp,
    )


def candidate_from_dict(data: dict) -> RawCandidate:
    """Build a :class:`RawCandidate` from a decoded JSON object."""
    arguments = data.get("arguments")
    if not isinstance(arguments, dict):
        arguments = {}
    return RawCandidate(
        name=str(data.get("name", "")),
        arguments={str(key): str(value) for key, value in arguments.items()},
        timestamp=float(data.get("timestamp", 0.0) or 0.0),
    )


def _first_present(args: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = args.get(key)
        if value is not None:
            return str(value)
    return None
