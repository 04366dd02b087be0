"""Centralised algorithm defaults for the coaching engine.

All tuneable numeric constants used by the gating, parsing and scheduling
code live here so the engine can be tuned from a single location.

Modules import what they need from here, often under shorter local names.
"""

from __future__ import annotations

# ── Threshold Set (coaching/thresholds/model.py) ─────────────────
DEFAULT_MIN_CONFIDENCE: float = 0.85
DEFAULT_COOLDOWN_SECONDS: float = 120.0
DEFAULT_SPEECH_COOLDOWN_SECONDS: float = 5.0
DEFAULT_MAX_PROMPTS_PER_SESSION: int = 3
DEFAULT_AUTO_DISMISS_SECONDS: float = 8.0
DEFAULT_FADE_IN_SECONDS: float = 0.3
DEFAULT_FADE_OUT_SECONDS: float = 0.25
SENSITIVITY_MIN: float = 0.1
SENSITIVITY_MAX: float = 3.0

# ── Cultural context (coaching/thresholds/cultural.py) ───────────
BASELINE_SILENCE_TOLERANCE: float = 5.0   # Western preset, seconds

# ── Candidate parser (coaching/prompts/parser.py) ────────────────
FALLBACK_CONFIDENCE: float = 0.85
FALLBACK_PROMPT_TEXT: str = "Consider this approach..."

# ── CoachingService (coaching/engine/service.py) ─────────────────
SETTLE_DELAY_SECONDS: float = 0.5
RETRY_MIN_DELAY_SECONDS: float = 1.0
RETRY_PADDING_SECONDS: float = 0.5

# ── Adaptive calibration (coaching/thresholds/adaptive.py) ───────
ADAPTIVE_MIN_PROMPTS: int = 10
ADAPTIVE_HIGH_DISMISSAL_RATE: float = 0.7
ADAPTIVE_HIGH_ACCEPTANCE_RATE: float = 0.8
ADAPTIVE_CONFIDENCE_RAISE: float = 0.05
ADAPTIVE_CONFIDENCE_CEILING: float = 0.95
ADAPTIVE_CONFIDENCE_DROP: float = 0.03
ADAPTIVE_CONFIDENCE_FLOOR: float = 0.70
ADAPTIVE_MIN_MAX_PROMPTS: int = 2

# ── CoachingEventTracker (coaching/engine/tracker.py) ────────────
EFFECTIVE_TYPE_MIN_SAMPLES: int = 3
