from __future__ import annotations

import os


def _optional_float(name: str) -> float | None:
	raw = os.getenv(name, "").strip()
	return float(raw) if raw else None


def _optional_int(name: str) -> int | None:
	raw = os.getenv(name, "").strip()
	return int(raw) if raw else None


LOG_LEVEL = os.getenv("LOG_LEVEL", os.getenv("COACH_LOG_LEVEL", "INFO")).upper()

# ── Session defaults ─────────────────────────────────────────────
COACH_ENABLED_BY_DEFAULT = bool(int(os.getenv("COACH_ENABLED_BY_DEFAULT", "0")))
COACH_LEVEL = os.getenv("COACH_LEVEL", "balanced").strip().lower()
COACH_CULTURAL_PRESET = os.getenv("COACH_CULTURAL_PRESET", "western").strip().lower()
COACH_ADAPTIVE_THRESHOLDS = bool(int(os.getenv("COACH_ADAPTIVE_THRESHOLDS", "0")))

# ── Delivery ─────────────────────────────────────────────────────
COACH_DELIVERY_MODE = os.getenv("COACH_DELIVERY_MODE", "immediate").strip().lower()
# Empty means "use the threshold set's auto-dismiss duration".
COACH_AUTO_DISMISS_PRESET = os.getenv("COACH_AUTO_DISMISS_PRESET", "").strip().lower()

# ── Threshold overrides (unset = use the coaching level's value) ─
COACH_MIN_CONFIDENCE = _optional_float("COACH_MIN_CONFIDENCE")
COACH_COOLDOWN_SECONDS = _optional_float("COACH_COOLDOWN_SECONDS")
COACH_SPEECH_COOLDOWN_SECONDS = _optional_float("COACH_SPEECH_COOLDOWN_SECONDS")
COACH_MAX_PROMPTS = _optional_int("COACH_MAX_PROMPTS")
COACH_AUTO_DISMISS_SECONDS = _optional_float("COACH_AUTO_DISMISS_SECONDS")
