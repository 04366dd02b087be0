from __future__ import annotations

from coaching.engine.delivery import AutoDismissPreset, DeliveryController, DeliveryMode
from coaching.engine.service import CoachingService, EngineState
from coaching.engine.tracker import CoachingEventTracker, SessionStats

__all__ = [
    "AutoDismissPreset",
    "CoachingEventTracker",
    "CoachingService",
    "DeliveryController",
    "DeliveryMode",
    "EngineState",
    "SessionStats",
]
