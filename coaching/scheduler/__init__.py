from __future__ import annotations

from coaching.scheduler.timers import APSchedulerTimers, ManualTimers, TimerHandle, Timers

__all__ = ["APSchedulerTimers", "ManualTimers", "TimerHandle", "Timers"]
