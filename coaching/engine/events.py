from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

PROMPT_SHOWN = "prompt_shown"
PROMPT_DISMISSED = "prompt_dismissed"
PROMPT_AUTO_DISMISSED = "prompt_auto_dismissed"
COACHING_ENABLED = "coaching_enabled"
COACHING_DISABLED = "coaching_disabled"

EVENT_NAMES = frozenset(
    {PROMPT_SHOWN, PROMPT_DISMISSED, PROMPT_AUTO_DISMISSED, COACHING_ENABLED, COACHING_DISABLED}
)


@dataclass(slots=True)
class Event:
    name: str
    payload: dict[str, Any]
    timestamp: str


Handler = Callable[[Event], None]


class EventBus:
    """Synchronous in-process fan-out for engine notifications.

    A failing handler is logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> Callable[[], None]:
        if event_name not in EVENT_NAMES:
            raise ValueError(f"Unknown coaching event: {event_name}")
        self._subscribers[event_name].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event_name: str, payload: dict[str, Any]) -> Event:
        event = Event(
            name=event_name,
            payload=payload,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        for handler in list(self._subscribers.get(event_name, [])):
            try:
                handler(event)
            except Exception as exc:
                logger.warning("Listener for %s failed: %s", event_name, exc)
        return event
