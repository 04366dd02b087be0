"""Priority-ordered pending list for coaching prompts.

Prompts are kept sorted by ``(priority rank, timestamp)`` ascending. Insertion
is a stable insertion sort, so prompts with equal keys keep arrival order.

Snoozed prompts go to a separate front section via :meth:`PromptQueue.push_front`
and are handed out before anything in the sorted section, most recent first.

Usage::

    queue = PromptQueue()
    queue.enqueue(prompt)
    next_prompt = queue.pop()
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Deque

from coaching.prompts.model import CoachingPrompt

__all__ = ["PromptQueue"]


class PromptQueue:
    def __init__(self) -> None:
        self._front: Deque[CoachingPrompt] = deque()
        self._items: list[CoachingPrompt] = []

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def enqueue(self, prompt: CoachingPrompt) -> None:
        key = prompt.sort_key
        index = len(self._items)
        while index > 0 and self._items[index - 1].sort_key > key:
            index -= 1
        self._items.insert(index, prompt)

    def push_front(self, prompt: CoachingPrompt) -> None:
        """Place *prompt* ahead of every sorted entry."""
        self._front.appendleft(prompt)

    def peek(self) -> CoachingPrompt | None:
        if self._front:
            return self._front[0]
        if self._items:
            return self._items[0]
        return None

    def pop(self) -> CoachingPrompt | None:
        if self._front:
            return self._front.popleft()
        if self._items:
            return self._items.pop(0)
        return None

    def clear(self) -> int:
        """Drop everything; returns how many prompts were removed."""
        count = len(self)
        self._front.clear()
        self._items.clear()
        return count

    @property
    def items(self) -> list[CoachingPrompt]:
        return [*self._front, *self._items]

    def __len__(self) -> int:
        return len(self._front) + len(self._items)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __iter__(self) -> Iterator[CoachingPrompt]:
        return iter(self.items)
