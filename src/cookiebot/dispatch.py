# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Outbound queue that honours the chat service's message rate limit."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from cookiebot.logging import get_logger

if TYPE_CHECKING:
    import structlog

    from cookiebot.strategy import SendCommand


class RateBudget:
    """Sliding window of at most ``max_messages`` sends per ``window_s``."""

    def __init__(self, max_messages: int, window_s: float) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        if window_s <= 0:
            raise ValueError("window_s must be positive")
        self.max_messages = max_messages
        self.window_s = window_s
        self._sent: deque[float] = deque()

    def _roll(self, now: float) -> None:
        while self._sent and self._sent[0] + self.window_s <= now:
            self._sent.popleft()

    def remaining(self, now: float) -> int:
        self._roll(now)
        return self.max_messages - len(self._sent)

    def consume(self, now: float) -> None:
        self._roll(now)
        if len(self._sent) >= self.max_messages:
            raise RuntimeError("rate budget exhausted")
        self._sent.append(now)

    def available_at(self, now: float) -> float:
        """Earliest time a send fits in the window."""
        self._roll(now)
        if len(self._sent) < self.max_messages:
            return now
        return self._sent[0] + self.window_s


class Dispatcher:
    """FIFO of SendCommands released in order, never dropped or reordered.

    The head blocks everything behind it: a later command whose
    ``not_before`` has passed still waits for the head.
    """

    def __init__(self, budget: RateBudget, logger: structlog.BoundLogger | None = None) -> None:
        self._budget = budget
        self._queue: deque[SendCommand] = deque()
        self._suspended = False
        self._log = logger or get_logger(__name__)

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def budget(self) -> RateBudget:
        return self._budget

    def submit(self, action: SendCommand) -> None:
        self._queue.append(action)
        self._log.debug("action_queued", text=action.text, queued=len(self._queue))

    def requeue_front(self, action: SendCommand) -> None:
        """Return a send that failed in transit to the head of the queue."""
        self._queue.appendleft(action)
        self._log.info("action_requeued", text=action.text, queued=len(self._queue))

    def release(self, now: float) -> SendCommand | None:
        """Pop the head if it is due and the budget allows, else None."""
        if not self._queue:
            return None
        head = self._queue[0]
        if now < head.not_before:
            return None
        if self._budget.remaining(now) <= 0:
            if not self._suspended:
                self._suspended = True
                self._log.warning(
                    "rate_limit_suspended",
                    queued=len(self._queue),
                    resume_at=self._budget.available_at(now),
                )
            return None
        if self._suspended:
            self._suspended = False
            self._log.info("rate_limit_resumed", queued=len(self._queue))
        self._budget.consume(now)
        return self._queue.popleft()

    def next_release_at(self, now: float) -> float | None:
        """When the head can next be released, or None if the queue is empty."""
        if not self._queue:
            return None
        return max(self._queue[0].not_before, self._budget.available_at(now))

    def drain(self) -> list[SendCommand]:
        """Empty the queue without sending; returns what was discarded."""
        dropped = list(self._queue)
        self._queue.clear()
        return dropped
