# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Farming bot runtime.

One decision loop consumes inbound chat events and fired timers serially, so
the game state and the rate budget are only ever touched from one task. The
connection manager runs alongside it and feeds the inbound queue.
"""

from __future__ import annotations

import asyncio
import contextlib
import heapq
import time
from typing import TYPE_CHECKING

from cookiebot.connection import ConnectionManager
from cookiebot.dispatch import Dispatcher, RateBudget
from cookiebot.errors import TransportError
from cookiebot.events import SystemNotice
from cookiebot.game.patterns import MessageClassifier
from cookiebot.game.state import GameStateTracker
from cookiebot.logging import get_logger
from cookiebot.strategy import Recheck, SendCommand, StrategyEngine
from cookiebot.transport.tcp import TcpTransport

if TYPE_CHECKING:
    from collections.abc import Callable

    import structlog

    from cookiebot.config import BotConfig
    from cookiebot.events import ChatEvent
    from cookiebot.transport.base import ConnectionTransport

# Notices that mean Twitch dropped one of our messages
_REJECTED_NOTICES = frozenset({"msg_ratelimit", "msg_duplicate", "msg_slowmode", "msg_timedout", "msg_banned"})


class FarmBot:
    """Observes the target bot and answers its prompts."""

    def __init__(
        self,
        config: BotConfig,
        *,
        transport_factory: Callable[[], ConnectionTransport] = TcpTransport,
        clock: Callable[[], float] = time.time,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._log = logger or get_logger(__name__)

        target = config.target
        classifier = MessageClassifier(
            target.rules,
            operator=config.username,
            default_cooldown_s=target.default_cooldown_s,
        )
        self.tracker = GameStateTracker(
            target.login,
            classifier,
            target_user_id=target.user_id,
            claim_prompt=target.claim_prompt,
            claim_timeout_s=target.claim_timeout_s,
            purchases=target.purchases,
            logger=self._log,
        )
        self.strategy = StrategyEngine(target.responses, logger=self._log)
        self.dispatcher = Dispatcher(
            RateBudget(config.rate_limit.max_messages, config.rate_limit.window_s),
            logger=self._log,
        )
        self.connection = ConnectionManager(
            config,
            transport_factory=transport_factory,
            on_event=self.enqueue,
            on_disconnect=self.discard_pending,
            clock=clock,
            logger=self._log,
        )

        self._inbound: asyncio.Queue[ChatEvent] = asyncio.Queue()
        self._timers: list[float] = []
        self._stopping = False
        self._stopped = False

    @property
    def pending_timers(self) -> list[float]:
        return sorted(self._timers)

    @property
    def pending_events(self) -> int:
        return self._inbound.qsize()

    async def run(self) -> None:
        """Farm until stop() is called.

        Raises:
            AuthenticationFailure: Credentials were rejected
        """
        self._stopping = False
        self._stopped = False
        self._log.info(
            "bot_starting",
            username=self._config.username,
            channel=self._config.channel,
            target=self._config.target.login,
        )
        self.open_claim()

        conn_task = asyncio.create_task(self.connection.run(), name="cookiebot-connection")
        loop_task = asyncio.create_task(self._decision_loop(), name="cookiebot-decisions")
        try:
            done, _ = await asyncio.wait({conn_task, loop_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        finally:
            await self.stop()
            for task in (loop_task, conn_task):
                if not task.done():
                    task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            self._log.info("bot_stopped")

    async def stop(self) -> None:
        """Stop processing, discard queued work and close the connection."""
        if self._stopped:
            return
        self._stopped = True
        self._stopping = True

        dropped_inbound = self._drain_inbound()
        dropped_outbound = self.dispatcher.drain()
        self._log.info(
            "bot_stopping",
            inbound_dropped=dropped_inbound,
            outbound_dropped=len(dropped_outbound),
        )

        try:
            await asyncio.wait_for(self.connection.stop(), timeout=self._config.shutdown_timeout_s)
        except TimeoutError:
            self._log.warning("shutdown_timeout", timeout_s=self._config.shutdown_timeout_s)

    def open_claim(self, now: float | None = None) -> None:
        """Open the configured claim prompt unless a cooldown is known."""
        now = self._clock() if now is None else now
        if self.tracker.open_claim(now) is not None:
            self._react(now)

    def handle_event(self, event: ChatEvent, now: float | None = None) -> None:
        """Fold one inbound event into the game and react to any change."""
        now = self._clock() if now is None else now
        if isinstance(event, SystemNotice):
            self._on_notice(event)
            return
        change = self.tracker.apply(event)
        if change is None:
            return
        self._log.debug("state_changed", changed=sorted(change.changed))
        self._react(now)

    def handle_timer(self, now: float | None = None) -> bool:
        """Fire due timers. Returns True when at least one fired."""
        now = self._clock() if now is None else now
        fired = False
        while self._timers and self._timers[0] <= now:
            heapq.heappop(self._timers)
            fired = True
        if not fired:
            return False
        if len(self.dispatcher):
            # Still waiting to transmit; re-evaluate once the queue empties
            self.schedule(now + self._config.rate_limit.tick_interval_s)
            return True
        if self.tracker.expire(now) is not None:
            self._react(now)
        return True

    def schedule(self, at: float) -> None:
        if at not in self._timers:
            heapq.heappush(self._timers, at)

    async def dispatch(self, now: float | None = None) -> int:
        """Transmit every releasable command. Returns how many were sent."""
        now = self._clock() if now is None else now
        sent = 0
        while self.connection.is_joined():
            action = self.dispatcher.release(now)
            if action is None:
                break
            try:
                await self.connection.send_text(action.text)
            except TransportError as e:
                self._log.warning("send_failed", text=action.text, error=str(e))
                self.dispatcher.requeue_front(action)
                break
            sent += 1
        return sent

    def _react(self, now: float) -> None:
        # A claim reply may call for the answer plus follow-up purchases
        action = self.strategy.decide(self.tracker.state, now)
        while isinstance(action, SendCommand):
            self.dispatcher.submit(action)
            action = self.strategy.decide(self.tracker.state, now)
        if isinstance(action, Recheck):
            self.schedule(action.at)

        deadline = self.tracker.claim_deadline()
        if deadline is not None:
            self.schedule(deadline)

    def _on_notice(self, notice: SystemNotice) -> None:
        if notice.kind in _REJECTED_NOTICES:
            self._log.warning("message_rejected", kind=notice.kind, text=notice.text)
        else:
            self._log.debug("system_notice", kind=notice.kind, text=notice.text)

    def enqueue(self, event: ChatEvent) -> None:
        """Queue an inbound event for the decision loop."""
        if not self._stopping:
            self._inbound.put_nowait(event)

    def _drain_inbound(self) -> int:
        dropped = 0
        while not self._inbound.empty():
            self._inbound.get_nowait()
            dropped += 1
        return dropped

    def discard_pending(self) -> None:
        """Drop events that arrived before the link went down."""
        dropped = self._drain_inbound()
        if dropped:
            self._log.info("inbound_discarded", count=dropped)

    def _next_wake(self, now: float) -> float:
        wake = now + self._config.rate_limit.tick_interval_s
        if self._timers:
            wake = min(wake, self._timers[0])
        release_at = self.dispatcher.next_release_at(now)
        if release_at is not None and self.connection.is_joined():
            wake = min(wake, release_at)
        return max(0.0, wake - now)

    async def _decision_loop(self) -> None:
        while not self._stopping:
            now = self._clock()
            self.handle_timer(now)
            await self.dispatch(now)

            try:
                event = await asyncio.wait_for(self._inbound.get(), timeout=self._next_wake(self._clock()))
            except TimeoutError:
                continue
            if self._stopping:
                break
            self.handle_event(event)
