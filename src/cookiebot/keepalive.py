# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Client-side liveness check for an otherwise idle chat link.

After ``interval_s`` without inbound traffic a PING is sent; if nothing at all
arrives within ``timeout_s`` afterwards the link is declared dead.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from cookiebot.errors import TransportError
from cookiebot.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger(__name__)


class KeepaliveStatus(BaseModel):
    interval_s: float | None
    timeout_s: float
    running: bool
    idle_s: float


class KeepaliveController:
    def __init__(
        self,
        send_ping: Callable[[], Awaitable[None]],
        on_dead: Callable[[], Awaitable[None]],
        is_connected: Callable[[], bool],
        interval_s: float | None = 240.0,
        timeout_s: float = 20.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._send_ping = send_ping
        self._on_dead = on_dead
        self._is_connected = is_connected
        self._interval_s = interval_s if interval_s and interval_s > 0 else None
        self._timeout_s = timeout_s
        self._clock = clock
        self._last_activity = clock()
        self._task: asyncio.Task[None] | None = None

    def touch(self) -> None:
        """Record inbound traffic."""
        self._last_activity = self._clock()

    def on_connect(self) -> None:
        self.touch()
        if self._interval_s:
            self._start()

    async def on_disconnect(self) -> None:
        await self._stop()

    def status(self) -> dict[str, Any]:
        running = self._task is not None and not self._task.done()
        return KeepaliveStatus(
            interval_s=self._interval_s,
            timeout_s=self._timeout_s,
            running=running,
            idle_s=max(0.0, self._clock() - self._last_activity),
        ).model_dump()

    def _start(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._loop())

    async def _stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        try:
            while self._is_connected() and self._interval_s:
                idle = self._clock() - self._last_activity
                if idle < self._interval_s:
                    await asyncio.sleep(self._interval_s - idle)
                    continue

                pinged_at = self._clock()
                try:
                    await self._send_ping()
                except TransportError:
                    logger.warning("keepalive_ping_failed")
                    await self._on_dead()
                    return

                await asyncio.sleep(self._timeout_s)
                if self._last_activity < pinged_at:
                    logger.warning("keepalive_timeout", timeout_s=self._timeout_s)
                    await self._on_dead()
                    return
        except asyncio.CancelledError:
            return
