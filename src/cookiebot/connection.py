# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Chat session lifecycle: connect, authenticate, join, read, reconnect.

State machine::

    disconnected -> connecting -> authenticating -> joined
         ^                                            |
         +---------------- backoff <------------------+

Transport failures and handshake timeouts always lead to ``backoff``.
Rejected credentials end in ``failed`` and raise AuthenticationFailure.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel

from cookiebot.constants import AUTH_FAILURE_NOTICES, DEFAULT_READ_TIMEOUT_MS, DUPLICATE_SUFFIX, TWITCH_CAPABILITIES
from cookiebot.errors import AuthenticationFailure, HandshakeTimeout, TransportError
from cookiebot.events import Ping, SystemNotice, parse_event
from cookiebot.irc import commands
from cookiebot.irc.codec import IrcLine, LineDecoder, MalformedLine, encode
from cookiebot.keepalive import KeepaliveController
from cookiebot.logging import get_logger
from cookiebot.timefmt import as_readable
from cookiebot.transport.tcp import TcpTransport

if TYPE_CHECKING:
    from collections.abc import Callable

    import structlog

    from cookiebot.config import BackoffConfig, BotConfig
    from cookiebot.events import ChatEvent
    from cookiebot.transport.base import ConnectionTransport


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    JOINED = "joined"
    BACKOFF = "backoff"
    FAILED = "failed"
    CLOSED = "closed"


class Session(BaseModel):
    """Live connection bookkeeping, owned by one ConnectionManager."""

    status: ConnectionState = ConnectionState.DISCONNECTED
    failures: int = 0
    backoff_s: float = 0.0
    last_activity: float | None = None
    joined_since: float | None = None
    connects: int = 0


def backoff_delay(policy: BackoffConfig, failures: int) -> float:
    """Delay before the next attempt after *failures* consecutive failures."""
    if failures <= 0:
        return 0.0
    return min(policy.initial_s * policy.multiplier ** (failures - 1), policy.cap_s)


def is_auth_failure(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in AUTH_FAILURE_NOTICES)


class ConnectionManager:
    """Drives exactly one chat connection at a time."""

    def __init__(
        self,
        config: BotConfig,
        *,
        transport_factory: Callable[[], ConnectionTransport] = TcpTransport,
        on_event: Callable[[ChatEvent], None] | None = None,
        on_disconnect: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.time,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._config = config
        self._conn = config.connection
        self._transport_factory = transport_factory
        self._transport: ConnectionTransport | None = None
        self._on_event = on_event
        self._on_disconnect = on_disconnect
        self._clock = clock
        self._log = logger or get_logger(__name__)
        self._session = Session()
        self._decoder = LineDecoder()
        self._pending: deque[IrcLine | MalformedLine] = deque()
        self._stop_event = asyncio.Event()
        self._suffix_next = False
        self._keepalive = KeepaliveController(
            send_ping=self._send_keepalive_ping,
            on_dead=self._drop_transport,
            is_connected=self.is_joined,
            interval_s=self._conn.keepalive_interval_s,
            timeout_s=self._conn.liveness_timeout_s,
        )

    @property
    def session(self) -> Session:
        return self._session

    @property
    def keepalive(self) -> KeepaliveController:
        return self._keepalive

    def is_joined(self) -> bool:
        return (
            self._session.status is ConnectionState.JOINED
            and self._transport is not None
            and self._transport.is_connected()
        )

    async def run(self) -> None:
        """Keep the session joined until stop() is called.

        Raises:
            AuthenticationFailure: Credentials rejected; no retry is attempted
        """
        self._stop_event.clear()
        while not self._stop_event.is_set():
            try:
                await self.connect_once()
                await self._pump()
            except AuthenticationFailure as e:
                self._set_state(ConnectionState.FAILED, reason=str(e))
                await self._teardown()
                raise
            except TransportError as e:
                await self._teardown()
                if self._stop_event.is_set():
                    break
                await self._fail(e)
        await self._teardown()
        self._set_state(ConnectionState.CLOSED)

    async def connect_once(self) -> None:
        """Connect, authenticate and join. Returns once joined."""
        self._set_state(ConnectionState.CONNECTING)
        self._decoder.reset()
        self._pending.clear()
        self._transport = self._transport_factory()
        await self._transport.connect(
            self._conn.host,
            self._conn.port,
            tls=self._conn.tls,
            timeout=self._conn.connect_timeout_s,
        )

        self._set_state(ConnectionState.AUTHENTICATING)
        deadline = asyncio.get_running_loop().time() + self._conn.handshake_timeout_s
        await self._send_line(commands.cap_req(*TWITCH_CAPABILITIES))
        await self._send_line(commands.pass_(self._config.token.get_secret_value()))
        await self._send_line(commands.nick(self._config.username))
        await self._await_ack(deadline, self._is_welcome, stage="login")

        await self._send_line(commands.join(self._config.channel))
        await self._await_ack(deadline, self._is_join_ack, stage="join")

        self._session.connects += 1
        self._session.joined_since = self._clock()
        self._set_state(ConnectionState.JOINED, channel=self._config.channel)
        self._keepalive.on_connect()

    async def send_text(self, text: str) -> None:
        """Send a chat message to the joined channel.

        Raises:
            TransportError: If not joined or the send fails
        """
        if not self.is_joined():
            raise TransportError("Not joined")
        outgoing = text
        if self._config.duplicate_suffix and self._suffix_next:
            outgoing = f"{text} {DUPLICATE_SUFFIX}"
        await self._send_line(commands.privmsg(self._config.channel, outgoing))
        self._suffix_next = not self._suffix_next
        self._log.info("message_sent", text=text, channel=self._config.channel)

    async def stop(self) -> None:
        """Stop reconnecting and close the transport gracefully."""
        self._stop_event.set()
        await self._teardown()
        if self._session.status is not ConnectionState.FAILED:
            self._set_state(ConnectionState.CLOSED)

    async def _pump(self) -> None:
        while not self._stop_event.is_set():
            line = await self._read_line()
            if line is None:
                continue
            if isinstance(line, MalformedLine):
                self._log.warning("malformed_line", reason=line.reason, raw=line.raw)
                continue

            event = parse_event(line, self._clock())
            if event is None:
                continue
            if isinstance(event, Ping):
                await self._send_line(commands.pong(event.token))
                continue
            if isinstance(event, SystemNotice):
                if event.kind == "reconnect":
                    raise TransportError("Server requested reconnect")
                if event.kind == "notice" and is_auth_failure(event.text):
                    raise AuthenticationFailure(event.text)
            if self._on_event:
                self._on_event(event)

    async def _read_line(self, timeout_ms: int = DEFAULT_READ_TIMEOUT_MS) -> IrcLine | MalformedLine | None:
        if self._pending:
            return self._pending.popleft()
        if self._transport is None:
            raise TransportError("Not connected")
        chunk = await self._transport.receive(self._conn.read_max_bytes, timeout_ms)
        if not chunk:
            return None
        self._touch()
        self._pending.extend(self._decoder.feed(chunk))
        return self._pending.popleft() if self._pending else None

    async def _await_ack(self, deadline: float, accept: Callable[[IrcLine], bool], stage: str) -> None:
        loop = asyncio.get_running_loop()
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise HandshakeTimeout(f"No {stage} acknowledgement within {self._conn.handshake_timeout_s}s")
            line = await self._read_line(timeout_ms=max(1, min(int(remaining * 1000), DEFAULT_READ_TIMEOUT_MS)))
            if line is None:
                continue
            if isinstance(line, MalformedLine):
                self._log.warning("malformed_line", reason=line.reason, raw=line.raw, stage=stage)
                continue
            if line.command == "PING":
                await self._send_line(commands.pong(line.trailing))
                continue
            if line.command == "NOTICE":
                if is_auth_failure(line.trailing):
                    raise AuthenticationFailure(line.trailing)
                self._log.warning("handshake_notice", stage=stage, text=line.trailing)
                continue
            if accept(line):
                return

    def _is_welcome(self, line: IrcLine) -> bool:
        return line.command == "001"

    def _is_join_ack(self, line: IrcLine) -> bool:
        channel = commands.channel_name(self._config.channel)
        if line.command == "366":
            return len(line.params) > 1 and line.params[1].lower() == channel
        if line.command == "JOIN":
            return (line.nick or "").lower() == self._config.username and line.trailing.lower() == channel
        return False

    async def _send_line(self, line: IrcLine) -> None:
        if self._transport is None:
            raise TransportError("Not connected")
        await self._transport.send(encode(line))

    async def _send_keepalive_ping(self) -> None:
        await self._send_line(commands.ping())

    async def _drop_transport(self) -> None:
        if self._transport is not None:
            await self._transport.disconnect()

    def _touch(self) -> None:
        self._session.last_activity = self._clock()
        self._keepalive.touch()

    async def _teardown(self) -> None:
        await self._keepalive.on_disconnect()
        if self._transport is not None:
            await self._transport.disconnect()
        self._pending.clear()
        self._decoder.reset()

    async def _fail(self, error: Exception) -> None:
        session = self._session
        now = self._clock()
        if session.joined_since is not None and now - session.joined_since >= self._conn.backoff.reset_after_s:
            session.failures = 0
        session.joined_since = None
        session.failures += 1
        session.backoff_s = backoff_delay(self._conn.backoff, session.failures)
        self._set_state(ConnectionState.BACKOFF, reason=str(error))
        if self._on_disconnect:
            self._on_disconnect()
        self._log.info(
            "backoff_wait",
            attempt=session.failures,
            wait=as_readable(session.backoff_s) if session.backoff_s >= 1 else f"{session.backoff_s:.2f}s",
        )
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=session.backoff_s)

    def _set_state(self, status: ConnectionState, **context: object) -> None:
        previous = self._session.status
        self._session.status = status
        if status is ConnectionState.JOINED or status is ConnectionState.CONNECTING:
            level = self._log.info
        elif status is ConnectionState.BACKOFF or status is ConnectionState.FAILED:
            level = self._log.warning
        else:
            level = self._log.debug
        level("connection_state", state=status.value, previous=previous.value, **context)
