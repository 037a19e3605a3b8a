# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""TCP transport with optional TLS."""

from __future__ import annotations

import asyncio
import ssl
from typing import TYPE_CHECKING, Any

import structlog

from cookiebot.constants import DEFAULT_CONNECT_TIMEOUT_S
from cookiebot.errors import TransportError
from cookiebot.transport.base import ConnectionTransport

if TYPE_CHECKING:
    from asyncio import StreamReader, StreamWriter

log = structlog.get_logger()


class TcpTransport(ConnectionTransport):
    """Plain or TLS stream built on asyncio streams."""

    def __init__(self) -> None:
        self._reader: StreamReader | None = None
        self._writer: StreamWriter | None = None

    async def connect(
        self,
        host: str,
        port: int,
        tls: bool = True,
        timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
        **kwargs: Any,
    ) -> None:
        """Open the stream.

        Args:
            host: Remote hostname or IP address
            port: Remote port number
            tls: Wrap the stream in TLS with certificate verification
            timeout: Connection timeout in seconds
            **kwargs: Unused, for compatibility

        Raises:
            TransportError: If connection fails or times out
        """
        if self._writer:
            await self.disconnect()

        ssl_ctx = ssl.create_default_context() if tls else None
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, ssl=ssl_ctx, server_hostname=host if tls else None),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise TransportError(f"Timed out connecting to {host}:{port}") from e
        except OSError as e:
            raise TransportError(f"Failed to connect to {host}:{port}: {e}") from e

        log.info("tcp_connected", host=host, port=port, tls=tls)

    async def disconnect(self) -> None:
        """Close connection and cleanup resources."""
        if not self._writer:
            return

        writer = self._writer
        self._writer = None
        self._reader = None
        try:
            writer.close()
            await writer.wait_closed()
        except (OSError, RuntimeError) as e:
            log.debug("tcp_close_error", error=str(e))

        log.info("tcp_disconnected")

    async def send(self, data: bytes) -> None:
        if not self._writer or self._writer.is_closing():
            raise TransportError("Not connected")

        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as e:
            await self.disconnect()
            raise TransportError("Send failed") from e

    async def receive(self, max_bytes: int, timeout_ms: int) -> bytes:
        if not self._reader:
            raise TransportError("Not connected")

        try:
            chunk = await asyncio.wait_for(self._reader.read(max_bytes), timeout=timeout_ms / 1000)
        except TimeoutError:
            return b""
        except OSError as e:
            # TimeoutError is an OSError too; it is handled above
            await self.disconnect()
            raise TransportError("Connection lost") from e

        if not chunk:
            await self.disconnect()
            raise TransportError("Connection closed by remote")

        return chunk

    def is_connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()
