# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Byte-stream interface the connection manager drives.

Every socket-level failure surfaces as TransportError so that the manager
has exactly one exception to turn into a backoff.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ConnectionTransport(ABC):
    """One duplex byte stream to the chat server. Not reusable across servers."""

    @abstractmethod
    async def connect(self, host: str, port: int, **kwargs: Any) -> None:
        """Open the stream, replacing any stream that is still open.

        Args:
            host: Chat server hostname
            port: Chat server port
            **kwargs: Implementation options such as ``tls`` and ``timeout``

        Raises:
            TransportError: Refused, unreachable, or not open within the timeout
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the stream. A no-op when already closed; never raises."""

    @abstractmethod
    async def send(self, data: bytes) -> None:
        """Write one or more complete frames and wait until they are flushed.

        Raises:
            TransportError: Not open, or the write failed. The stream is closed
                afterwards.
        """

    @abstractmethod
    async def receive(self, max_bytes: int, timeout_ms: int) -> bytes:
        """Read whatever bytes are available, up to *max_bytes*.

        Chunks carry no framing; a chunk may end in the middle of a line or of
        a UTF-8 sequence.

        Returns:
            The bytes read, or ``b""`` when nothing arrived within *timeout_ms*.
            An empty result never means end of stream.

        Raises:
            TransportError: Not open, the peer closed the stream (EOF), or the
                read failed. The stream is closed afterwards.
        """

    @abstractmethod
    def is_connected(self) -> bool:
        """True while the stream is open and not closing."""
