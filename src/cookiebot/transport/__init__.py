# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Transport layer for chat connections."""

from __future__ import annotations

from cookiebot.transport.base import ConnectionTransport
from cookiebot.transport.tcp import TcpTransport

__all__ = ["ConnectionTransport", "TcpTransport"]
