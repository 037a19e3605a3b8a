# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""IRC wire protocol codec."""

from __future__ import annotations

from cookiebot.irc.codec import IrcLine, LineDecoder, MalformedLine, decode, encode, parse_line

__all__ = ["IrcLine", "LineDecoder", "MalformedLine", "decode", "encode", "parse_line"]
