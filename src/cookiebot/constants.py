# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Shared constants for cookiebot."""

from __future__ import annotations

# Twitch chat endpoint
DEFAULT_HOST = "irc.chat.twitch.tv"
DEFAULT_TLS_PORT = 6697
DEFAULT_PLAIN_PORT = 6667

# Default timeouts
DEFAULT_CONNECT_TIMEOUT_S = 10.0
DEFAULT_HANDSHAKE_TIMEOUT_S = 15.0
DEFAULT_READ_TIMEOUT_MS = 1000
DEFAULT_MAX_BYTES = 8192
DEFAULT_SHUTDOWN_TIMEOUT_S = 5.0

# Liveness
DEFAULT_KEEPALIVE_INTERVAL_S = 240.0
DEFAULT_LIVENESS_TIMEOUT_S = 20.0

# Twitch allows 20 messages per 30 seconds for regular users
DEFAULT_RATE_MAX_MESSAGES = 20
DEFAULT_RATE_WINDOW_S = 30.0
DEFAULT_TICK_INTERVAL_S = 0.5

# Reconnect backoff
DEFAULT_BACKOFF_INITIAL_S = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_BACKOFF_CAP_S = 300.0
DEFAULT_BACKOFF_RESET_AFTER_S = 60.0

# Invisible tag character appended to every second message so Twitch does not
# reject identical consecutive commands
DUPLICATE_SUFFIX = "\U000e0000"

# Capabilities requested during the handshake
TWITCH_CAPABILITIES = ("twitch.tv/tags", "twitch.tv/commands")

# NOTICE texts Twitch sends when the PASS/NICK pair is rejected
AUTH_FAILURE_NOTICES = (
    "login authentication failed",
    "improperly formatted auth",
    "invalid nick",
)
