# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exception hierarchy for cookiebot.

Only AuthenticationFailure and ConfigurationError are meant to reach the
process boundary. Transport and protocol errors are recovered where they
are raised.
"""


class CookieBotError(Exception):
    """Base exception for cookiebot."""

    pass


class TransportError(CookieBotError, ConnectionError):
    """Connection-level failure. Always recoverable through backoff."""

    pass


class HandshakeTimeout(TransportError):
    """The chat server did not acknowledge login or join in time."""

    pass


class ProtocolViolation(CookieBotError, ValueError):
    """Malformed or unexpected frame from the chat server."""

    pass


class AuthenticationFailure(CookieBotError):
    """Credentials were rejected by the chat server."""

    pass


class ConfigurationError(CookieBotError):
    """Missing or invalid configuration."""

    pass


class StrategyAmbiguity(CookieBotError):
    """The rule table cannot produce a single, well-defined action."""

    pass
