# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Builders for the outbound commands cookiebot sends."""

from __future__ import annotations

from cookiebot.irc.codec import IrcLine


def channel_name(channel: str) -> str:
    """Normalize a channel to its ``#lowercase`` wire form."""
    return "#" + channel.lstrip("#").lower()


def cap_req(*capabilities: str) -> IrcLine:
    return IrcLine("CAP", ("REQ", " ".join(capabilities)))


def pass_(token: str) -> IrcLine:
    if not token.startswith("oauth:"):
        token = f"oauth:{token}"
    return IrcLine("PASS", (token,))


def nick(username: str) -> IrcLine:
    return IrcLine("NICK", (username.lower(),))


def join(channel: str) -> IrcLine:
    return IrcLine("JOIN", (channel_name(channel),))


def privmsg(channel: str, text: str) -> IrcLine:
    return IrcLine("PRIVMSG", (channel_name(channel), text))


def ping(token: str = "tmi.twitch.tv") -> IrcLine:
    return IrcLine("PING", (token,))


def pong(token: str) -> IrcLine:
    """Reply to a server PING, echoing its token."""
    return IrcLine("PONG", (token,) if token else ())
