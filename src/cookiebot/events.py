# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Typed chat events parsed from IRC lines."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cookiebot.irc.codec import IrcLine, MalformedLine

_ACTION_PREFIX = "\x01ACTION "

# Commands surfaced as SystemNotice, mapped to their default kind.
_NOTICE_KINDS = {
    "NOTICE": "notice",
    "USERNOTICE": "usernotice",
    "RECONNECT": "reconnect",
    "CLEARCHAT": "clearchat",
    "CLEARMSG": "clearmsg",
    "001": "welcome",
    "366": "joined",
}


class UserMessage(BaseModel):
    """A chat message sent by a user to a channel."""

    type: Literal["user_message"] = "user_message"
    user: str
    channel: str
    text: str
    timestamp: float
    user_id: str | None = None
    message_id: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class SystemNotice(BaseModel):
    """A notice or state message from the chat service itself."""

    type: Literal["system_notice"] = "system_notice"
    kind: str
    text: str = ""

    model_config = ConfigDict(frozen=True)


class Ping(BaseModel):
    """Server liveness check. Must be answered with PONG echoing *token*."""

    type: Literal["ping"] = "ping"
    token: str = ""

    model_config = ConfigDict(frozen=True)


ChatEvent = UserMessage | SystemNotice | Ping


def _strip_action(text: str) -> str:
    if text.startswith(_ACTION_PREFIX):
        return text[len(_ACTION_PREFIX) :].rstrip("\x01")
    return text


def parse_event(line: IrcLine | MalformedLine, received_at: float) -> ChatEvent | None:
    """Classify a decoded line.

    Every input either yields exactly one event or None. Lines irrelevant to
    farming (membership, room state, capability acks, malformed input) are
    ignored rather than reported.

    Args:
        line: Output of the codec
        received_at: Local receive time used as the event timestamp

    Returns:
        The event, or None when the line is not a recognized shape
    """
    if isinstance(line, MalformedLine):
        return None

    command = line.command

    if command == "PING":
        return Ping(token=line.trailing)

    if command == "PRIVMSG":
        user = line.nick
        if len(line.params) < 2 or not user:
            return None
        return UserMessage(
            user=user.lower(),
            channel=line.params[0].lstrip("#").lower(),
            text=_strip_action(line.params[1]),
            timestamp=received_at,
            user_id=line.tags.get("user-id") or None,
            message_id=line.tags.get("id") or None,
            tags=dict(line.tags),
        )

    if command in _NOTICE_KINDS:
        kind = line.tags.get("msg-id") or _NOTICE_KINDS[command]
        if command == "366":
            text = line.params[1] if len(line.params) > 1 else ""
        else:
            text = line.trailing
        return SystemNotice(kind=kind, text=text)

    return None
