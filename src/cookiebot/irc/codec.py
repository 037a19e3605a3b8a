# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Line-oriented IRC framing with IRCv3 message tags.

Decoding is tolerant: a line that cannot be parsed is surfaced as a
MalformedLine in the output sequence and the lines after it are still
decoded.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cookiebot.errors import ProtocolViolation

CRLF = b"\r\n"
LF = b"\n"

# Twitch caps tagged lines well below this; anything longer is garbage.
MAX_LINE_BYTES = 64 * 1024

_TAG_UNESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}
_TAG_ESCAPES = {";": "\\:", " ": "\\s", "\\": "\\\\", "\r": "\\r", "\n": "\\n"}


@dataclass(frozen=True, slots=True)
class IrcLine:
    """One IRC message: ``[@tags] [:prefix] COMMAND [params...]``."""

    command: str
    params: tuple[str, ...] = ()
    prefix: str | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def nick(self) -> str | None:
        """Nickname part of ``nick!user@host``, if the prefix has one."""
        if not self.prefix:
            return None
        return self.prefix.split("!", 1)[0].split("@", 1)[0] or None

    @property
    def trailing(self) -> str:
        return self.params[-1] if self.params else ""


@dataclass(frozen=True, slots=True)
class MalformedLine:
    """A line the codec could not parse."""

    raw: str
    reason: str


def _unescape_tag_value(value: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\":
            if i + 1 < len(value):
                nxt = value[i + 1]
                out.append(_TAG_UNESCAPES.get(nxt, nxt))
                i += 2
                continue
            # Lone trailing backslash is dropped
            i += 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _escape_tag_value(value: str) -> str:
    return "".join(_TAG_ESCAPES.get(ch, ch) for ch in value)


def _parse_tags(raw: str) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in raw.split(";"):
        if not item:
            continue
        key, sep, value = item.partition("=")
        tags[key] = _unescape_tag_value(value) if sep else ""
    return tags


def parse_line(text: str) -> IrcLine | MalformedLine:
    """Parse a single line (without terminator) into an IrcLine."""
    rest = text
    tags: dict[str, str] = {}
    prefix: str | None = None

    if rest.startswith("@"):
        raw_tags, sep, rest = rest[1:].partition(" ")
        if not sep:
            return MalformedLine(raw=text, reason="tags without command")
        tags = _parse_tags(raw_tags)
        rest = rest.lstrip(" ")

    if rest.startswith(":"):
        prefix, sep, rest = rest[1:].partition(" ")
        if not sep or not prefix:
            return MalformedLine(raw=text, reason="prefix without command")
        rest = rest.lstrip(" ")

    params: list[str] = []
    command = ""
    while rest:
        if rest.startswith(":") and command:
            params.append(rest[1:])
            break
        word, _, rest = rest.partition(" ")
        rest = rest.lstrip(" ")
        if not command:
            command = word
        else:
            params.append(word)

    if not command or command.startswith(":"):
        return MalformedLine(raw=text, reason="missing command")
    if not (command.isalpha() or (command.isdigit() and len(command) == 3)):
        return MalformedLine(raw=text, reason=f"invalid command {command!r}")

    return IrcLine(command=command.upper(), params=tuple(params), prefix=prefix, tags=tags)


def _split_lines(buffer: bytes | bytearray) -> tuple[list[bytes], bytes]:
    lines: list[bytes] = []
    start = 0
    while (end := buffer.find(LF, start)) != -1:
        line = bytes(buffer[start:end])
        if line.endswith(b"\r"):
            line = line[:-1]
        lines.append(line)
        start = end + 1
    return lines, bytes(buffer[start:])


def decode(buffer: bytes | bytearray) -> tuple[list[IrcLine | MalformedLine], bytes]:
    """Decode every complete line in *buffer*.

    Args:
        buffer: Bytes received so far, possibly ending in a partial line

    Returns:
        Parsed lines in arrival order and the unconsumed remainder
    """
    raw_lines, remaining = _split_lines(buffer)
    out: list[IrcLine | MalformedLine] = []
    for raw in raw_lines:
        if not raw.strip():
            continue
        text = raw.decode("utf-8", errors="replace")
        if len(raw) > MAX_LINE_BYTES:
            out.append(MalformedLine(raw=text[:200], reason="line too long"))
            continue
        out.append(parse_line(text))
    return out, remaining


class LineDecoder:
    """Owns the receive buffer across reads."""

    def __init__(self, max_line_bytes: int = MAX_LINE_BYTES) -> None:
        self._buf = bytearray()
        self._max_line_bytes = max_line_bytes
        self._discarding = False

    def feed(self, chunk: bytes) -> list[IrcLine | MalformedLine]:
        """Add *chunk* to the buffer and return the lines it completed."""
        self._buf.extend(chunk)
        out: list[IrcLine | MalformedLine] = []

        if self._discarding:
            newline = self._buf.find(LF)
            if newline == -1:
                self._buf.clear()
                return out
            del self._buf[: newline + 1]
            self._discarding = False

        lines, remaining = decode(self._buf)
        out.extend(lines)
        self._buf = bytearray(remaining)

        if len(self._buf) > self._max_line_bytes:
            preview = bytes(self._buf[:200]).decode("utf-8", errors="replace")
            out.append(MalformedLine(raw=preview, reason="line too long"))
            self._buf.clear()
            self._discarding = True
        return out

    def pending(self) -> int:
        """Bytes buffered while waiting for a line terminator."""
        return len(self._buf)

    def reset(self) -> None:
        self._buf.clear()
        self._discarding = False


def _sanitize(value: str) -> str:
    return value.replace("\r", " ").replace("\n", " ").replace("\0", " ")


def encode(line: IrcLine) -> bytes:
    """Encode *line* as a single CRLF-terminated frame.

    Raises:
        ProtocolViolation: If a middle parameter would break framing
    """
    parts: list[str] = []
    if line.tags:
        rendered = ";".join(
            f"{key}={_escape_tag_value(value)}" if value else key for key, value in line.tags.items()
        )
        parts.append(f"@{rendered}")
    if line.prefix:
        parts.append(f":{_sanitize(line.prefix)}")
    parts.append(line.command)

    params = [_sanitize(p) for p in line.params]
    for middle in params[:-1]:
        if not middle or " " in middle or middle.startswith(":"):
            raise ProtocolViolation(f"invalid middle parameter {middle!r}")
    if params:
        last = params[-1]
        if not last or " " in last or last.startswith(":"):
            last = f":{last}"
        parts.extend(params[:-1])
        parts.append(last)

    return " ".join(parts).encode("utf-8") + CRLF
