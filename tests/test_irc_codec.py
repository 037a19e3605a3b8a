"""Tests for the IRC line codec."""

from __future__ import annotations

import pytest

from cookiebot.errors import ProtocolViolation
from cookiebot.irc import commands
from cookiebot.irc.codec import MAX_LINE_BYTES, IrcLine, LineDecoder, MalformedLine, decode, encode, parse_line


def test_parse_privmsg_with_tags() -> None:
    """Tags, prefix, command and trailing parameter are split apart."""
    line = parse_line(
        "@badge-info=;display-name=ThePositiveBot;id=abc-123;user-id=425363834 "
        ":thepositivebot!thepositivebot@thepositivebot.tmi.twitch.tv PRIVMSG #farmland :hello there"
    )

    assert isinstance(line, IrcLine)
    assert line.command == "PRIVMSG"
    assert line.params == ("#farmland", "hello there")
    assert line.nick == "thepositivebot"
    assert line.tags["user-id"] == "425363834"
    assert line.tags["badge-info"] == ""


def test_parse_unescapes_tag_values() -> None:
    line = parse_line(r"@system-msg=5\sraiders\:\sfrom\\here :tmi.twitch.tv USERNOTICE #farmland")

    assert isinstance(line, IrcLine)
    assert line.tags["system-msg"] == "5 raiders; from\\here"


def test_parse_ping_and_numeric() -> None:
    ping = parse_line("PING :tmi.twitch.tv")
    welcome = parse_line(":tmi.twitch.tv 001 chronophylos :Welcome, GLHF!")

    assert isinstance(ping, IrcLine)
    assert ping.command == "PING"
    assert ping.trailing == "tmi.twitch.tv"
    assert isinstance(welcome, IrcLine)
    assert welcome.command == "001"
    assert welcome.nick == "tmi.twitch.tv"


def test_parse_lowercase_command_is_normalized() -> None:
    line = parse_line("privmsg #a :b")

    assert isinstance(line, IrcLine)
    assert line.command == "PRIVMSG"


@pytest.mark.parametrize(
    ("raw", "reason"),
    [
        ("@only-tags", "tags without command"),
        (":prefix.only", "prefix without command"),
        ("!!! what", "invalid command '!!!'"),
        ("12 too short", "invalid command '12'"),
    ],
)
def test_parse_malformed(raw: str, reason: str) -> None:
    line = parse_line(raw)

    assert isinstance(line, MalformedLine)
    assert line.reason == reason
    assert line.raw == raw


def test_decode_keeps_partial_line() -> None:
    lines, remaining = decode(b"PING :a\r\nPING :b\r\nPRIVMSG #c :par")

    assert [line.trailing for line in lines] == ["a", "b"]
    assert remaining == b"PRIVMSG #c :par"


def test_decode_accepts_bare_lf_and_skips_blank_lines() -> None:
    lines, remaining = decode(b"PING :a\n\r\n\nPING :b\n")

    assert len(lines) == 2
    assert remaining == b""


def test_decode_malformed_does_not_stop_decoding() -> None:
    lines, _ = decode(b"@broken\r\nPING :after\r\n")

    assert isinstance(lines[0], MalformedLine)
    assert isinstance(lines[1], IrcLine)
    assert lines[1].trailing == "after"


def test_decode_invalid_utf8_is_replaced() -> None:
    lines, _ = decode(b"PRIVMSG #c :caf\xe9\r\n")

    assert isinstance(lines[0], IrcLine)
    assert lines[0].trailing == "caf�"


def test_line_decoder_reassembles_split_frames() -> None:
    decoder = LineDecoder()

    assert decoder.feed(b"PRIVMSG #farm") == []
    assert decoder.pending() == len(b"PRIVMSG #farm")
    lines = decoder.feed(b"land :hi\r\nPI")
    assert len(lines) == 1
    assert lines[0].params == ("#farmland", "hi")
    assert decoder.feed(b"NG :x\r\n")[0].command == "PING"
    assert decoder.pending() == 0


def test_line_decoder_splits_multibyte_character_across_reads() -> None:
    decoder = LineDecoder()
    payload = "PRIVMSG #c :\U0001F36A cookie\r\n".encode()

    assert decoder.feed(payload[:14]) == []
    lines = decoder.feed(payload[14:])

    assert lines[0].trailing == "\U0001F36A cookie"


def test_line_decoder_discards_overlong_line() -> None:
    decoder = LineDecoder(max_line_bytes=32)

    out = decoder.feed(b"x" * 64)
    assert len(out) == 1
    assert isinstance(out[0], MalformedLine)
    assert out[0].reason == "line too long"

    # Remainder of the runaway line is dropped up to its terminator
    out = decoder.feed(b"yyyy\r\nPING :ok\r\n")
    assert len(out) == 1
    assert out[0].trailing == "ok"


def test_decode_flags_line_over_limit() -> None:
    lines, _ = decode(b"PRIVMSG #c :" + b"a" * MAX_LINE_BYTES + b"\r\n")

    assert isinstance(lines[0], MalformedLine)


def test_line_decoder_reset_drops_buffer() -> None:
    decoder = LineDecoder()
    decoder.feed(b"PRIVMSG #c :half")
    decoder.reset()

    assert decoder.pending() == 0
    assert decoder.feed(b"\r\n") == []


def test_encode_adds_trailing_colon_only_when_needed() -> None:
    assert encode(commands.privmsg("farmland", "!roll")) == b"PRIVMSG #farmland !roll\r\n"
    assert encode(commands.privmsg("farmland", "hi there")) == b"PRIVMSG #farmland :hi there\r\n"
    assert encode(commands.privmsg("farmland", ":)")) == b"PRIVMSG #farmland ::)\r\n"
    assert encode(IrcLine("PRIVMSG", ("#c", ""))) == b"PRIVMSG #c :\r\n"


def test_encode_strips_line_breaks() -> None:
    frame = encode(commands.privmsg("farmland", "one\r\nPRIVMSG #other :two"))

    assert frame.count(b"\r\n") == 1
    assert frame.endswith(b"\r\n")


def test_encode_rejects_bad_middle_parameter() -> None:
    with pytest.raises(ProtocolViolation):
        encode(IrcLine("PRIVMSG", ("#a b", "text")))


def test_encode_renders_tags_and_parse_reads_them_back() -> None:
    frame = encode(IrcLine("PRIVMSG", ("#c", "hi"), tags={"reply-parent-msg-id": "a;b c"}))

    parsed = parse_line(frame.decode().rstrip("\r\n"))
    assert isinstance(parsed, IrcLine)
    assert parsed.tags == {"reply-parent-msg-id": "a;b c"}


def test_commands_build_handshake() -> None:
    assert encode(commands.cap_req("twitch.tv/tags", "twitch.tv/commands")) == (
        b"CAP REQ :twitch.tv/tags twitch.tv/commands\r\n"
    )
    assert encode(commands.pass_("secret")) == b"PASS oauth:secret\r\n"
    assert encode(commands.pass_("oauth:secret")) == b"PASS oauth:secret\r\n"
    assert encode(commands.nick("ChronoPhylos")) == b"NICK chronophylos\r\n"
    assert encode(commands.join("#FarmLand")) == b"JOIN #farmland\r\n"
    assert encode(commands.pong("tmi.twitch.tv")) == b"PONG tmi.twitch.tv\r\n"
