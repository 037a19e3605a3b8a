"""Tests for the farming bot runtime."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, Mock

import pytest

from cookiebot.bot import FarmBot
from cookiebot.connection import ConnectionState
from cookiebot.errors import AuthenticationFailure, TransportError
from cookiebot.events import SystemNotice, UserMessage
from cookiebot.strategy import SendCommand

from .mock_irc_server import MockIrc, MockIrcServer

if TYPE_CHECKING:
    from collections.abc import Callable

    from cookiebot.config import BotConfig

T = 1_000_000.0


def _msg(text: str, at: float = T, user: str = "farmbot", **kwargs: Any) -> UserMessage:
    return UserMessage(user=user, channel="farmland", text=text, timestamp=at, **kwargs)


def _joined_connection() -> Mock:
    connection = Mock()
    connection.is_joined = Mock(return_value=True)
    connection.send_text = AsyncMock()
    return connection


def test_prompt_scenario(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)

    bot.handle_event(_msg("New prompt: roll a die (!roll)"), now=T)

    assert bot.tracker.state.active_prompt == "roll"
    assert bot.dispatcher.release(T) == SendCommand(text="!roll", not_before=T)


def test_cooldown_scenario(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)

    bot.handle_event(_msg("You must wait 120 seconds", at=T), now=T)

    assert bot.tracker.state.cooldown_expires_at == T + 120
    assert len(bot.dispatcher) == 0
    assert bot.pending_timers == [T + 120]


def test_prompt_during_cooldown_is_answered_when_it_lapses(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.handle_event(_msg("You must wait 120 seconds", at=T), now=T)
    bot.handle_event(_msg("New prompt: roll a die (!roll)", at=T + 10), now=T + 10)

    assert len(bot.dispatcher) == 0
    assert bot.pending_timers == [T + 120]

    assert bot.handle_timer(T + 60) is False
    assert bot.handle_timer(T + 120) is True
    assert bot.dispatcher.release(T + 120) == SendCommand(text="!roll", not_before=T + 120)


def test_non_target_chatter_is_ignored(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)

    bot.handle_event(_msg("New prompt: roll a die (!roll)", user="viewer"), now=T)

    assert len(bot.dispatcher) == 0
    assert bot.tracker.state.active_prompt is None


def test_replayed_prompt_is_not_answered_twice(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    prompt = _msg("New prompt: roll a die (!roll)", message_id="p1")

    bot.handle_event(prompt, now=T)
    bot.handle_event(_msg("Prompt resolved", at=T + 1, message_id="p2"), now=T + 1)
    bot.handle_event(prompt, now=T + 2)

    assert [a.text for a in bot.dispatcher.drain()] == ["!roll"]


def test_rejected_message_notice_is_logged(generic_config: BotConfig) -> None:
    logger = Mock()
    bot = FarmBot(generic_config, logger=logger)

    bot.handle_event(SystemNotice(kind="msg_ratelimit", text="You are sending messages too quickly."), now=T)

    logger.warning.assert_any_call(
        "message_rejected", kind="msg_ratelimit", text="You are sending messages too quickly."
    )


def test_claim_timer_reopens_unanswered_claim(make_config: Callable[..., BotConfig]) -> None:
    config = make_config(target={"preset": "leavesbot", "claim_timeout_s": 30})
    bot = FarmBot(config)
    bot.open_claim(T)

    assert bot.dispatcher.release(T).text == "*leaves"
    assert bot.pending_timers == [T + 30]

    bot.handle_timer(T + 30)

    assert bot.dispatcher.release(T + 30).text == "*leaves"


def test_timers_wait_for_pending_sends(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.handle_event(_msg("You must wait 5 seconds", at=T), now=T)
    bot.dispatcher.submit(SendCommand(text="queued", not_before=T))

    assert bot.handle_timer(T + 5) is True
    # Cooldown is still tracked until the queue has been flushed
    assert bot.tracker.state.cooldown_expires_at == T + 5
    assert bot.pending_timers == [T + 5 + generic_config.rate_limit.tick_interval_s]


def test_absurd_wait_is_ignored(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)

    bot.handle_event(_msg("You must wait " + "9" * 400 + " seconds"), now=T)

    assert bot.tracker.state.cooldown_expires_at is None
    assert bot.pending_timers == []


def _cookie_claim(amount: int, total: int, at: float = T) -> UserMessage:
    return _msg(
        f"[Cookies] [Gold] chronophylos -> Sugar cookie! (+{amount}) PJSugar | {total} total! "
        "| 2 hour cooldown... 🍪",
        at=at,
        user="thepositivebot",
    )


def _released(bot: FarmBot, now: float) -> list[str]:
    texts = []
    while (action := bot.dispatcher.release(now)) is not None:
        texts.append(action.text)
    return texts


def test_big_claim_buys_reset_and_claims_again(cookie_config: BotConfig) -> None:
    bot = FarmBot(cookie_config)
    bot.open_claim(T)
    assert _released(bot, T) == ["!cookie"]

    bot.handle_event(_cookie_claim(amount=14, total=65, at=T + 1), now=T + 1)

    assert _released(bot, T + 1) == ["!cdr"]
    assert T + 1 + 7200 in bot.pending_timers

    bot.handle_event(
        _msg(
            "[Shop] chronophylos, your cooldown has been reset! (-7) Good Luck... ThankEgg",
            at=T + 2,
            user="thepositivebot",
        ),
        now=T + 2,
    )

    assert _released(bot, T + 2) == ["!cookie"]


def test_small_claim_buys_nothing(cookie_config: BotConfig) -> None:
    bot = FarmBot(cookie_config)

    bot.handle_event(_cookie_claim(amount=7, total=65), now=T)

    assert _released(bot, T) == []
    assert bot.pending_timers == [T + 7200]


def test_claim_over_prestige_threshold_prestiges(cookie_config: BotConfig) -> None:
    bot = FarmBot(cookie_config)

    bot.handle_event(_cookie_claim(amount=3, total=5004), now=T)

    assert _released(bot, T) == ["!prestige"]


def test_leaves_purchases_follow_claim_size(make_config: Callable[..., BotConfig]) -> None:
    bot = FarmBot(make_config(target={"preset": "leavesbot"}))
    claim = (
        "🍃 @chronophylos > Golden Leaf (+{amount}) | You've got {total} leaves now! "
        "| Get more leaves in 1 hour... 🍃"
    )

    bot.handle_event(_msg(claim.format(amount=12, total=40), at=T, user="leavesbot"), now=T)
    assert _released(bot, T) == ["*cdr"]

    bot.handle_event(_msg(claim.format(amount=44, total=84), at=T + 3600, user="leavesbot"), now=T + 3600)
    assert _released(bot, T + 3600) == ["*cdr", "*multiplier"]


def test_purchases_can_be_disabled(make_config: Callable[..., BotConfig]) -> None:
    bot = FarmBot(make_config(target={"preset": "thepositivebot", "purchases": []}))

    bot.handle_event(_cookie_claim(amount=14, total=6000), now=T)

    assert _released(bot, T) == []


def test_disconnect_discards_pending_events(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.enqueue(_msg("New prompt: roll a die (!roll)"))
    bot.enqueue(_msg("You must wait 5 seconds"))
    assert bot.pending_events == 2

    bot.discard_pending()

    assert bot.pending_events == 0
    assert bot.tracker.state.active_prompt is None


@pytest.mark.asyncio
async def test_dispatch_sends_in_order(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.connection = _joined_connection()
    for text in ("a", "b", "c"):
        bot.dispatcher.submit(SendCommand(text=text, not_before=T))

    assert await bot.dispatch(T) == 3
    assert [call.args[0] for call in bot.connection.send_text.await_args_list] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_failed_send_is_requeued_first(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.connection = _joined_connection()
    bot.connection.send_text.side_effect = [TransportError("Send failed"), None, None]
    bot.dispatcher.submit(SendCommand(text="first", not_before=T))
    bot.dispatcher.submit(SendCommand(text="second", not_before=T))

    assert await bot.dispatch(T) == 0
    assert len(bot.dispatcher) == 2

    assert await bot.dispatch(T + 1) == 2
    sent = [call.args[0] for call in bot.connection.send_text.await_args_list]
    assert sent == ["first", "first", "second"]


@pytest.mark.asyncio
async def test_nothing_dispatched_while_disconnected(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.dispatcher.submit(SendCommand(text="a", not_before=T))

    assert await bot.dispatch(T) == 0
    assert len(bot.dispatcher) == 1


@pytest.mark.asyncio
async def test_stop_discards_queued_work(generic_config: BotConfig) -> None:
    bot = FarmBot(generic_config)
    bot.connection = Mock(stop=AsyncMock())
    bot.dispatcher.submit(SendCommand(text="a", not_before=T))

    await bot.stop()
    await bot.stop()

    assert len(bot.dispatcher) == 0
    bot.connection.stop.assert_awaited_once()


def _server_config(make_config: Callable[..., BotConfig], server: MockIrcServer, **overrides: Any) -> BotConfig:
    data: dict[str, Any] = {
        "connection": {
            "host": server.host,
            "port": server.port,
            "tls": False,
            "keepalive_interval_s": 0,
            "backoff": {"initial_s": 0.3, "multiplier": 2, "cap_s": 1, "reset_after_s": 60},
        },
        "rate_limit": {"tick_interval_s": 0.05},
    }
    data.update(overrides)
    return make_config(**data)


@pytest.mark.asyncio
async def test_claims_cookie_on_start(make_config: Callable[..., BotConfig]) -> None:
    async with MockIrc() as server:
        bot = FarmBot(_server_config(make_config, server, target={"preset": "thepositivebot"}))
        task = asyncio.create_task(bot.run())
        try:
            await server.wait_for(lambda: server.privmsgs == ["!cookie"])
            await server.say(
                "thepositivebot",
                "farmland",
                "[Cookies] [default] chronophylos -> Chocolate Chip! (+6) PartyTime | 31 total! | 2 hour cooldown... 🍪",
                **{"user-id": "425363834"},
            )
            await server.wait_for(lambda: bot.tracker.state.last_known_balance == 31)

            state = bot.tracker.state
            assert state.active_prompt is None
            assert state.cooldown_expires_at is not None
            assert state.cooldown_expires_at in bot.pending_timers
        finally:
            await bot.stop()
            await asyncio.wait_for(task, timeout=5)


@pytest.mark.asyncio
async def test_answers_prompt_end_to_end(make_config: Callable[..., BotConfig]) -> None:
    async with MockIrc() as server:
        bot = FarmBot(_server_config(make_config, server))
        task = asyncio.create_task(bot.run())
        try:
            await server.wait_for(bot.connection.is_joined)
            await server.say("farmbot", "farmland", "New prompt: roll a die (!roll)")
            await server.wait_for(lambda: server.privmsgs == ["!roll"])
        finally:
            await bot.stop()
            await asyncio.wait_for(task, timeout=5)


@pytest.mark.asyncio
async def test_action_queued_during_outage_is_sent_after_reconnect(make_config: Callable[..., BotConfig]) -> None:
    async with MockIrc() as server:
        bot = FarmBot(_server_config(make_config, server))
        task = asyncio.create_task(bot.run())
        try:
            await server.wait_for(bot.connection.is_joined)
            await server.drop_clients()
            await server.wait_for(lambda: bot.connection.session.status is ConnectionState.BACKOFF)
            assert bot.connection.session.failures == 1

            bot.handle_event(_msg("New prompt: roll a die (!roll)", at=bot._clock()))
            await server.wait_for(lambda: server.privmsgs == ["!roll"])
            assert server.connections == 2
        finally:
            await bot.stop()
            await asyncio.wait_for(task, timeout=5)


@pytest.mark.asyncio
async def test_bad_token_ends_run(make_config: Callable[..., BotConfig]) -> None:
    async with MockIrc(token="oauth:other") as server:
        bot = FarmBot(_server_config(make_config, server))

        with pytest.raises(AuthenticationFailure):
            await asyncio.wait_for(bot.run(), timeout=5)

        assert bot.connection.session.status is ConnectionState.FAILED
