# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Decides what to send in reaction to game state.

Rules, first match wins:
    1. an unanswered prompt and no running cooldown -> send its response now
    2. a purchase planned for the latest reward and not yet ordered -> order it
       now, cooldown or not
    3. a running cooldown -> re-check when it lapses
    4. otherwise nothing

Each call yields at most one action; callers repeat the call while it keeps
returning SendCommand.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict

from cookiebot.errors import StrategyAmbiguity
from cookiebot.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    import structlog

    from cookiebot.game.state import GameState


class SendCommand(BaseModel):
    """Chat text to transmit, not earlier than ``not_before``."""

    type: Literal["send"] = "send"
    text: str
    not_before: float

    model_config = ConfigDict(frozen=True)


class Recheck(BaseModel):
    """Internal timer: re-evaluate the state at ``at``. Never transmitted."""

    type: Literal["recheck"] = "recheck"
    at: float

    model_config = ConfigDict(frozen=True)


Action = SendCommand | Recheck


class StrategyEngine:
    """Maps a GameState snapshot to at most one Action."""

    def __init__(self, responses: Mapping[str, str], logger: structlog.BoundLogger | None = None) -> None:
        self._responses = {kind.lower(): text for kind, text in responses.items()}
        self._answered: set[int] = set()
        # (reward_id, purchases already ordered for it)
        self._ordered: tuple[int, int] = (0, 0)
        self._log = logger or get_logger(__name__)

    def decide(self, state: GameState, now: float) -> Action | None:
        prompt_open = state.active_prompt is not None and state.prompt_id not in self._answered
        cooling = state.cooldown_active(now)

        if prompt_open and not cooling:
            self._mark_answered(state.prompt_id)
            try:
                text = self._response_for(state.active_prompt)
            except StrategyAmbiguity as e:
                self._log.error("strategy_ambiguity", prompt=state.active_prompt, error=str(e))
                return None
            self._log.info("action_decided", rule="answer_prompt", prompt=state.active_prompt, text=text)
            return SendCommand(text=text, not_before=now)

        purchase = self._next_purchase(state)
        if purchase is not None:
            try:
                text = self._response_for(purchase)
            except StrategyAmbiguity as e:
                self._log.error("strategy_ambiguity", purchase=purchase, error=str(e))
                return None
            self._log.info("action_decided", rule="purchase", item=purchase, text=text)
            return SendCommand(text=text, not_before=now)

        if cooling:
            self._log.debug("action_decided", rule="recheck", at=state.cooldown_expires_at)
            return Recheck(at=state.cooldown_expires_at)

        return None

    def was_answered(self, prompt_id: int) -> bool:
        return prompt_id in self._answered

    def _response_for(self, kind: str) -> str:
        text = self._responses.get(kind.lower(), "").strip()
        if not text:
            raise StrategyAmbiguity(f"no response configured for prompt {kind!r}")
        return text

    def _next_purchase(self, state: GameState) -> str | None:
        reward_id, done = self._ordered
        if reward_id != state.reward_id:
            done = 0
        if done >= len(state.purchases):
            return None
        self._ordered = (state.reward_id, done + 1)
        return state.purchases[done]

    def _mark_answered(self, prompt_id: int) -> None:
        # Prompt ids only grow; older entries can never match again
        self._answered = {pid for pid in self._answered if pid >= prompt_id}
        self._answered.add(prompt_id)
