# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Farming game state inferred from the target bot's messages."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from cookiebot.game.patterns import (
    BalanceSeen,
    CooldownSeen,
    MessageClassifier,
    PromptResolved,
    PromptSeen,
    ReceiptSeen,
    RewardSeen,
    Unrecognized,
)
from cookiebot.logging import get_logger
from cookiebot.timefmt import as_readable

if TYPE_CHECKING:
    from collections.abc import Iterable

    import structlog

    from cookiebot.events import ChatEvent
    from cookiebot.game.patterns import PurchaseRule

# Fields whose change is reported to the strategy engine
OBSERVABLE_FIELDS = (
    "active_prompt",
    "prompt_id",
    "cooldown_expires_at",
    "last_known_balance",
    "reward_id",
    "purchases",
)

_SEEN_IDS = 256


class GameState(BaseModel):
    """Snapshot of what we know about the farming game.

    ``cooldown_expires_at``, when set, is never earlier than the timestamp of
    the event that set it. ``purchases`` lists the orders planned for the
    claim numbered ``reward_id``.
    """

    active_prompt: str | None = None
    prompt_id: int = 0
    prompt_opened_at: float | None = None
    prompt_synthetic: bool = False
    cooldown_expires_at: float | None = None
    last_known_balance: int | None = None
    last_reward: int | None = None
    reward_id: int = 0
    purchases: tuple[str, ...] = ()
    last_observed_at: float = 0.0

    model_config = ConfigDict(frozen=True)

    def cooldown_active(self, now: float) -> bool:
        return self.cooldown_expires_at is not None and self.cooldown_expires_at > now


class StateChange(BaseModel):
    """Notification that at least one observable field changed."""

    previous: GameState
    current: GameState
    changed: frozenset[str]

    model_config = ConfigDict(frozen=True)


class GameStateTracker:
    """Maintains GameState from the target bot's chat messages."""

    def __init__(
        self,
        target: str,
        classifier: MessageClassifier,
        *,
        target_user_id: str | None = None,
        claim_prompt: str | None = None,
        claim_timeout_s: float = 60.0,
        purchases: Iterable[PurchaseRule] = (),
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._target = target.lower()
        self._target_user_id = target_user_id
        self._classifier = classifier
        self._claim_prompt = claim_prompt
        self._claim_timeout_s = claim_timeout_s
        self._purchases = list(purchases)
        self._log = logger or get_logger(__name__)
        self._state = GameState()
        self._seen: deque[object] = deque(maxlen=_SEEN_IDS)

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def claim_prompt(self) -> str | None:
        return self._claim_prompt

    def is_target(self, event: ChatEvent) -> bool:
        """True when *event* is a chat message from the target bot."""
        if getattr(event, "type", None) != "user_message":
            return False
        if event.user.lower() != self._target:
            return False
        if self._target_user_id and event.user_id and event.user_id != self._target_user_id:
            return False
        return True

    def apply(self, event: ChatEvent) -> StateChange | None:
        """Fold one event into the state.

        Returns:
            The change notification, or None when nothing observable changed
        """
        if not self.is_target(event):
            return None
        if self._is_duplicate(event):
            self._log.debug("duplicate_event_ignored", message_id=event.message_id)
            return None

        result = self._classifier.classify(event.text)
        if isinstance(result, Unrecognized):
            self._log.debug("target_message_unrecognized", text=event.text)
            self._state = self._state.model_copy(update={"last_observed_at": event.timestamp})
            return None

        now = event.timestamp
        update: dict[str, Any] = {"last_observed_at": now}
        for observation in result:
            if isinstance(observation, PromptSeen):
                update.update(
                    active_prompt=observation.kind,
                    prompt_id=self._state.prompt_id + 1,
                    prompt_opened_at=now,
                    prompt_synthetic=False,
                )
                self._log.info("prompt_detected", prompt=observation.kind, prompt_id=update["prompt_id"])
            elif isinstance(observation, CooldownSeen):
                update["cooldown_expires_at"] = now + observation.duration_s
                self._log.info("cooldown_detected", wait=as_readable(observation.duration_s))
            elif isinstance(observation, BalanceSeen):
                update["last_known_balance"] = observation.balance
                self._log.info("balance_detected", balance=observation.balance)
            elif isinstance(observation, RewardSeen):
                update.update(last_reward=observation.amount, reward_id=self._state.reward_id + 1)
                self._log.info("reward_detected", amount=observation.amount)
            elif isinstance(observation, ReceiptSeen):
                if observation.accepted:
                    self._log.info("purchase_confirmed", item=observation.item)
                else:
                    self._log.warning("purchase_declined", item=observation.item)
            elif isinstance(observation, PromptResolved):
                # A new prompt announced in the same message wins
                if "active_prompt" not in update:
                    update.update(active_prompt=None, prompt_opened_at=None, prompt_synthetic=False)

        if "reward_id" in update:
            update["purchases"] = self._plan_purchases(update["last_reward"], update.get("last_known_balance"))
        return self._commit(update)

    def expire(self, now: float) -> StateChange | None:
        """Advance time-driven state: lapse cooldowns, reopen unanswered claims."""
        state = self._state
        update: dict[str, Any] = {}

        if state.cooldown_expires_at is not None and state.cooldown_expires_at <= now:
            update["cooldown_expires_at"] = None
            self._log.info("cooldown_expired")

        cooldown_clear = "cooldown_expires_at" in update or state.cooldown_expires_at is None
        if self._claim_prompt and cooldown_clear:
            if state.active_prompt is None:
                update.update(self._claim_update(state, now))
            elif (
                state.prompt_synthetic
                and state.prompt_opened_at is not None
                and now - state.prompt_opened_at >= self._claim_timeout_s
            ):
                self._log.warning(
                    "claim_unanswered",
                    prompt=state.active_prompt,
                    waited=as_readable(now - state.prompt_opened_at),
                )
                update.update(self._claim_update(state, now))

        if not update:
            return None
        return self._commit(update)

    def open_claim(self, now: float) -> StateChange | None:
        """Open the claim prompt if nothing is pending and no cooldown is known."""
        state = self._state
        if not self._claim_prompt or state.active_prompt is not None or state.cooldown_active(now):
            return None
        return self._commit(self._claim_update(state, now))

    def claim_deadline(self) -> float | None:
        """When an open synthetic claim should be retried."""
        state = self._state
        if not state.prompt_synthetic or state.prompt_opened_at is None:
            return None
        return state.prompt_opened_at + self._claim_timeout_s

    def replay(self, events: Iterable[ChatEvent]) -> GameState:
        """Rebuild state from a fresh start by folding *events*."""
        self.reset()
        for event in events:
            self.apply(event)
        return self._state

    def reset(self) -> None:
        self._state = GameState()
        self._seen.clear()

    def _claim_update(self, state: GameState, now: float) -> dict[str, Any]:
        self._log.info("claim_opened", prompt=self._claim_prompt, prompt_id=state.prompt_id + 1)
        return {
            "active_prompt": self._claim_prompt,
            "prompt_id": state.prompt_id + 1,
            "prompt_opened_at": now,
            "prompt_synthetic": True,
        }

    def _plan_purchases(self, amount: int, balance: int | None) -> tuple[str, ...]:
        if balance is None:
            balance = self._state.last_known_balance
        planned = tuple(rule.prompt for rule in self._purchases if rule.applies(amount, balance))
        if planned:
            self._log.info("purchases_planned", items=list(planned), amount=amount, balance=balance)
        return planned

    def _is_duplicate(self, event: ChatEvent) -> bool:
        key = event.message_id or (event.user, event.text, event.timestamp)
        if key in self._seen:
            return True
        self._seen.append(key)
        return False

    def _commit(self, update: dict[str, Any]) -> StateChange | None:
        previous = self._state
        current = previous.model_copy(update=update)
        self._state = current
        changed = frozenset(f for f in OBSERVABLE_FIELDS if getattr(previous, f) != getattr(current, f))
        if not changed:
            return None
        return StateChange(previous=previous, current=current, changed=changed)
