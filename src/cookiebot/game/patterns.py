# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Classifier for the target bot's free-text messages.

A rule table (from configuration or a preset) maps regular expressions to a
closed set of observations. Text that matches no rule is Unrecognized.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator, model_validator

from cookiebot.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)

_DURATION_GROUPS = {"hours": 3600, "minutes": 60, "seconds": 1}

# Longer waits are not real cooldowns
MAX_DURATION_S = 7 * 24 * 3600


class RuleKind(str, Enum):
    """What a matching rule tells us about the game."""

    PROMPT = "prompt"
    COOLDOWN = "cooldown"
    BALANCE = "balance"
    REWARD = "reward"
    RECEIPT = "receipt"
    RESOLVED = "resolved"


class PatternRule(BaseModel):
    """One entry of the rule table.

    Named groups understood by the classifier:
        user: login the message is addressed to
        prompt: prompt kind (PROMPT rules without a fixed ``prompt``)
        hours, minutes, seconds: cooldown duration parts
        balance: currency total
        amount: currency gained by a claim (REWARD rules)

    RECEIPT rules name the purchased ``item`` and whether the shop
    ``accepted`` the order.
    """

    kind: RuleKind
    pattern: str
    prompt: str | None = None
    addressed: bool = False
    cooldown_s: float | None = None
    item: str | None = None
    accepted: bool = True
    ignore_case: bool = False

    model_config = ConfigDict(extra="ignore")

    _compiled: re.Pattern[str] = PrivateAttr()

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value

    @field_validator("cooldown_s")
    @classmethod
    def _check_cooldown(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError("cooldown_s must not be negative")
        return value

    @model_validator(mode="after")
    def _check_groups(self) -> PatternRule:
        groups = re.compile(self.pattern).groupindex
        if self.kind is RuleKind.PROMPT and not self.prompt and "prompt" not in groups:
            raise ValueError("prompt rules need a fixed 'prompt' or a (?P<prompt>...) group")
        if self.kind is RuleKind.BALANCE and "balance" not in groups:
            raise ValueError("balance rules need a (?P<balance>...) group")
        if self.kind is RuleKind.REWARD and "amount" not in groups:
            raise ValueError("reward rules need a (?P<amount>...) group")
        if self.kind is RuleKind.RECEIPT and not self.item:
            raise ValueError("receipt rules need an 'item'")
        return self

    def model_post_init(self, __context: Any) -> None:
        flags = re.IGNORECASE if self.ignore_case else 0
        self._compiled = re.compile(self.pattern, flags)

    @property
    def regex(self) -> re.Pattern[str]:
        return self._compiled


class PurchaseRule(BaseModel):
    """Follow-up order placed after a successful claim.

    ``prompt`` names an entry of the response table. Every threshold that is
    set must be met: ``min_amount`` by the claim's reward, ``min_balance`` by
    the balance known after the claim.
    """

    prompt: str
    min_amount: int | None = None
    min_balance: int | None = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="after")
    def _check_threshold(self) -> PurchaseRule:
        if self.min_amount is None and self.min_balance is None:
            raise ValueError(f"purchase {self.prompt!r} needs 'min_amount' or 'min_balance'")
        return self

    def applies(self, amount: int, balance: int | None) -> bool:
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.min_balance is not None and (balance is None or balance < self.min_balance):
            return False
        return True


@dataclass(frozen=True, slots=True)
class PromptSeen:
    kind: str


@dataclass(frozen=True, slots=True)
class CooldownSeen:
    duration_s: float


@dataclass(frozen=True, slots=True)
class BalanceSeen:
    balance: int


@dataclass(frozen=True, slots=True)
class RewardSeen:
    amount: int


@dataclass(frozen=True, slots=True)
class ReceiptSeen:
    item: str
    accepted: bool


@dataclass(frozen=True, slots=True)
class PromptResolved:
    pass


@dataclass(frozen=True, slots=True)
class Unrecognized:
    text: str


Observation = PromptSeen | CooldownSeen | BalanceSeen | RewardSeen | ReceiptSeen | PromptResolved


def _duration_from(match: re.Match[str]) -> float | None:
    """Sum the duration groups in whole seconds.

    Raises:
        ValueError: If the total exceeds MAX_DURATION_S
    """
    total = 0
    found = False
    for name, size in _DURATION_GROUPS.items():
        if name not in match.re.groupindex:
            continue
        value = match.group(name)
        if value:
            total += int(value) * size
            found = True
    if total > MAX_DURATION_S:
        raise ValueError(f"duration of {total}s is out of range")
    return float(total) if found else None


class MessageClassifier:
    """Applies the rule table to target bot messages.

    Every rule kind contributes at most one observation per message: the first
    rule of that kind (in table order) that matches and is applicable.
    """

    def __init__(
        self,
        rules: Iterable[PatternRule],
        operator: str,
        default_cooldown_s: float = 60.0,
    ) -> None:
        self._rules = list(rules)
        self._operator = operator.lower()
        self._mention = re.compile(rf"@{re.escape(self._operator)}\b", re.IGNORECASE)
        self._default_cooldown_s = default_cooldown_s

    @property
    def rules(self) -> list[PatternRule]:
        return list(self._rules)

    def classify(self, text: str) -> tuple[Observation, ...] | Unrecognized:
        """Return what *text* tells us, or Unrecognized."""
        seen: dict[RuleKind, Observation] = {}
        for rule in self._rules:
            if rule.kind in seen:
                continue
            match = rule.regex.search(text)
            if match is None:
                continue
            if rule.addressed and not self._is_addressed(match, text):
                continue
            observation = self._observe(rule, match)
            if observation is not None:
                seen[rule.kind] = observation

        if not seen:
            return Unrecognized(text)
        return tuple(seen[kind] for kind in RuleKind if kind in seen)

    def _is_addressed(self, match: re.Match[str], text: str) -> bool:
        if "user" in match.re.groupindex and match.group("user"):
            return match.group("user").lower() == self._operator
        return self._mention.search(text) is not None

    def _observe(self, rule: PatternRule, match: re.Match[str]) -> Observation | None:
        if rule.kind is RuleKind.PROMPT:
            kind = rule.prompt
            if "prompt" in match.re.groupindex and match.group("prompt"):
                kind = match.group("prompt").lower()
            return PromptSeen(kind=kind) if kind else None

        if rule.kind is RuleKind.COOLDOWN:
            try:
                duration = _duration_from(match)
            except ValueError:
                logger.debug("cooldown_unparseable", text=match.group(0)[:80], pattern=rule.pattern)
                return None
            if duration is None:
                duration = rule.cooldown_s if rule.cooldown_s is not None else self._default_cooldown_s
            return CooldownSeen(duration_s=duration)

        if rule.kind is RuleKind.BALANCE:
            raw = (match.group("balance") or "").replace(",", "")
            try:
                return BalanceSeen(balance=int(raw))
            except ValueError:
                logger.debug("balance_unparseable", value=raw, pattern=rule.pattern)
                return None

        if rule.kind is RuleKind.REWARD:
            raw = match.group("amount") or ""
            try:
                return RewardSeen(amount=int(raw))
            except ValueError:
                logger.debug("reward_unparseable", value=raw, pattern=rule.pattern)
                return None

        if rule.kind is RuleKind.RECEIPT:
            return ReceiptSeen(item=rule.item, accepted=rule.accepted)

        return PromptResolved()

