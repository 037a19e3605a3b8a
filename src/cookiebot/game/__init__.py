# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Farming game model: message classification and state tracking."""

from __future__ import annotations

from cookiebot.game.patterns import MessageClassifier, PatternRule, RuleKind
from cookiebot.game.state import GameState, GameStateTracker, StateChange

__all__ = ["GameState", "GameStateTracker", "MessageClassifier", "PatternRule", "RuleKind", "StateChange"]
