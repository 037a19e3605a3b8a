# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pytest configuration and fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, Mock

import pytest

from cookiebot.config import BotConfig

if TYPE_CHECKING:
    from collections.abc import Callable


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def _make_config(**overrides: Any) -> BotConfig:
    data: dict[str, Any] = {
        "username": "chronophylos",
        "token": "oauth:secret",
        "channel": "#farmland",
        "target": {"preset": "generic"},
    }
    data.update(overrides)
    return BotConfig.from_dict(data)


@pytest.fixture
def make_config() -> Callable[..., BotConfig]:
    """Factory for configs; keyword arguments override top-level fields."""
    return _make_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def generic_config() -> BotConfig:
    """Config targeting the generic 'New prompt' game bot."""
    return _make_config()


@pytest.fixture
def cookie_config() -> BotConfig:
    """Config targeting thepositivebot."""
    return _make_config(target={"preset": "thepositivebot"})


@pytest.fixture
def mock_reader() -> Mock:
    """Mock asyncio StreamReader."""
    reader = AsyncMock()
    reader.read = AsyncMock(return_value=b"")
    return reader


@pytest.fixture
def mock_writer() -> Mock:
    """Mock asyncio StreamWriter."""
    writer = AsyncMock()
    writer.write = Mock()
    writer.drain = AsyncMock()
    writer.close = Mock()
    writer.wait_closed = AsyncMock()
    writer.is_closing = Mock(return_value=False)
    return writer
