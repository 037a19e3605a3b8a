# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration management for cookiebot."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from cookiebot import constants
from cookiebot.errors import ConfigurationError
from cookiebot.game.patterns import PatternRule, PurchaseRule
from cookiebot.game.presets import get_preset, preset_names
from cookiebot.logging import get_logger

logger = get_logger(__name__)

# Twitch logins and channel names: ASCII letters, digits and underscores
_NAME = re.compile(r"[a-z0-9_]+")


def _check_name(field: str, value: str) -> str:
    if not value:
        raise ValueError(f"{field} must not be empty")
    if not _NAME.fullmatch(value):
        raise ValueError(f"{field} {value!r} may only contain letters, digits and underscores")
    return value


class BackoffConfig(BaseModel):
    """Reconnect delay: initial * multiplier ** (failures - 1), capped."""

    initial_s: float = Field(default=constants.DEFAULT_BACKOFF_INITIAL_S, gt=0)
    multiplier: float = Field(default=constants.DEFAULT_BACKOFF_MULTIPLIER, ge=1)
    cap_s: float = Field(default=constants.DEFAULT_BACKOFF_CAP_S, gt=0)
    reset_after_s: float = Field(default=constants.DEFAULT_BACKOFF_RESET_AFTER_S, ge=0)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _check_cap(self) -> BackoffConfig:
        if self.cap_s < self.initial_s:
            raise ValueError("cap_s must not be smaller than initial_s")
        return self


class ConnectionConfig(BaseModel):
    """Chat server endpoint and session timing."""

    host: str = constants.DEFAULT_HOST
    port: int = Field(default=constants.DEFAULT_TLS_PORT, gt=0, lt=65536)
    tls: bool = True
    connect_timeout_s: float = Field(default=constants.DEFAULT_CONNECT_TIMEOUT_S, gt=0)
    handshake_timeout_s: float = Field(default=constants.DEFAULT_HANDSHAKE_TIMEOUT_S, gt=0)
    keepalive_interval_s: float = Field(default=constants.DEFAULT_KEEPALIVE_INTERVAL_S, ge=0)  # 0 = disabled
    liveness_timeout_s: float = Field(default=constants.DEFAULT_LIVENESS_TIMEOUT_S, gt=0)
    read_max_bytes: int = Field(default=constants.DEFAULT_MAX_BYTES, gt=0)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)

    model_config = ConfigDict(extra="ignore")


class RateLimitConfig(BaseModel):
    """Outbound message budget."""

    max_messages: int = Field(default=constants.DEFAULT_RATE_MAX_MESSAGES, ge=1)
    window_s: float = Field(default=constants.DEFAULT_RATE_WINDOW_S, gt=0)
    tick_interval_s: float = Field(default=constants.DEFAULT_TICK_INTERVAL_S, gt=0)

    model_config = ConfigDict(extra="ignore")


class TargetConfig(BaseModel):
    """The farming bot we observe and answer.

    A ``preset`` supplies login, rules and responses; explicit ``rules`` are
    appended after the preset's and ``responses`` override it per prompt kind.
    ``purchases``, when given, replace the preset's; an empty list disables
    buying.
    """

    preset: str | None = None
    login: str | None = None
    user_id: str | None = None
    rules: list[PatternRule] = Field(default_factory=list)
    responses: dict[str, str] = Field(default_factory=dict)
    default_cooldown_s: float | None = Field(default=None, ge=0)
    claim_prompt: str | None = None
    claim_timeout_s: float = Field(default=60.0, gt=0)
    purchases: list[PurchaseRule] | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("preset")
    @classmethod
    def _known_preset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if value.lower() not in preset_names():
            raise ValueError(f"unknown preset {value!r}; choose one of {', '.join(preset_names())}")
        return value.lower()

    @model_validator(mode="after")
    def _merge_preset(self) -> TargetConfig:
        if self.preset:
            preset = get_preset(self.preset)
            self.login = self.login or preset["login"]
            self.user_id = self.user_id or preset.get("user_id")
            self.rules = [PatternRule.model_validate(r) for r in preset["rules"]] + list(self.rules)
            self.responses = {**preset["responses"], **self.responses}
            if self.claim_prompt is None:
                self.claim_prompt = preset.get("claim_prompt")
            if self.default_cooldown_s is None:
                self.default_cooldown_s = preset.get("default_cooldown_s")
            if self.purchases is None:
                self.purchases = [PurchaseRule.model_validate(p) for p in preset["purchases"]]
            self.preset = None
        if not self.login:
            raise ValueError("target needs a 'login' or a 'preset'")
        self.login = self.login.lstrip("@").lower()
        if not self.rules:
            raise ValueError("target has no rules")
        if self.claim_prompt and self.claim_prompt not in self.responses:
            raise ValueError(f"claim_prompt {self.claim_prompt!r} has no entry in responses")
        if self.purchases is None:
            self.purchases = []
        for purchase in self.purchases:
            if purchase.prompt not in self.responses:
                raise ValueError(f"purchase {purchase.prompt!r} has no entry in responses")
        if self.default_cooldown_s is None:
            self.default_cooldown_s = 60.0
        return self


class BotConfig(BaseModel):
    """Complete bot configuration."""

    username: str
    token: SecretStr
    channel: str
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    target: TargetConfig = Field(default_factory=lambda: TargetConfig(preset="thepositivebot"))
    duplicate_suffix: bool = True
    shutdown_timeout_s: float = Field(default=constants.DEFAULT_SHUTDOWN_TIMEOUT_S, gt=0)

    model_config = ConfigDict(extra="ignore")

    @field_validator("username")
    @classmethod
    def _normalize_username(cls, value: str) -> str:
        return _check_name("username", value.strip().lower())

    @field_validator("token")
    @classmethod
    def _normalize_token(cls, value: SecretStr) -> SecretStr:
        raw = value.get_secret_value().strip()
        raw = raw.removeprefix("oauth:")
        if not raw:
            raise ValueError("token must not be empty")
        return SecretStr(raw)

    @field_validator("channel")
    @classmethod
    def _normalize_channel(cls, value: str) -> str:
        return _check_name("channel", value.strip().lstrip("#").lower())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BotConfig:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

    @classmethod
    def from_yaml(cls, path: Path | str) -> BotConfig:
        path = Path(path)
        logger.info("config_loading", path=str(path))
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except OSError as e:
            raise ConfigurationError(f"cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping")
        return cls.from_dict(data)

    def to_yaml(self, path: Path | str, *, reveal_token: bool = True) -> None:
        path = Path(path)
        logger.info("config_saving", path=str(path))
        path.write_text(self.dump_yaml(reveal_token=reveal_token), encoding="utf-8")

    def dump_yaml(self, *, reveal_token: bool = False) -> str:
        data = self.model_dump(mode="json")
        data["token"] = self.token.get_secret_value() if reveal_token else "**********"
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def load_config(path: Path | str) -> BotConfig:
    return BotConfig.from_yaml(path)
