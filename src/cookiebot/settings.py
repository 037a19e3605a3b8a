# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Application settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    config_path: Path = Path("cookiebot.yaml")
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="COOKIEBOT_",
        env_nested_delimiter="__",
        extra="ignore",
    )
