# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path

import click

from cookiebot.bot import FarmBot
from cookiebot.config import BotConfig, load_config
from cookiebot.errors import AuthenticationFailure, ConfigurationError
from cookiebot.game.presets import preset_names
from cookiebot.logging import configure_logging, get_logger
from cookiebot.settings import Settings

EXIT_OK = 0
EXIT_AUTH_FAILURE = 2
EXIT_CONFIG_ERROR = 3

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

logger = get_logger(__name__)


def _load(ctx: click.Context, settings: Settings, config_path: Path | None) -> BotConfig:
    try:
        return load_config(config_path or settings.config_path)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)


async def _run_bot(config: BotConfig) -> None:
    bot = FarmBot(config)
    loop = asyncio.get_running_loop()
    stopping: set[asyncio.Task[None]] = set()

    def _request_stop(sig: signal.Signals) -> None:
        logger.info("signal_received", signal=sig.name)
        task = asyncio.ensure_future(bot.stop())
        stopping.add(task)
        task.add_done_callback(stopping.discard)

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _request_stop, sig)

    await bot.run()


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def cli() -> None:
    """cookiebot command line interface."""


@cli.command("run")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML config file (default: $COOKIEBOT_CONFIG_PATH or ./cookiebot.yaml).",
)
@click.option("--log-level", type=click.Choice(_LOG_LEVELS, case_sensitive=False), default=None)
@click.pass_context
def run(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """Connect and farm until interrupted."""
    settings = Settings()
    configure_logging(settings, level=log_level)
    config = _load(ctx, settings, config_path)

    try:
        asyncio.run(_run_bot(config))
    except AuthenticationFailure as e:
        click.echo(f"Authentication failed: {e}", err=True)
        ctx.exit(EXIT_AUTH_FAILURE)
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)
    ctx.exit(EXIT_OK)


@cli.command("check-config")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML config file to validate.",
)
@click.pass_context
def check_config(ctx: click.Context, config_path: Path | None) -> None:
    """Validate a config file and print it with the token redacted."""
    settings = Settings()
    configure_logging(settings, level="WARNING")
    config = _load(ctx, settings, config_path)
    click.echo(config.dump_yaml(reveal_token=False), nl=False)


@cli.command("presets")
def presets() -> None:
    """List the built-in target presets."""
    for name in preset_names():
        click.echo(name)


def main() -> None:
    cli.main()


if __name__ == "__main__":
    main()
