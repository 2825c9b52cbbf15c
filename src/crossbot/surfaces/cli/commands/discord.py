from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
from typing import Callable, Optional

import typer

from ....integrations.discord.config import DiscordBotConfig
from ....integrations.discord.errors import DiscordConfigError
from ....integrations.discord.service import create_discord_bot_service
from .utils import build_logger, require_config, run_services


def register_discord_commands(app: typer.Typer, *, raise_exit: Callable) -> None:
    @app.command("start")
    def discord_start(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Config file or directory holding crossbot.yml"
        ),
    ) -> None:
        """Run the Discord bot only."""

        config = require_config(path)
        try:
            discord_cfg = DiscordBotConfig.from_raw(config.section("discord"))
        except DiscordConfigError as exc:
            raise_exit(str(exc), cause=exc)
        if not discord_cfg.enabled:
            raise_exit("discord is disabled; set discord.enabled: true")
        logger = build_logger(config)
        try:
            asyncio.run(
                run_services(
                    config,
                    logger=logger,
                    service_factories=[
                        partial(
                            _discord_service, config=discord_cfg, logger=logger
                        )
                    ],
                )
            )
        except KeyboardInterrupt:
            typer.echo("Discord bot stopped.")


def _discord_service(runtime, *, config: DiscordBotConfig, logger):
    return create_discord_bot_service(config, runtime=runtime, logger=logger)
