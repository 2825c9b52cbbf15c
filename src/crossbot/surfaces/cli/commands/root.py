from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
from typing import Callable, Optional

import typer

from ....commands.definitions import default_commands
from ....commands.registry import CommandRegistry
from ....core.exceptions import ConfigError
from ....core.localization import LangManager
from ....integrations.discord.config import DiscordBotConfig
from ....integrations.slack.config import SlackBotConfig
from .discord import _discord_service
from .slack import _slack_service
from .utils import build_logger, require_config, run_services


def register_root_commands(app: typer.Typer, *, raise_exit: Callable) -> None:
    @app.command("start")
    def start(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Config file or directory holding crossbot.yml"
        ),
    ) -> None:
        """Run every enabled platform against one shared runtime."""

        config = require_config(path)
        try:
            discord_cfg = DiscordBotConfig.from_raw(config.section("discord"))
            slack_cfg = SlackBotConfig.from_raw(config.section("slack"))
        except ConfigError as exc:
            raise_exit(str(exc), cause=exc)
        logger = build_logger(config)
        factories = []
        if discord_cfg.enabled:
            factories.append(partial(_discord_service, config=discord_cfg, logger=logger))
        if slack_cfg.enabled:
            factories.append(partial(_slack_service, config=slack_cfg, logger=logger))
        if not factories:
            raise_exit("No platform enabled; set discord.enabled or slack.enabled")
        try:
            asyncio.run(run_services(config, logger=logger, service_factories=factories))
        except KeyboardInterrupt:
            typer.echo("crossbot stopped.")

    @app.command("check")
    def check(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Config file or directory holding crossbot.yml"
        ),
    ) -> None:
        """Validate configuration, locale tables and command aliases."""

        config = require_config(path)
        problems: list[str] = []
        for name, parse in (
            ("discord", DiscordBotConfig.from_raw),
            ("slack", SlackBotConfig.from_raw),
        ):
            try:
                platform_cfg = parse(config.section(name))
            except ConfigError as exc:
                problems.append(f"{name}: {exc}")
                continue
            typer.echo(f"{name}: {'enabled' if platform_cfg.enabled else 'disabled'}")

        try:
            lang_manager = LangManager(default_locale=config.default_locale)
        except ConfigError as exc:
            problems.append(str(exc))
        else:
            registry = CommandRegistry(default_commands())
            problems.extend(registry.check_aliases(lang_manager))
            typer.echo(
                f"commands: {len(registry)}; "
                f"locales: {', '.join(lang_manager.available_locales())}"
            )

        if problems:
            for problem in problems:
                typer.echo(problem, err=True)
            raise typer.Exit(code=1)
        typer.echo("ok")
