from __future__ import annotations

import asyncio
from functools import partial
from pathlib import Path
from typing import Callable, Optional

import typer

from ....integrations.slack.config import SlackBotConfig
from ....integrations.slack.errors import SlackConfigError
from ....integrations.slack.service import create_slack_bot_service
from .utils import build_logger, require_config, run_services


def register_slack_commands(app: typer.Typer, *, raise_exit: Callable) -> None:
    @app.command("start")
    def slack_start(
        path: Optional[Path] = typer.Option(
            None, "--path", help="Config file or directory holding crossbot.yml"
        ),
    ) -> None:
        """Serve the Slack Events API endpoint only."""

        config = require_config(path)
        try:
            slack_cfg = SlackBotConfig.from_raw(config.section("slack"))
        except SlackConfigError as exc:
            raise_exit(str(exc), cause=exc)
        if not slack_cfg.enabled:
            raise_exit("slack is disabled; set slack.enabled: true")
        logger = build_logger(config)
        try:
            asyncio.run(
                run_services(
                    config,
                    logger=logger,
                    service_factories=[
                        partial(_slack_service, config=slack_cfg, logger=logger)
                    ],
                )
            )
        except KeyboardInterrupt:
            typer.echo("Slack bot stopped.")


def _slack_service(runtime, *, config: SlackBotConfig, logger):
    return create_slack_bot_service(config, runtime=runtime, logger=logger)
