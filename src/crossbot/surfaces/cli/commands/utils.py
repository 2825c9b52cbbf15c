from __future__ import annotations

import asyncio
import importlib.metadata
import logging
from pathlib import Path
from typing import Callable, NoReturn, Optional, Protocol

import typer

from ....core.config import BotConfig, load_config
from ....core.exceptions import ConfigError
from ....core.logging_utils import log_event, setup_rotating_logger
from ....runtime import BotRuntime

LOGGER_NAME = "crossbot"


class BotService(Protocol):
    async def run_forever(self) -> None: ...


def get_crossbot_version() -> str:
    try:
        return importlib.metadata.version("crossbot")
    except importlib.metadata.PackageNotFoundError:
        from .... import __version__

        return __version__


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def require_config(path: Optional[Path]) -> BotConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)


def build_logger(config: BotConfig) -> logging.Logger:
    return setup_rotating_logger(LOGGER_NAME, config.log)


async def run_services(
    config: BotConfig,
    *,
    logger: logging.Logger,
    service_factories: list[Callable[[BotRuntime], BotService]],
) -> None:
    """Start the shared runtime, then run every service until one exits."""

    runtime = BotRuntime(config, logger=logger)
    await runtime.start()
    services: list[BotService] = [factory(runtime) for factory in service_factories]
    tasks = [asyncio.create_task(service.run_forever()) for service in services]
    try:
        done, _pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in done:
            exc = task.exception()
            if exc is not None:
                raise exc
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await runtime.close()
        log_event(logger, logging.INFO, "runtime.stopped")
