"""Shared runtime wiring for all chat sources.

One `BotRuntime` owns the store, locale tables, guild directory, scheduler,
command registry and pipeline. Platform services hand their normalized
messages to `BotRuntime.handle_message`.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Optional

from .commands.base import Command, CommandServices
from .commands.definitions import default_commands
from .commands.parser import CommandPipeline, ProcessResult
from .commands.registry import CommandRegistry
from .core.config import BotConfig
from .core.guild_sync import GuildDirectory, GuildSyncScheduler
from .core.localization import LangManager
from .core.logging_utils import log_event
from .core.store import BotStore
from .integrations.chat.models import ChatMessage
from .integrations.chat.source import ChatSource

FallThroughHook = Callable[[ChatMessage, ChatSource], Awaitable[None]]


class BotRuntime:
    def __init__(
        self,
        config: BotConfig,
        *,
        logger: logging.Logger,
        store: Optional[BotStore] = None,
        commands: Optional[Iterable[Command]] = None,
        fall_through: Optional[FallThroughHook] = None,
    ) -> None:
        self.config = config
        self.logger = logger
        self.store = store if store is not None else BotStore(config.state_file)
        self._owns_store = store is None
        self.directory = GuildDirectory()
        self.lang_manager = LangManager(
            default_locale=config.default_locale, store=self.store
        )
        self.scheduler = GuildSyncScheduler(
            directory=self.directory,
            store=self.store,
            interval_seconds=config.guild_sync.interval_seconds,
            logger=logger,
        )
        self.registry = CommandRegistry(
            commands if commands is not None else default_commands()
        )
        self.services = CommandServices(
            lang_manager=self.lang_manager,
            store=self.store,
            directory=self.directory,
            scheduler=self.scheduler,
            command_prefix=config.command_prefix,
        )
        self.pipeline = CommandPipeline(
            services=self.services, registry=self.registry, logger=logger
        )
        self.fall_through = fall_through
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        await self.store.initialize()
        problems = self.check_aliases()
        for problem in problems:
            log_event(self.logger, logging.WARNING, "runtime.alias.conflict", detail=problem)
        if self.config.guild_sync.enabled:
            self.scheduler.start()
        self._started = True
        log_event(
            self.logger,
            logging.INFO,
            "runtime.started",
            state_file=str(self.config.state_file),
            commands=len(self.registry),
            locales=",".join(self.lang_manager.available_locales()),
        )

    async def close(self) -> None:
        await self.scheduler.stop()
        if self._owns_store:
            await self.store.close()
        self._started = False

    def check_aliases(self) -> list[str]:
        return self.registry.check_aliases(self.lang_manager)

    async def handle_message(
        self, message: ChatMessage, source: ChatSource
    ) -> ProcessResult:
        result = await self.pipeline.process(message, source)
        if not result.is_command and self.fall_through is not None:
            try:
                await self.fall_through(message, source)
            except Exception as exc:
                log_event(
                    self.logger,
                    logging.ERROR,
                    "runtime.fall_through.failed",
                    source=message.source,
                    message_id=message.message_id,
                    exc=exc,
                )
        return result
