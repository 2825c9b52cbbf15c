from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from ...core.logging_utils import log_event
from ...runtime import BotRuntime
from ..chat.bootstrap import ChatBootstrapStep, run_chat_bootstrap_steps
from ..chat.dispatcher import ChatDispatcher, DispatchContext, RecentMessageIds
from ..chat.models import ChatMessage
from .allowlist import DiscordAllowlist, allowlist_allows
from .config import DiscordBotConfig
from .gateway import DiscordGatewayClient
from .message import DISCORD_SOURCE, normalize_message
from .rest import DiscordRestClient
from .source import DiscordSource, snapshot_from_guild

SHUTDOWN_DRAIN_SECONDS = 10.0


class DiscordBotService:
    def __init__(
        self,
        config: DiscordBotConfig,
        *,
        runtime: BotRuntime,
        logger: logging.Logger,
        rest_client: Optional[DiscordRestClient] = None,
        gateway_client: Optional[DiscordGatewayClient] = None,
        dispatcher: Optional[ChatDispatcher] = None,
    ) -> None:
        self._config = config
        self._runtime = runtime
        self._logger = logger

        self._rest = (
            rest_client
            if rest_client is not None
            else DiscordRestClient(bot_token=config.bot_token or "")
        )
        self._owns_rest = rest_client is None

        self._gateway = (
            gateway_client
            if gateway_client is not None
            else DiscordGatewayClient(
                bot_token=config.bot_token or "",
                intents=config.intents,
                logger=logger,
                gateway_url=config.gateway_url,
            )
        )
        self._owns_gateway = gateway_client is None

        self._source = DiscordSource(
            rest=self._rest,
            directory=runtime.directory,
            max_message_length=config.max_message_length,
            logger=logger,
        )
        self._allowlist = DiscordAllowlist(
            allowed_guild_ids=config.allowed_guild_ids,
            allowed_channel_ids=config.allowed_channel_ids,
            allowed_user_ids=config.allowed_user_ids,
        )
        self._dispatcher = dispatcher or ChatDispatcher(
            logger=logger,
            allowlist_predicate=self._allowlist_predicate,
            dedupe_predicate=RecentMessageIds(),
        )
        self._bot_user_id: Optional[str] = None

    @property
    def source(self) -> DiscordSource:
        return self._source

    @property
    def dispatcher(self) -> ChatDispatcher:
        return self._dispatcher

    async def run_forever(self) -> None:
        self._runtime.scheduler.register(self._source)
        await run_chat_bootstrap_steps(
            platform=DISCORD_SOURCE,
            logger=self._logger,
            steps=(
                ChatBootstrapStep(
                    name="identify_bot_user",
                    timeout_seconds=30.0,
                    action=self._identify_bot_user,
                    required=True,
                ),
            ),
        )
        try:
            log_event(
                self._logger,
                logging.INFO,
                "discord.bot.starting",
                bot_user_id=self._bot_user_id,
                allowlist_open=self._allowlist.is_open,
            )
            await self._gateway.run(self._on_dispatch)
        finally:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(
                    self._dispatcher.wait_idle(), timeout=SHUTDOWN_DRAIN_SECONDS
                )
            await self._dispatcher.shutdown()
            await self._shutdown()

    async def _identify_bot_user(self) -> None:
        user = await self._rest.get_current_user()
        user_id = user.get("id")
        self._bot_user_id = str(user_id) if user_id else None

    async def _on_dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        if event_type == "MESSAGE_CREATE":
            message = normalize_message(payload)
            if message is not None:
                await self._dispatcher.dispatch(message, self._handle_message)
        elif event_type == "GUILD_CREATE":
            if payload.get("unavailable"):
                return
            await self._runtime.scheduler.apply_snapshot(snapshot_from_guild(payload))
        elif event_type == "GUILD_DELETE":
            guild_id = payload.get("id")
            if guild_id and not payload.get("unavailable"):
                self._runtime.directory.remove(DISCORD_SOURCE, str(guild_id))
        elif event_type in {"CHANNEL_CREATE", "CHANNEL_UPDATE", "CHANNEL_DELETE"}:
            guild_id = payload.get("guild_id")
            if guild_id:
                self._runtime.scheduler.request_sync(DISCORD_SOURCE, str(guild_id))
        elif event_type == "READY":
            guilds = payload.get("guilds")
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.ready",
                guilds=len(guilds) if isinstance(guilds, list) else 0,
            )

    async def _handle_message(self, message: ChatMessage, context: DispatchContext) -> None:
        await self._runtime.handle_message(message, self._source)

    def _allowlist_predicate(self, message: ChatMessage, context: DispatchContext) -> bool:
        return allowlist_allows(message, self._allowlist)

    async def _shutdown(self) -> None:
        if self._owns_gateway:
            with contextlib.suppress(Exception):
                await self._gateway.stop()
        if self._owns_rest:
            with contextlib.suppress(Exception):
                await self._rest.close()


def create_discord_bot_service(
    config: DiscordBotConfig,
    *,
    runtime: BotRuntime,
    logger: logging.Logger,
) -> DiscordBotService:
    return DiscordBotService(config, runtime=runtime, logger=logger)
