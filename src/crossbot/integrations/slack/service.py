from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI

from ...core.logging_utils import log_event
from ...runtime import BotRuntime
from ..chat.bootstrap import ChatBootstrapStep, run_chat_bootstrap_steps
from ..chat.dispatcher import ChatDispatcher, DispatchContext, RecentMessageIds
from ..chat.models import ChatMessage
from .config import SlackBotConfig
from .events import create_events_app
from .message import SLACK_SOURCE, normalize_event
from .rest import SlackWebClient
from .source import SlackSource

SHUTDOWN_DRAIN_SECONDS = 10.0


class SlackBotService:
    def __init__(
        self,
        config: SlackBotConfig,
        *,
        runtime: BotRuntime,
        logger: logging.Logger,
        web_client: Optional[SlackWebClient] = None,
        dispatcher: Optional[ChatDispatcher] = None,
    ) -> None:
        self._config = config
        self._runtime = runtime
        self._logger = logger
        self._web = (
            web_client
            if web_client is not None
            else SlackWebClient(bot_token=config.bot_token or "")
        )
        self._owns_web = web_client is None
        self._source = SlackSource(
            web=self._web,
            directory=runtime.directory,
            max_message_length=config.max_message_length,
            logger=logger,
        )
        self._dispatcher = dispatcher or ChatDispatcher(
            logger=logger,
            allowlist_predicate=self._allowlist_predicate,
            dedupe_predicate=RecentMessageIds(),
        )
        self._app: Optional[FastAPI] = None

    @property
    def source(self) -> SlackSource:
        return self._source

    @property
    def dispatcher(self) -> ChatDispatcher:
        return self._dispatcher

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            self._app = create_events_app(
                signing_secret=self._config.signing_secret or "",
                on_event=self.handle_event,
                logger=self._logger,
            )
        return self._app

    async def run_forever(self) -> None:
        self._runtime.scheduler.register(self._source)
        await run_chat_bootstrap_steps(
            platform=SLACK_SOURCE,
            logger=self._logger,
            steps=(
                ChatBootstrapStep(
                    name="auth_test", action=self._source.identify, required=True
                ),
                ChatBootstrapStep(
                    name="initial_team_sync",
                    action=self._initial_team_sync,
                    required=False,
                ),
            ),
        )
        server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=self._config.host,
                port=self._config.port,
                log_level="warning",
            )
        )
        try:
            log_event(
                self._logger,
                logging.INFO,
                "slack.bot.starting",
                team_id=self._source.team_id,
                host=self._config.host,
                port=self._config.port,
            )
            await server.serve()
        finally:
            with contextlib.suppress(Exception):
                await asyncio.wait_for(
                    self._dispatcher.wait_idle(), timeout=SHUTDOWN_DRAIN_SECONDS
                )
            await self._dispatcher.shutdown()
            if self._owns_web:
                with contextlib.suppress(Exception):
                    await self._web.close()

    async def handle_event(self, envelope: dict[str, Any]) -> None:
        message = normalize_event(envelope, bot_user_id=self._source.bot_user_id)
        if message is None:
            return
        await self._dispatcher.dispatch(message, self._handle_message)

    async def _initial_team_sync(self) -> None:
        team_id = self._source.team_id
        if team_id:
            self._runtime.scheduler.request_sync(SLACK_SOURCE, team_id)

    async def _handle_message(self, message: ChatMessage, context: DispatchContext) -> None:
        await self._runtime.handle_message(message, self._source)

    def _allowlist_predicate(self, message: ChatMessage, context: DispatchContext) -> bool:
        allowed = self._config.allowed_team_ids
        if not allowed:
            return True
        team_id = message.org_id or message.raw.get("team")
        return team_id in allowed


def create_slack_bot_service(
    config: SlackBotConfig,
    *,
    runtime: BotRuntime,
    logger: logging.Logger,
) -> SlackBotService:
    return SlackBotService(config, runtime=runtime, logger=logger)
