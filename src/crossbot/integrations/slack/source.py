from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from ...core.guild_sync import ChannelInfo, GuildDirectory, OrganizationSnapshot
from ...core.logging_utils import log_event
from ..chat.capabilities import ChatCapabilities
from ..chat.models import SentMessage
from .constants import SLACK_HISTORY_PAGE_LIMIT, SLACK_MAX_MESSAGE_LENGTH
from .errors import SlackPermanentError
from .message import SLACK_SOURCE, to_sent_message
from .permissions import SlackPermissions
from .rest import SlackWebClient

if TYPE_CHECKING:
    from ...commands.base import CommandInvocation


def channel_from_conversation(payload: Mapping[str, Any]) -> ChannelInfo:
    is_text = bool(payload.get("is_channel") or payload.get("is_group"))
    return ChannelInfo(
        channel_id=str(payload.get("id")),
        name=str(payload.get("name") or ""),
        kind="text" if is_text else "other",
    )


class SlackSource:
    """Slack implementation of the chat source; one workspace per bot token."""

    def __init__(
        self,
        *,
        web: SlackWebClient,
        directory: GuildDirectory,
        max_message_length: int = SLACK_MAX_MESSAGE_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._web = web
        self._directory = directory
        self._logger = logger or logging.getLogger(__name__)
        self._capabilities = ChatCapabilities(
            max_text_length=max_message_length,
            supports_bulk_delete=False,
            supports_private_messages=True,
            history_page_limit=SLACK_HISTORY_PAGE_LIMIT,
        )
        self._permissions = SlackPermissions(self)
        self.team_id: Optional[str] = None
        self.bot_user_id: Optional[str] = None

    @property
    def name(self) -> str:
        return SLACK_SOURCE

    @property
    def capabilities(self) -> ChatCapabilities:
        return self._capabilities

    @property
    def permissions(self) -> SlackPermissions:
        return self._permissions

    @property
    def web(self) -> SlackWebClient:
        return self._web

    async def identify(self) -> None:
        identity = await self._web.auth_test()
        team_id = identity.get("team_id")
        user_id = identity.get("user_id")
        self.team_id = str(team_id) if team_id else None
        self.bot_user_id = str(user_id) if user_id else None

    async def send_text(self, channel_id: str, text: str) -> None:
        await self._web.post_message(channel=channel_id, text=text)

    async def fetch_messages(
        self, channel_id: str, *, limit: int, before: Optional[str] = None
    ) -> list[SentMessage]:
        items = await self._web.conversations_history(
            channel=channel_id, limit=limit, latest=before
        )
        return [to_sent_message(item, channel_id) for item in items]

    async def delete_messages(
        self, channel_id: str, message_ids: Sequence[str]
    ) -> None:
        for ts in dict.fromkeys(message_ids):
            await self._web.delete_message(channel=channel_id, ts=ts)

    async def execute(self, invocation: "CommandInvocation") -> str:
        handler = invocation.command.handler_for(self.name)
        return await handler(invocation, self)

    async def get_snapshot(self, org_id: str) -> Optional[OrganizationSnapshot]:
        snapshot = self._directory.get(self.name, org_id)
        if snapshot is None:
            snapshot = await self.fetch_organization(org_id)
            if snapshot is not None:
                self._directory.put(snapshot)
        return snapshot

    async def fetch_organizations(self) -> list[OrganizationSnapshot]:
        if self.team_id is None:
            await self.identify()
        if self.team_id is None:
            return []
        snapshot = await self.fetch_organization(self.team_id)
        return [snapshot] if snapshot is not None else []

    async def fetch_organization(self, org_id: str) -> Optional[OrganizationSnapshot]:
        if self.team_id is not None and org_id != self.team_id:
            return None
        try:
            team = await self._web.team_info()
            conversations = await self._web.list_conversations()
        except SlackPermanentError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "slack.team.unavailable",
                org_id=org_id,
                error_code=exc.error_code,
            )
            return None
        channels = [channel_from_conversation(item) for item in conversations]
        return OrganizationSnapshot(
            source=self.name,
            org_id=org_id,
            name=str(team.get("name") or ""),
            channels={channel.channel_id: channel for channel in channels},
        )
