from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence

from ...core.guild_sync import (
    ChannelInfo,
    GuildDirectory,
    OrganizationSnapshot,
    PermissionOverwrite,
    RoleInfo,
)
from ...core.logging_utils import log_event
from ..chat.capabilities import ChatCapabilities
from ..chat.models import SentMessage
from .constants import (
    CHANNEL_TYPE_GUILD_CATEGORY,
    CHANNEL_TYPE_GUILD_VOICE,
    DISCORD_BULK_DELETE_MAX,
    DISCORD_BULK_DELETE_MAX_AGE_DAYS,
    DISCORD_HISTORY_PAGE_LIMIT,
    DISCORD_MAX_MESSAGE_LENGTH,
    TEXT_CHANNEL_TYPES,
)
from .errors import DiscordPermanentError
from .message import DISCORD_SOURCE, snowflake_timestamp, to_sent_message
from .permissions import DiscordPermissions
from .rest import DiscordRestClient

if TYPE_CHECKING:
    from ...commands.base import CommandInvocation


def _int_bits(value: Any) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return 0


def channel_kind(channel_type: Any) -> str:
    if channel_type in TEXT_CHANNEL_TYPES:
        return "text"
    if channel_type == CHANNEL_TYPE_GUILD_VOICE:
        return "voice"
    if channel_type == CHANNEL_TYPE_GUILD_CATEGORY:
        return "category"
    return "other"


def channel_from_payload(payload: Mapping[str, Any]) -> ChannelInfo:
    overwrites = []
    for item in payload.get("permission_overwrites") or ():
        if not isinstance(item, Mapping):
            continue
        overwrites.append(
            PermissionOverwrite(
                target_id=str(item.get("id")),
                target_kind="member" if item.get("type") in (1, "1", "member") else "role",
                allow=_int_bits(item.get("allow")),
                deny=_int_bits(item.get("deny")),
            )
        )
    return ChannelInfo(
        channel_id=str(payload.get("id")),
        name=str(payload.get("name") or ""),
        kind=channel_kind(payload.get("type")),
        overwrites=tuple(overwrites),
    )


def snapshot_from_guild(
    guild: Mapping[str, Any],
    channels: Optional[Iterable[Mapping[str, Any]]] = None,
) -> OrganizationSnapshot:
    """Build a snapshot from a guild object (GUILD_CREATE carries its channels)."""

    channel_items = channels if channels is not None else guild.get("channels") or ()
    parsed_channels = [
        channel_from_payload(item) for item in channel_items if isinstance(item, Mapping)
    ]
    roles = {}
    for item in guild.get("roles") or ():
        if not isinstance(item, Mapping):
            continue
        role = RoleInfo(
            role_id=str(item.get("id")),
            name=str(item.get("name") or ""),
            permissions=_int_bits(item.get("permissions")),
            position=int(item.get("position") or 0),
        )
        roles[role.role_id] = role
    owner_id = guild.get("owner_id")
    return OrganizationSnapshot(
        source=DISCORD_SOURCE,
        org_id=str(guild.get("id")),
        name=str(guild.get("name") or ""),
        owner_id=str(owner_id) if owner_id else None,
        channels={channel.channel_id: channel for channel in parsed_channels},
        roles=roles,
    )


class DiscordSource:
    """Discord implementation of the chat source and organization source."""

    def __init__(
        self,
        *,
        rest: DiscordRestClient,
        directory: GuildDirectory,
        max_message_length: int = DISCORD_MAX_MESSAGE_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._rest = rest
        self._directory = directory
        self._logger = logger or logging.getLogger(__name__)
        self._capabilities = ChatCapabilities(
            max_text_length=max_message_length,
            supports_bulk_delete=True,
            supports_private_messages=True,
            history_page_limit=DISCORD_HISTORY_PAGE_LIMIT,
        )
        self._permissions = DiscordPermissions(self)

    @property
    def name(self) -> str:
        return DISCORD_SOURCE

    @property
    def capabilities(self) -> ChatCapabilities:
        return self._capabilities

    @property
    def permissions(self) -> DiscordPermissions:
        return self._permissions

    @property
    def rest(self) -> DiscordRestClient:
        return self._rest

    async def send_text(self, channel_id: str, text: str) -> None:
        await self._rest.create_channel_message(
            channel_id=channel_id,
            payload={"content": text, "allowed_mentions": {"parse": []}},
        )

    async def fetch_messages(
        self, channel_id: str, *, limit: int, before: Optional[str] = None
    ) -> list[SentMessage]:
        payloads = await self._rest.get_channel_messages(
            channel_id=channel_id, limit=limit, before=before
        )
        return [to_sent_message(payload, channel_id) for payload in payloads]

    async def delete_messages(
        self, channel_id: str, message_ids: Sequence[str]
    ) -> None:
        """Bulk-delete recent messages; older ones go one by one."""

        bulk_cutoff = datetime.now(timezone.utc) - timedelta(
            days=DISCORD_BULK_DELETE_MAX_AGE_DAYS, minutes=-5
        )
        recent: list[str] = []
        old: list[str] = []
        for message_id in dict.fromkeys(message_ids):
            created = snowflake_timestamp(message_id)
            if created is not None and created > bulk_cutoff:
                recent.append(message_id)
            else:
                old.append(message_id)

        for start in range(0, len(recent), DISCORD_BULK_DELETE_MAX):
            batch = recent[start : start + DISCORD_BULK_DELETE_MAX]
            if len(batch) >= 2:
                await self._rest.bulk_delete_messages(
                    channel_id=channel_id, message_ids=batch
                )
            else:
                old.extend(batch)
        for message_id in old:
            await self._rest.delete_channel_message(
                channel_id=channel_id, message_id=message_id
            )

    async def execute(self, invocation: "CommandInvocation") -> str:
        handler = invocation.command.handler_for(self.name)
        return await handler(invocation, self)

    async def get_snapshot(self, org_id: str) -> Optional[OrganizationSnapshot]:
        snapshot = self._directory.get(self.name, org_id)
        if snapshot is not None:
            return snapshot
        snapshot = await self.fetch_organization(org_id)
        if snapshot is not None:
            self._directory.put(snapshot)
        return snapshot

    async def fetch_organizations(self) -> list[OrganizationSnapshot]:
        snapshots: list[OrganizationSnapshot] = []
        for guild in await self._rest.list_current_user_guilds():
            guild_id = guild.get("id")
            if not guild_id:
                continue
            snapshot = await self.fetch_organization(str(guild_id))
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    async def fetch_organization(self, org_id: str) -> Optional[OrganizationSnapshot]:
        try:
            guild = await self._rest.get_guild(org_id)
            channels = await self._rest.list_guild_channels(org_id)
        except DiscordPermanentError as exc:
            if exc.status_code in {403, 404}:
                log_event(
                    self._logger,
                    logging.INFO,
                    "discord.guild.unavailable",
                    org_id=org_id,
                    status_code=exc.status_code,
                )
                return None
            raise
        return snapshot_from_guild(guild, channels)
