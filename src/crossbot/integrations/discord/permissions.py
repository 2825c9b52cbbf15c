"""Native Discord permission computation.

Follows the documented algorithm: the base from @everyone and member roles,
then channel overwrites for @everyone, roles and the member. Owners and
ADMINISTRATOR holders get everything.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from ...core.guild_sync import ChannelInfo, OrganizationSnapshot
from ...core.logging_utils import log_event
from ..chat.models import ChatMessage
from .constants import ALL_PERMISSIONS, PERMISSION_BITS

if TYPE_CHECKING:
    from .source import DiscordSource

logger = logging.getLogger(__name__)

ADMINISTRATOR = PERMISSION_BITS["ADMINISTRATOR"]


def compute_base_permissions(
    snapshot: OrganizationSnapshot, user_id: str, role_ids: Iterable[str]
) -> int:
    if snapshot.owner_id is not None and snapshot.owner_id == user_id:
        return ALL_PERMISSIONS
    everyone = snapshot.roles.get(snapshot.org_id)
    permissions = everyone.permissions if everyone else 0
    for role_id in role_ids:
        role = snapshot.roles.get(role_id)
        if role is not None:
            permissions |= role.permissions
    if permissions & ADMINISTRATOR:
        return ALL_PERMISSIONS
    return permissions


def compute_overwrites(
    base: int,
    *,
    snapshot: OrganizationSnapshot,
    channel: Optional[ChannelInfo],
    user_id: str,
    role_ids: Iterable[str],
) -> int:
    if base & ADMINISTRATOR or base == ALL_PERMISSIONS:
        return ALL_PERMISSIONS
    if channel is None:
        return base
    permissions = base
    overwrites = {overwrite.target_id: overwrite for overwrite in channel.overwrites}

    everyone = overwrites.get(snapshot.org_id)
    if everyone is not None:
        permissions &= ~everyone.deny
        permissions |= everyone.allow

    allow = 0
    deny = 0
    for role_id in role_ids:
        overwrite = overwrites.get(role_id)
        if overwrite is not None and overwrite.target_kind == "role":
            allow |= overwrite.allow
            deny |= overwrite.deny
    permissions &= ~deny
    permissions |= allow

    member = overwrites.get(user_id)
    if member is not None and member.target_kind == "member":
        permissions &= ~member.deny
        permissions |= member.allow
    return permissions


def has_permission(permissions: int, permission: str) -> bool:
    bit = PERMISSION_BITS.get(permission)
    if bit is None:
        return False
    return permissions & bit == bit


class DiscordPermissions:
    def __init__(self, source: "DiscordSource") -> None:
        self._source = source

    async def get_member_role_ids(self, message: ChatMessage) -> Sequence[str]:
        if message.member_role_ids or message.org_id is None:
            return list(message.member_role_ids)
        member = await self._source.rest.get_guild_member(message.org_id, message.user_id)
        roles = member.get("roles")
        return [str(role) for role in roles] if isinstance(roles, list) else []

    async def has_permission_in_channel(
        self, message: ChatMessage, permission: str
    ) -> bool:
        if message.org_id is None:
            return False
        snapshot = await self._source.get_snapshot(message.org_id)
        if snapshot is None:
            log_event(
                logger,
                logging.WARNING,
                "discord.permissions.no_snapshot",
                org_id=message.org_id,
            )
            return False
        role_ids = await self.get_member_role_ids(message)
        base = compute_base_permissions(snapshot, message.user_id, role_ids)
        channel = snapshot.channel(message.channel_id) if message.channel_id else None
        effective = compute_overwrites(
            base,
            snapshot=snapshot,
            channel=channel,
            user_id=message.user_id,
            role_ids=role_ids,
        )
        return has_permission(effective, permission)
