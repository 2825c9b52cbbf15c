"""Slack has no role bitfields; native permissions map onto workspace admin status."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from ..chat.models import ChatMessage

if TYPE_CHECKING:
    from .source import SlackSource

# Native permission names satisfied by workspace admins and owners.
ADMIN_PERMISSIONS = frozenset({"ADMINISTRATOR", "MANAGE_MESSAGES"})


def is_workspace_admin(user: dict) -> bool:
    return bool(user.get("is_admin") or user.get("is_owner") or user.get("is_primary_owner"))


class SlackPermissions:
    def __init__(self, source: "SlackSource") -> None:
        self._source = source

    async def get_member_role_ids(self, message: ChatMessage) -> Sequence[str]:
        return []

    async def has_permission_in_channel(
        self, message: ChatMessage, permission: str
    ) -> bool:
        if message.org_id is None or permission not in ADMIN_PERMISSIONS:
            return False
        user = await self._source.web.users_info(message.user_id)
        return is_workspace_admin(user)
