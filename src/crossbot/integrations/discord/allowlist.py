from __future__ import annotations

from dataclasses import dataclass

from ..chat.models import ChatMessage


@dataclass(frozen=True)
class DiscordAllowlist:
    allowed_guild_ids: frozenset[str]
    allowed_channel_ids: frozenset[str]
    allowed_user_ids: frozenset[str]

    @property
    def is_open(self) -> bool:
        return (
            not self.allowed_guild_ids
            and not self.allowed_channel_ids
            and not self.allowed_user_ids
        )


def allowlist_allows(message: ChatMessage, allowlist: DiscordAllowlist) -> bool:
    """An empty allowlist admits everything; each non-empty set must match.

    Guild and channel restrictions only apply to guild messages, so direct
    messages are filtered by the user set alone.
    """

    if allowlist.is_open:
        return True
    if allowlist.allowed_user_ids and message.user_id not in allowlist.allowed_user_ids:
        return False
    if message.is_private:
        return True
    if allowlist.allowed_guild_ids and message.org_id not in allowlist.allowed_guild_ids:
        return False
    if (
        allowlist.allowed_channel_ids
        and message.channel_id not in allowlist.allowed_channel_ids
    ):
        return False
    return True
