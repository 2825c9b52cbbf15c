"""Discord payload normalization."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ...core.time_utils import parse_iso
from ..chat.models import ChatMessage, SentMessage
from .constants import DISCORD_EPOCH_MS

DISCORD_SOURCE = "discord"

# DEFAULT and REPLY message types are user-authored.
_USER_MESSAGE_TYPES = frozenset({0, 19})


def snowflake_timestamp(snowflake: object) -> Optional[datetime]:
    try:
        value = int(str(snowflake))
    except (TypeError, ValueError):
        return None
    millis = (value >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)


def _created_at(payload: Mapping[str, Any]) -> datetime:
    return (
        parse_iso(payload.get("timestamp"))
        or snowflake_timestamp(payload.get("id"))
        or datetime.now(timezone.utc)
    )


def normalize_message(payload: Mapping[str, Any]) -> Optional[ChatMessage]:
    """Build a `ChatMessage` from a MESSAGE_CREATE payload.

    Returns None for bot/webhook authors and system message types. A payload
    without `guild_id` is a direct message.
    """

    author = payload.get("author")
    if not isinstance(author, Mapping):
        return None
    if author.get("bot") or payload.get("webhook_id"):
        return None
    message_type = payload.get("type", 0)
    if message_type not in _USER_MESSAGE_TYPES:
        return None

    channel_id = payload.get("channel_id")
    message_id = payload.get("id")
    user_id = author.get("id")
    if not channel_id or not message_id or not user_id:
        return None

    guild_id = payload.get("guild_id")
    member = payload.get("member")
    role_ids: tuple[str, ...] = ()
    if isinstance(member, Mapping) and isinstance(member.get("roles"), list):
        role_ids = tuple(str(role) for role in member["roles"])

    content = payload.get("content")
    return ChatMessage(
        source=DISCORD_SOURCE,
        org_id=str(guild_id) if guild_id else None,
        channel_id=str(channel_id) if guild_id else None,
        user_id=str(user_id),
        content=content if isinstance(content, str) else "",
        message_id=str(message_id),
        reply_channel_id=str(channel_id),
        created_at=_created_at(payload),
        member_role_ids=role_ids,
        raw=dict(payload),
    )


def to_sent_message(payload: Mapping[str, Any], channel_id: str) -> SentMessage:
    author = payload.get("author")
    content = payload.get("content")
    return SentMessage(
        message_id=str(payload.get("id")),
        channel_id=channel_id,
        author_id=str(author.get("id")) if isinstance(author, Mapping) else None,
        content=content if isinstance(content, str) else "",
        created_at=_created_at(payload),
    )
