"""Slack Events API payload normalization."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ...core.time_utils import from_epoch_seconds
from ..chat.models import ChatMessage, SentMessage

SLACK_SOURCE = "slack"

PRIVATE_CHANNEL_TYPES = frozenset({"im", "mpim"})

_LEADING_MENTION_RE = re.compile(r"^\s*<@([A-Z0-9]+)(?:\|[^>]*)?>\s*")


def ts_to_datetime(ts: object) -> datetime:
    return from_epoch_seconds(ts) or datetime.now(timezone.utc)


def strip_bot_mention(text: str, bot_user_id: Optional[str]) -> str:
    """Drop a leading `<@BOT>` so `@bot !help` reads as `!help`."""

    if not bot_user_id:
        return text
    match = _LEADING_MENTION_RE.match(text)
    if match and match.group(1) == bot_user_id:
        return text[match.end() :]
    return text


def normalize_event(
    envelope: Mapping[str, Any], *, bot_user_id: Optional[str] = None
) -> Optional[ChatMessage]:
    """Build a `ChatMessage` from an `event_callback` envelope.

    Edits, joins, bot posts and the bot's own messages are ignored.
    """

    event = envelope.get("event")
    if not isinstance(event, Mapping) or event.get("type") != "message":
        return None
    if event.get("subtype") or event.get("bot_id"):
        return None
    user_id = event.get("user")
    channel = event.get("channel")
    ts = event.get("ts")
    if not user_id or not channel or not ts:
        return None
    if bot_user_id and user_id == bot_user_id:
        return None

    team_id = event.get("team") or envelope.get("team_id")
    private = event.get("channel_type") in PRIVATE_CHANNEL_TYPES or not team_id
    text = event.get("text")
    content = strip_bot_mention(text if isinstance(text, str) else "", bot_user_id)
    raw = dict(event)
    if team_id:
        raw.setdefault("team", team_id)
    return ChatMessage(
        source=SLACK_SOURCE,
        org_id=None if private else str(team_id),
        channel_id=None if private else str(channel),
        user_id=str(user_id),
        content=content,
        message_id=str(ts),
        reply_channel_id=str(channel),
        created_at=ts_to_datetime(ts),
        raw=raw,
    )


def to_sent_message(item: Mapping[str, Any], channel_id: str) -> SentMessage:
    author = item.get("user") or item.get("bot_id")
    text = item.get("text")
    return SentMessage(
        message_id=str(item.get("ts")),
        channel_id=channel_id,
        author_id=str(author) if author else None,
        content=text if isinstance(text, str) else "",
        created_at=ts_to_datetime(item.get("ts")),
    )
