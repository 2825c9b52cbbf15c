"""Normalized chat-domain models used by adapter-layer components.

This module lives in the adapter layer (`integrations/chat`) and contains
platform-agnostic message types only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ChatMessage:
    """Canonical view of one inbound user message.

    `org_id` and `channel_id` are both None for private messages; replies then
    go to `reply_channel_id` (the DM channel on Discord, the IM on Slack).
    """

    source: str
    org_id: Optional[str]
    channel_id: Optional[str]
    user_id: str
    content: str
    message_id: str
    reply_channel_id: str
    created_at: datetime
    member_role_ids: tuple[str, ...] = field(default_factory=tuple)
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if (self.org_id is None) != (self.channel_id is None):
            raise ValueError(
                "org_id and channel_id must both be set or both be None"
            )
        if not isinstance(self.content, str):
            raise TypeError("content must be a string")

    @property
    def is_private(self) -> bool:
        return self.org_id is None


@dataclass(frozen=True)
class SentMessage:
    """A message fetched back from a channel history."""

    message_id: str
    channel_id: str
    author_id: Optional[str]
    content: str
    created_at: datetime
