"""Source capability protocols and shared reply delivery.

A source is one platform integration. The command pipeline only talks to
sources through `ChatSource` and `SourcePermissions`, so one implementation
per platform is selected at startup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Protocol, Sequence, runtime_checkable

from ...core.logging_utils import log_event
from .capabilities import ChatCapabilities
from .models import ChatMessage, SentMessage
from .text_chunking import split_text

if TYPE_CHECKING:
    from ...commands.base import CommandInvocation


@runtime_checkable
class SourcePermissions(Protocol):
    """Native permission queries for one platform."""

    async def has_permission_in_channel(
        self, message: ChatMessage, permission: str
    ) -> bool: ...

    async def get_member_role_ids(self, message: ChatMessage) -> Sequence[str]: ...


@runtime_checkable
class ChatSource(Protocol):
    """Per-platform capability set used by the command pipeline."""

    @property
    def name(self) -> str: ...

    @property
    def capabilities(self) -> ChatCapabilities: ...

    @property
    def permissions(self) -> SourcePermissions: ...

    async def send_text(self, channel_id: str, text: str) -> None: ...

    async def fetch_messages(
        self, channel_id: str, *, limit: int, before: Optional[str] = None
    ) -> list[SentMessage]: ...

    async def delete_messages(
        self, channel_id: str, message_ids: Sequence[str]
    ) -> None: ...

    async def execute(self, invocation: "CommandInvocation") -> str: ...


async def deliver_reply(
    source: ChatSource,
    channel_id: str,
    text: str,
    *,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Chunk `text` by the source limit and send every chunk concurrently.

    Failed chunks are logged and not retried. Returns the number of chunks
    that were delivered.
    """

    chunks = split_text(text, max_len=source.capabilities.max_text_length)
    if not chunks:
        return 0
    log = logger or logging.getLogger(__name__)
    results = await asyncio.gather(
        *(source.send_text(channel_id, chunk) for chunk in chunks),
        return_exceptions=True,
    )
    delivered = 0
    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            log_event(
                log,
                logging.WARNING,
                "chat.reply.chunk_failed",
                source=source.name,
                channel_id=channel_id,
                chunk_index=index,
                chunk_count=len(chunks),
                exc=result,
            )
            continue
        delivered += 1
    return delivered
