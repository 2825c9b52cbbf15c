"""In-memory source fakes for exercising the command pipeline in tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from .capabilities import ChatCapabilities
from .errors import ChatSourceTransientError
from .models import ChatMessage, SentMessage

if TYPE_CHECKING:
    from ...commands.base import CommandInvocation


class FakePermissions:
    """Grants exactly the native permissions it was given."""

    def __init__(
        self,
        granted: Iterable[str] = (),
        *,
        role_ids: Sequence[str] = (),
    ) -> None:
        self.granted = set(granted)
        self.role_ids = list(role_ids)
        self.checked: list[tuple[str, str]] = []

    async def has_permission_in_channel(
        self, message: ChatMessage, permission: str
    ) -> bool:
        self.checked.append((message.user_id, permission))
        return permission in self.granted

    async def get_member_role_ids(self, message: ChatMessage) -> Sequence[str]:
        return list(self.role_ids) or list(message.member_role_ids)


class FakeChatSource:
    """Chat source backed by per-channel message lists (newest first on fetch)."""

    def __init__(
        self,
        *,
        name: str = "discord",
        capabilities: Optional[ChatCapabilities] = None,
        permissions: Optional[FakePermissions] = None,
    ) -> None:
        self._name = name
        self._capabilities = capabilities or ChatCapabilities(
            max_text_length=2000, supports_bulk_delete=True
        )
        self._permissions = permissions or FakePermissions()
        self.history: dict[str, list[SentMessage]] = {}
        self.sent: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, tuple[str, ...]]] = []
        self.fetches: list[tuple[str, int, Optional[str]]] = []
        self.executed: list[str] = []
        self.fail_sends = False
        self.fail_fetches = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def capabilities(self) -> ChatCapabilities:
        return self._capabilities

    @property
    def permissions(self) -> FakePermissions:
        return self._permissions

    def add_history(self, channel_id: str, messages: Iterable[SentMessage]) -> None:
        self.history.setdefault(channel_id, []).extend(messages)

    @property
    def sent_texts(self) -> list[str]:
        return [text for _, text in self.sent]

    async def send_text(self, channel_id: str, text: str) -> None:
        if self.fail_sends:
            raise ChatSourceTransientError("send failed")
        self.sent.append((channel_id, text))

    async def fetch_messages(
        self, channel_id: str, *, limit: int, before: Optional[str] = None
    ) -> list[SentMessage]:
        self.fetches.append((channel_id, limit, before))
        if self.fail_fetches:
            raise ChatSourceTransientError("fetch failed")
        ordered = sorted(
            self.history.get(channel_id, []),
            key=lambda item: item.created_at,
            reverse=True,
        )
        if before is not None:
            cursor = next(
                (item for item in ordered if item.message_id == before), None
            )
            if cursor is not None:
                ordered = [item for item in ordered if item.created_at < cursor.created_at]
        return ordered[:limit]

    async def delete_messages(
        self, channel_id: str, message_ids: Sequence[str]
    ) -> None:
        doomed = set(message_ids)
        self.deleted.append((channel_id, tuple(message_ids)))
        self.history[channel_id] = [
            item
            for item in self.history.get(channel_id, [])
            if item.message_id not in doomed
        ]

    async def execute(self, invocation: "CommandInvocation") -> str:
        self.executed.append(invocation.command.name)
        handler = invocation.command.handler_for(self.name)
        return await handler(invocation, self)


def make_message(
    content: str,
    *,
    source: str = "discord",
    org_id: Optional[str] = "org-1",
    channel_id: Optional[str] = "chan-1",
    user_id: str = "user-1",
    message_id: str = "msg-1",
    created_at: Optional[datetime] = None,
    member_role_ids: Sequence[str] = (),
) -> ChatMessage:
    return ChatMessage(
        source=source,
        org_id=org_id,
        channel_id=channel_id,
        user_id=user_id,
        content=content,
        message_id=message_id,
        reply_channel_id=channel_id or f"dm-{user_id}",
        created_at=created_at or datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc),
        member_role_ids=tuple(member_role_ids),
    )
