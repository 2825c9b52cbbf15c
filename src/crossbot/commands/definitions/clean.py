from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from ...core.guild_sync import ChannelInfo
from ...core.logging_utils import log_event
from ...integrations.chat.models import ChatMessage
from ...integrations.chat.source import ChatSource
from ..arg_def import CommandArgDef, ValidationRule
from ..base import Command, CommandInvocation, CommandServices
from ..scanners import TimeValue, channels_scanner, simple_scanner, time_scanner

logger = logging.getLogger(__name__)

TIME_ARG = CommandArgDef(
    "time",
    time_scanner,
    "commands.clean.args.time",
    rules=frozenset(
        {
            ValidationRule.NON_NULL,
            ValidationRule.TIME_DISTANCE_ONLY,
            ValidationRule.NON_ZERO_SHIFT,
        }
    ),
)
CHANNELS_ARG = CommandArgDef(
    "channels",
    channels_scanner,
    "commands.clean.args.channels",
    rules=frozenset({ValidationRule.VALID_TEXT_CHANNELS}),
    skip_in_sequential_read=True,
)
SILENT_ARG = CommandArgDef(
    "silent",
    simple_scanner,
    "commands.clean.args.silent",
    predefined={"commands.clean.args.silent.values": True},
)


def is_silent(value: Any) -> bool:
    return value is True or value == ""


class CleanCommand(Command):
    """Deletes messages newer than a time offset from text channels."""

    name = "clean"
    args = (TIME_ARG, CHANNELS_ARG, SILENT_ARG)
    sources = frozenset({"discord"})
    native_permissions = {"discord": ("MANAGE_MESSAGES",)}

    def default_value(
        self, arg: CommandArgDef, message: ChatMessage, services: CommandServices
    ) -> Any:
        if arg is not CHANNELS_ARG or message.channel_id is None:
            return None
        snapshot = services.directory.get(message.source, message.org_id)
        channel = snapshot.channel(message.channel_id) if snapshot else None
        if channel is None:
            channel = ChannelInfo(channel_id=message.channel_id, name=message.channel_id)
        return [channel]

    async def run_discord(self, invocation: CommandInvocation, source: ChatSource) -> str:
        message = invocation.message
        time_value: TimeValue = invocation.values["time"]
        channels: list[ChannelInfo] = invocation.get("channels", [])
        cutoff = time_value.cutoff(message.created_at)

        deleted = 0
        checked = 0
        for channel in channels:
            channel_deleted, channel_checked = await clean_channel(
                source, channel.channel_id, cutoff
            )
            deleted += channel_deleted
            checked += channel_checked

        log_event(
            logger,
            logging.INFO,
            "command.clean.done",
            source=source.name,
            org_id=message.org_id,
            deleted=deleted,
            checked=checked,
            channels=len(channels),
        )
        if is_silent(invocation.values.get("silent")):
            return ""
        if len(channels) > 1:
            return invocation.lang.get_string(
                "commands.clean.success_multi_channels", deleted, checked, len(channels)
            )
        return invocation.lang.get_string("commands.clean.success", deleted, checked)


async def clean_channel(
    source: ChatSource, channel_id: str, cutoff: datetime
) -> tuple[int, int]:
    """Delete messages created after `cutoff`, one history page at a time.

    Paging stops at the first page that is short or holds an older message.
    Returns (deleted, checked).
    """

    limit = source.capabilities.history_page_limit
    seen: set[str] = set()
    deleted = 0
    before = None
    while True:
        page = await source.fetch_messages(channel_id, limit=limit, before=before)
        if not page:
            break
        newer: list[str] = []
        reached_older = False
        fresh = 0
        for item in page:
            if item.message_id in seen:
                continue
            seen.add(item.message_id)
            fresh += 1
            if item.created_at > cutoff:
                newer.append(item.message_id)
            else:
                reached_older = True
        if newer:
            await source.delete_messages(channel_id, newer)
            deleted += len(newer)
        if reached_older or fresh == 0 or len(page) < limit:
            break
        before = min(page, key=lambda item: item.created_at).message_id
    return deleted, len(seen)
