from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

import pytest

from crossbot.commands.base import Command, CommandServices
from crossbot.commands.definitions import default_commands
from crossbot.commands.parser import CommandPipeline
from crossbot.commands.registry import CommandRegistry
from crossbot.core.guild_sync import ChannelInfo, GuildDirectory, OrganizationSnapshot
from crossbot.core.localization import LangManager, load_locale_tables
from crossbot.core.store import BotStore
from crossbot.integrations.chat.capabilities import ChatCapabilities
from crossbot.integrations.chat.testing import FakeChatSource, FakePermissions


def org_snapshot(source: str = "discord", org_id: str = "org-1") -> OrganizationSnapshot:
    channels = [
        ChannelInfo(channel_id="chan-1", name="general"),
        ChannelInfo(channel_id="chan-2", name="random"),
        ChannelInfo(channel_id="voice-1", name="Lounge", kind="voice"),
    ]
    return OrganizationSnapshot(
        source=source,
        org_id=org_id,
        name="Test Org",
        channels={channel.channel_id: channel for channel in channels},
    )


@dataclass
class PipelineHarness:
    pipeline: CommandPipeline
    services: CommandServices
    source: FakeChatSource
    store: BotStore
    directory: GuildDirectory


@pytest.fixture()
def harness(store: BotStore):
    def _build(
        *,
        granted: Iterable[str] = (),
        source_name: str = "discord",
        role_ids: Iterable[str] = (),
        commands: Optional[Iterable[Command]] = None,
        extra_strings: Optional[Mapping[str, Any]] = None,
        history_page_limit: int = 50,
        with_snapshot: bool = True,
        scheduler: Any = None,
    ) -> PipelineHarness:
        tables = load_locale_tables()
        if extra_strings:
            tables["en"] = {**tables["en"], **extra_strings}
        directory = GuildDirectory()
        if with_snapshot:
            directory.put(org_snapshot(source_name))
        services = CommandServices(
            lang_manager=LangManager(default_locale="en", store=store, tables=tables),
            store=store,
            directory=directory,
            scheduler=scheduler,
        )
        registry = CommandRegistry(
            list(commands) if commands is not None else default_commands()
        )
        source = FakeChatSource(
            name=source_name,
            capabilities=ChatCapabilities(
                max_text_length=2000,
                supports_bulk_delete=True,
                history_page_limit=history_page_limit,
            ),
            permissions=FakePermissions(granted, role_ids=list(role_ids)),
        )
        pipeline = CommandPipeline(services=services, registry=registry)
        return PipelineHarness(
            pipeline=pipeline,
            services=services,
            source=source,
            store=store,
            directory=directory,
        )

    return _build
