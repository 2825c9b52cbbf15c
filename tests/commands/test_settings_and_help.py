from __future__ import annotations

import pytest

from crossbot.commands.definitions import default_commands
from crossbot.commands.parser import ParseState
from crossbot.commands.registry import CommandRegistry
from crossbot.core.localization import LangManager
from crossbot.integrations.chat.testing import make_message


@pytest.mark.anyio
async def test_setlocale_switches_language_for_organization(harness) -> None:
    h = harness(granted={"ADMINISTRATOR", "MANAGE_MESSAGES"})

    changed = await h.pipeline.process(make_message("!setlocale RU"), h.source)
    localized = await h.pipeline.process(make_message("!очистить 5m т"), h.source)
    english = await h.pipeline.process(make_message("!clean 5m"), h.source)
    missing = await h.pipeline.process(make_message("!очистить"), h.source)

    assert changed.reply == "Теперь бот использует язык ru."
    assert localized.state is ParseState.EXECUTED
    assert localized.values["silent"] is True
    assert english.state is ParseState.REPLIED
    assert english.reply == "Удалено (0) из (0) проверенных сообщений."
    assert missing.reply == (
        "Извините, не удалось понять команду. Причина: "
        "Вы не указали значение для аргумента: время"
    )


@pytest.mark.anyio
async def test_setlocale_rejects_unknown_locale(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    result = await h.pipeline.process(make_message("!locale xx"), h.source)

    assert result.reply == "Unknown language xx. Available: en, ru"
    lang = await h.services.lang_manager.for_org("discord", "org-1")
    assert lang.locale == "en"


@pytest.mark.anyio
async def test_help_lists_commands_for_source(harness) -> None:
    h = harness()

    result = await h.pipeline.process(make_message("!help"), h.source)

    assert result.state is ParseState.REPLIED
    lines = result.reply.splitlines()
    assert lines[0] == "Available commands (prefix !):"
    assert lines[2] == (
        "!clean - Deletes recent messages newer than the given time offset. "
        "Example: !clean 10m"
    )
    assert len(lines) == 9


@pytest.mark.anyio
async def test_help_on_slack_omits_discord_only_commands(harness) -> None:
    h = harness(source_name="slack")

    result = await h.pipeline.process(make_message("!h", source="slack"), h.source)

    names = [line.split(" - ")[0] for line in result.reply.splitlines()[1:]]
    assert "!clean" not in names
    assert "!deleteimagetemplate" not in names
    assert "!createrole" in names


@pytest.mark.anyio
async def test_help_describes_one_command(harness) -> None:
    h = harness()

    described = await h.pipeline.process(make_message("!help !cl"), h.source)
    unknown = await h.pipeline.process(make_message("!help frobnicate"), h.source)

    assert described.reply.splitlines()[1:3] == [
        "Arguments:",
        "  time (time, t) - How far back to delete, like 10m, 2h or 1h30m.",
    ]
    assert unknown.reply == "There is no command named frobnicate."


@pytest.mark.anyio
async def test_help_in_private_lists_only_private_commands(harness) -> None:
    h = harness()

    result = await h.pipeline.process(
        make_message("!help", org_id=None, channel_id=None), h.source
    )

    assert result.reply == (
        "Available commands (prefix !):\n"
        "!help - Lists the commands or describes one of them."
    )


def test_default_command_names_do_not_collide() -> None:
    registry = CommandRegistry(default_commands())

    assert registry.check_aliases(LangManager(default_locale="en")) == []


def test_registry_rejects_duplicate_definitions() -> None:
    commands = default_commands()

    with pytest.raises(ValueError):
        CommandRegistry(commands + [commands[0]])
