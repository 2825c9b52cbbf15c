from __future__ import annotations

import logging
from pathlib import Path

import pytest

from crossbot.commands.parser import ParseState
from crossbot.core.config import BotConfig
from crossbot.integrations.chat.testing import FakeChatSource, make_message
from crossbot.runtime import BotRuntime

LOGGER = logging.getLogger("test.runtime")


def _config(tmp_path: Path, **raw) -> BotConfig:
    return BotConfig.from_raw(root=tmp_path, raw={"guild_sync": {"enabled": False}, **raw})


@pytest.mark.anyio
async def test_non_commands_reach_fall_through_hook(store, tmp_path: Path) -> None:
    seen: list[str] = []

    async def fall_through(message, source) -> None:
        seen.append(message.content)

    runtime = BotRuntime(_config(tmp_path), logger=LOGGER, store=store, fall_through=fall_through)
    source = FakeChatSource()

    chatter = await runtime.handle_message(make_message("good morning"), source)
    command = await runtime.handle_message(make_message("!help", message_id="m2"), source)

    assert chatter.state is ParseState.NOT_A_COMMAND
    assert command.state is ParseState.REPLIED
    assert seen == ["good morning"]


@pytest.mark.anyio
async def test_fall_through_failure_is_logged(
    store, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    async def fall_through(message, source) -> None:
        raise RuntimeError("hook broke")

    runtime = BotRuntime(_config(tmp_path), logger=LOGGER, store=store, fall_through=fall_through)

    with caplog.at_level(logging.ERROR):
        result = await runtime.handle_message(make_message("hello"), FakeChatSource())

    assert result.state is ParseState.NOT_A_COMMAND
    assert "runtime.fall_through.failed" in caplog.text


@pytest.mark.anyio
async def test_custom_prefix_and_locale(store, tmp_path: Path) -> None:
    runtime = BotRuntime(
        _config(tmp_path, command_prefix="?", default_locale="ru"), logger=LOGGER, store=store
    )
    source = FakeChatSource()

    ignored = await runtime.handle_message(make_message("!помощь"), source)
    answered = await runtime.handle_message(make_message("?помощь", message_id="m2"), source)

    assert ignored.state is ParseState.NOT_A_COMMAND
    assert answered.reply.splitlines()[0] == "Доступные команды (префикс ?):"


@pytest.mark.anyio
async def test_start_and_close(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    runtime = BotRuntime(_config(tmp_path), logger=LOGGER)

    with caplog.at_level(logging.INFO):
        await runtime.start()
        await runtime.start()
        await runtime.close()

    assert runtime.check_aliases() == []
    assert caplog.text.count("runtime.started") == 1
    assert runtime.store.path.exists()
