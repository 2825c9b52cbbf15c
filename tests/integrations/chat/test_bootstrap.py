from __future__ import annotations

import asyncio
import logging

import pytest

from crossbot.integrations.chat.bootstrap import (
    ChatBootstrapStep,
    run_chat_bootstrap_steps,
)


@pytest.mark.anyio
async def test_run_chat_bootstrap_steps_continues_on_optional_failure(
    caplog: pytest.LogCaptureFixture,
) -> None:
    calls: list[str] = []

    async def _optional_fail() -> None:
        calls.append("optional")
        raise RuntimeError("optional failure")

    async def _required_ok() -> None:
        calls.append("required")

    logger = logging.getLogger("test.chat.bootstrap")
    with caplog.at_level(logging.INFO):
        report = await run_chat_bootstrap_steps(
            platform="chat",
            logger=logger,
            steps=(
                ChatBootstrapStep(
                    name="optional_step", action=_optional_fail, required=False
                ),
                ChatBootstrapStep(name="required_step", action=_required_ok),
            ),
        )

    assert calls == ["optional", "required"]
    assert report.skipped == ["optional_step"]
    assert report.completed == ["required_step"]
    assert "chat.bootstrap.step_failed" in caplog.text
    assert "chat.bootstrap.step_ok" in caplog.text


@pytest.mark.anyio
async def test_run_chat_bootstrap_steps_raises_on_required_failure() -> None:
    calls: list[str] = []

    async def _required_fail() -> None:
        calls.append("required")
        raise RuntimeError("required failure")

    async def _never_runs() -> None:
        calls.append("after")

    with pytest.raises(RuntimeError, match="required failure"):
        await run_chat_bootstrap_steps(
            platform="chat",
            logger=logging.getLogger("test.chat.bootstrap"),
            steps=(
                ChatBootstrapStep(name="required_step", action=_required_fail),
                ChatBootstrapStep(name="after_step", action=_never_runs),
            ),
        )

    assert calls == ["required"]


@pytest.mark.anyio
async def test_run_chat_bootstrap_steps_times_out_slow_steps() -> None:
    async def _slow() -> None:
        await asyncio.sleep(10)

    report = await run_chat_bootstrap_steps(
        platform="chat",
        logger=logging.getLogger("test.chat.bootstrap"),
        steps=(
            ChatBootstrapStep(
                name="slow_step", action=_slow, required=False, timeout_seconds=0.01
            ),
        ),
    )

    assert report.skipped == ["slow_step"]
    assert report.completed == []
