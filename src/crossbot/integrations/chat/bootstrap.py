"""Startup steps a chat source runs before it starts receiving messages.

A required step that fails aborts startup; an optional one is logged and
recorded as skipped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

from ...core.logging_utils import log_event

BootstrapAction = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ChatBootstrapStep:
    name: str
    action: BootstrapAction
    required: bool = True
    timeout_seconds: Optional[float] = None


@dataclass
class BootstrapReport:
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


async def run_chat_bootstrap_steps(
    *,
    platform: str,
    logger: logging.Logger,
    steps: Iterable[ChatBootstrapStep],
) -> BootstrapReport:
    report = BootstrapReport()
    for step in steps:
        started = time.monotonic()
        try:
            if step.timeout_seconds is None:
                await step.action()
            else:
                await asyncio.wait_for(step.action(), timeout=step.timeout_seconds)
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR if step.required else logging.WARNING,
                f"{platform}.bootstrap.step_failed",
                step=step.name,
                required=step.required,
                elapsed_ms=_elapsed_ms(started),
                exc=exc,
            )
            if step.required:
                raise
            report.skipped.append(step.name)
            continue
        report.completed.append(step.name)
        log_event(
            logger,
            logging.INFO,
            f"{platform}.bootstrap.step_ok",
            step=step.name,
            elapsed_ms=_elapsed_ms(started),
        )
    return report


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
