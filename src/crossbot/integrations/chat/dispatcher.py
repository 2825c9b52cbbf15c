"""Platform-agnostic message dispatcher.

Every accepted message is handled by its own asyncio task; handlers never
wait on each other. Dedupe and allowlist hooks run before the task is
spawned.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

from ...core.logging_utils import log_event
from .models import ChatMessage


@dataclass(frozen=True)
class DispatchContext:
    """Normalized dispatch metadata derived from an inbound message."""

    source: str
    org_id: Optional[str]
    channel_id: Optional[str]
    user_id: str
    message_id: str
    is_private: bool


@dataclass(frozen=True)
class DispatchResult:
    """Dispatch attempt result."""

    status: str
    context: DispatchContext


class DispatchPredicate(Protocol):
    """Hook protocol for allowlist/dedupe decisions."""

    def __call__(
        self, message: ChatMessage, context: DispatchContext
    ) -> Union[bool, Awaitable[bool]]: ...


DispatchHandler = Callable[[ChatMessage, DispatchContext], Awaitable[None]]


class ChatDispatcher:
    """Spawns one task per accepted message and tracks them until idle."""

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        allowlist_predicate: Optional[DispatchPredicate] = None,
        dedupe_predicate: Optional[DispatchPredicate] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._allowlist_predicate = allowlist_predicate
        self._dedupe_predicate = dedupe_predicate
        self._tasks: set[asyncio.Task[None]] = set()
        self._idle_event = asyncio.Event()
        self._idle_event.set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    async def dispatch(
        self, message: ChatMessage, handler: DispatchHandler
    ) -> DispatchResult:
        context = build_dispatch_context(message)
        log_event(
            self._logger,
            logging.DEBUG,
            "chat.dispatch.received",
            source=context.source,
            org_id=context.org_id,
            channel_id=context.channel_id,
            user_id=context.user_id,
            message_id=context.message_id,
        )
        if self._dedupe_predicate is not None:
            should_process = await _resolve_predicate(
                self._dedupe_predicate, message, context
            )
            if not should_process:
                log_event(
                    self._logger,
                    logging.INFO,
                    "chat.dispatch.duplicate",
                    source=context.source,
                    message_id=context.message_id,
                )
                return DispatchResult(status="duplicate", context=context)

        if self._allowlist_predicate is not None:
            allowed = await _resolve_predicate(
                self._allowlist_predicate, message, context
            )
            if not allowed:
                log_event(
                    self._logger,
                    logging.INFO,
                    "chat.dispatch.allowlist.denied",
                    source=context.source,
                    org_id=context.org_id,
                    channel_id=context.channel_id,
                    user_id=context.user_id,
                )
                return DispatchResult(status="denied", context=context)

        task = asyncio.create_task(self._run_handler(message, context, handler))
        self._tasks.add(task)
        self._idle_event.clear()
        task.add_done_callback(self._on_task_done)
        return DispatchResult(status="dispatched", context=context)

    async def wait_idle(self) -> None:
        """Wait until no handler tasks remain."""

        await self._idle_event.wait()

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if not self._tasks:
            self._idle_event.set()

    async def _run_handler(
        self,
        message: ChatMessage,
        context: DispatchContext,
        handler: DispatchHandler,
    ) -> None:
        try:
            await handler(message, context)
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "chat.dispatch.handler.failed",
                source=context.source,
                message_id=context.message_id,
                exc=exc,
            )


def build_dispatch_context(message: ChatMessage) -> DispatchContext:
    """Build a normalized dispatch context from a message."""

    return DispatchContext(
        source=message.source,
        org_id=message.org_id,
        channel_id=message.channel_id,
        user_id=message.user_id,
        message_id=message.message_id,
        is_private=message.is_private,
    )


class RecentMessageIds:
    """Bounded memory of recently seen message ids, usable as a dedupe hook."""

    def __init__(self, capacity: int = 1024) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._seen: dict[str, None] = {}

    def __call__(self, message: ChatMessage, context: DispatchContext) -> bool:
        key = f"{message.source}:{message.message_id}"
        if key in self._seen:
            return False
        self._seen[key] = None
        while len(self._seen) > self._capacity:
            self._seen.pop(next(iter(self._seen)))
        return True


async def _resolve_predicate(
    predicate: DispatchPredicate,
    message: ChatMessage,
    context: DispatchContext,
) -> bool:
    result = predicate(message, context)
    if asyncio.iscoroutine(result):
        return bool(await result)
    return bool(result)
