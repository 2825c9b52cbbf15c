"""Per-message command pipeline.

A normalized message moves through these states::

    RECEIVED -> NORMALIZED -> COMMAND_IDENTIFIED -> ARGS_SCANNED
      -> ARGS_VALIDATED -> PERMISSION_CHECKED -> EXECUTED -> REPLIED

and may stop early as NOT_A_COMMAND, REJECTED (user input or permission
problems, answered with a localized reply) or FAILED (platform or internal
errors). Nothing raised while processing escapes `CommandPipeline.process`.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from ..core.exceptions import TransientError
from ..core.localization import Lang
from ..core.logging_utils import log_event
from ..integrations.chat.models import ChatMessage
from ..integrations.chat.source import ChatSource, deliver_reply
from .base import Command, CommandInvocation, CommandServices
from .registry import CommandRegistry
from .scanners import ScanContext, ScanFailure
from .validation import ValidationFailure, is_missing, validate


class ParseState(str, enum.Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    COMMAND_IDENTIFIED = "command_identified"
    ARGS_SCANNED = "args_scanned"
    ARGS_VALIDATED = "args_validated"
    PERMISSION_CHECKED = "permission_checked"
    EXECUTED = "executed"
    REPLIED = "replied"
    REJECTED = "rejected"
    NOT_A_COMMAND = "not_a_command"
    FAILED = "failed"


@dataclass(frozen=True)
class ProcessResult:
    state: ParseState
    command: Optional[str] = None
    reply: Optional[str] = None
    reason: Optional[str] = None
    values: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_command(self) -> bool:
        return self.state is not ParseState.NOT_A_COMMAND


@dataclass(frozen=True)
class _Rejection:
    reason: str


def split_tokens(content: str) -> list[str]:
    return content.split()


class CommandPipeline:
    def __init__(
        self,
        *,
        services: CommandServices,
        registry: CommandRegistry,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._services = services
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)
        if services.registry is None:
            services.registry = registry

    @property
    def services(self) -> CommandServices:
        return self._services

    async def process(self, message: ChatMessage, source: ChatSource) -> ProcessResult:
        try:
            return await self._process(message, source)
        except TransientError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "pipeline.platform.failed",
                source=source.name,
                org_id=message.org_id,
                message_id=message.message_id,
                exc=exc,
            )
            return ProcessResult(state=ParseState.FAILED, reason=str(exc))
        except Exception as exc:
            log_event(
                self._logger,
                logging.CRITICAL,
                "pipeline.internal.failed",
                source=source.name,
                org_id=message.org_id,
                message_id=message.message_id,
                exc=exc,
            )
            lang = self._services.lang_manager.default
            reply = lang.get_string("pipeline.internal_error")
            await deliver_reply(source, message.reply_channel_id, reply, logger=self._logger)
            return ProcessResult(state=ParseState.FAILED, reply=reply, reason=str(exc))

    async def _process(self, message: ChatMessage, source: ChatSource) -> ProcessResult:
        tokens = split_tokens(message.content)
        token = self._command_token(tokens)
        if token is None:
            return ProcessResult(state=ParseState.NOT_A_COMMAND)

        services = self._services
        lang = await services.lang_manager.for_org(source.name, message.org_id)
        command = self._registry.find(token, lang, source.name)
        if command is None:
            return ProcessResult(state=ParseState.NOT_A_COMMAND)
        if message.is_private and not command.allow_private:
            return await self._reject(
                message,
                source,
                command,
                lang.get_string("pipeline.private_unsupported"),
            )

        snapshot = services.directory.get(source.name, message.org_id)
        if (
            snapshot is None
            and message.org_id is not None
            and services.scheduler is not None
        ):
            services.scheduler.request_sync(source.name, message.org_id)

        context = ScanContext(lang=lang, message=message, snapshot=snapshot)
        scanned = self.scan_arguments(command, tokens[1:], context)
        if isinstance(scanned, _Rejection):
            return await self._reject(message, source, command, scanned.reason)

        values = self._apply_defaults(command, message, scanned)
        for arg in command.args:
            checked = validate(values.get(arg.name), arg, lang)
            if isinstance(checked, ValidationFailure):
                reason = lang.get_string("pipeline.arg_problem", checked.describe(lang))
                return await self._reject(message, source, command, reason)

        decision = await services.resolver.is_authorized(message, command, source, values)
        if not decision.allowed:
            reason = lang.get_string(
                "pipeline.permission_denied",
                _permission_label(lang, decision.missing or ""),
            )
            log_event(
                self._logger,
                logging.INFO,
                "pipeline.command.denied",
                source=source.name,
                org_id=message.org_id,
                user_id=message.user_id,
                command=command.name,
                missing=decision.missing,
                axis=decision.axis,
            )
            return await self._reject(message, source, command, reason)

        invocation = CommandInvocation(
            command=command,
            message=message,
            source=source,
            values=values,
            lang=lang,
            services=services,
        )
        return await self._execute(invocation)

    def _command_token(self, tokens: Sequence[str]) -> Optional[str]:
        if not tokens:
            return None
        prefix = self._services.command_prefix
        first = tokens[0]
        if not first.startswith(prefix) or len(first) <= len(prefix):
            return None
        return first[len(prefix):]

    def scan_arguments(
        self,
        command: Command,
        tokens: Sequence[str],
        context: ScanContext,
    ) -> Union[dict[str, Any], _Rejection]:
        """Read `alias:value` tokens first, then fill the rest in declaration order."""

        lang = context.lang
        by_alias = {
            alias: arg for arg in command.args for alias in arg.aliases(lang)
        }
        named: dict[str, str] = {}
        remaining: list[str] = []
        for token in tokens:
            alias, sep, raw = token.partition(":")
            arg = by_alias.get(alias.casefold()) if sep else None
            if arg is None:
                remaining.append(token)
                continue
            named.setdefault(arg.name, raw)

        values: dict[str, Any] = {}
        for arg in command.args:
            if arg.name not in named:
                continue
            raw = named[arg.name]
            if raw == "":
                values[arg.name] = ""
                continue
            outcome = arg.scanner([raw], arg, context)
            if isinstance(outcome, ScanFailure):
                return self._scan_rejection(lang, outcome)
            values[arg.name] = outcome.value

        index = 0
        for arg in command.args:
            if arg.skip_in_sequential_read or arg.name in values:
                continue
            if index >= len(remaining):
                break
            outcome = arg.scanner(remaining[index:], arg, context)
            if isinstance(outcome, ScanFailure):
                return self._scan_rejection(lang, outcome)
            if outcome.consumed == 0:
                continue
            values[arg.name] = outcome.value
            index += outcome.consumed
        return values

    def _scan_rejection(self, lang: Lang, failure: ScanFailure) -> _Rejection:
        return _Rejection(lang.get_string("pipeline.arg_problem", failure.reason))

    def _apply_defaults(
        self, command: Command, message: ChatMessage, scanned: dict[str, Any]
    ) -> dict[str, Any]:
        values = dict(scanned)
        for arg in command.args:
            if not is_missing(values.get(arg.name)):
                continue
            default = command.default_value(arg, message, self._services)
            if default is not None or arg.name not in values:
                values[arg.name] = default
        return values

    async def _execute(self, invocation: CommandInvocation) -> ProcessResult:
        command = invocation.command
        message = invocation.message
        source = invocation.source
        lang = invocation.lang
        log_event(
            self._logger,
            logging.INFO,
            "pipeline.command.execute",
            source=source.name,
            org_id=message.org_id,
            user_id=message.user_id,
            command=command.name,
        )
        try:
            if command.exclusive:
                lock = self._services.locks.get(source.name, message.org_id, command.name)
                async with lock:
                    result = await source.execute(invocation)
            else:
                result = await source.execute(invocation)
        except TransientError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "pipeline.command.platform_failed",
                source=source.name,
                org_id=message.org_id,
                command=command.name,
                exc=exc,
            )
            reply = lang.get_string("pipeline.platform_failure")
            await deliver_reply(source, message.reply_channel_id, reply, logger=self._logger)
            return ProcessResult(
                state=ParseState.FAILED,
                command=command.name,
                reply=reply,
                reason=str(exc),
                values=dict(invocation.values),
            )
        except Exception as exc:
            log_event(
                self._logger,
                logging.CRITICAL,
                "pipeline.command.crashed",
                source=source.name,
                org_id=message.org_id,
                command=command.name,
                exc=exc,
            )
            reply = lang.get_string("pipeline.internal_error")
            await deliver_reply(source, message.reply_channel_id, reply, logger=self._logger)
            return ProcessResult(
                state=ParseState.FAILED,
                command=command.name,
                reply=reply,
                reason=str(exc),
                values=dict(invocation.values),
            )

        if not result:
            return ProcessResult(
                state=ParseState.EXECUTED,
                command=command.name,
                values=dict(invocation.values),
            )
        await deliver_reply(source, message.reply_channel_id, result, logger=self._logger)
        return ProcessResult(
            state=ParseState.REPLIED,
            command=command.name,
            reply=result,
            values=dict(invocation.values),
        )

    async def _reject(
        self,
        message: ChatMessage,
        source: ChatSource,
        command: Command,
        reason: str,
    ) -> ProcessResult:
        log_event(
            self._logger,
            logging.INFO,
            "pipeline.command.rejected",
            source=source.name,
            org_id=message.org_id,
            user_id=message.user_id,
            command=command.name,
            reason=reason,
        )
        await deliver_reply(source, message.reply_channel_id, reason, logger=self._logger)
        return ProcessResult(
            state=ParseState.REJECTED,
            command=command.name,
            reply=reason,
            reason=reason,
        )


def _permission_label(lang: Lang, permission: str) -> str:
    for string_id in (f"permissions.native.{permission}", f"permissions.types.{permission}"):
        if lang.has(string_id):
            return lang.get_string(string_id)
    return permission
