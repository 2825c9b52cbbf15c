"""Command definitions and the per-message bound invocation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Mapping,
    Optional,
)

from ..core.exceptions import PermanentError
from ..core.guild_sync import GuildDirectory, GuildSyncScheduler
from ..core.localization import Lang, LangManager
from ..core.store import BotStore
from ..integrations.chat.models import ChatMessage
from ..integrations.chat.source import ChatSource
from .arg_def import CommandArgDef
from .permissions import CommandPermissionFilter, PermissionResolver

if TYPE_CHECKING:
    from .registry import CommandRegistry

CommandHandler = Callable[["CommandInvocation", Any], Awaitable[str]]


class CommandLocks:
    """Per-(source, organization, command) mutual exclusion."""

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str, str], asyncio.Lock] = {}

    def get(self, source: str, org_id: Optional[str], command: str) -> asyncio.Lock:
        key = (source, org_id or "-", command)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


@dataclass
class CommandServices:
    """Shared runtime collaborators handed to every command invocation."""

    lang_manager: LangManager
    store: Optional[BotStore] = None
    directory: GuildDirectory = field(default_factory=GuildDirectory)
    scheduler: Optional[GuildSyncScheduler] = None
    command_prefix: str = "!"
    locks: CommandLocks = field(default_factory=CommandLocks)
    registry: Optional["CommandRegistry"] = None
    resolver: PermissionResolver = field(init=False)

    def __post_init__(self) -> None:
        self.resolver = PermissionResolver(self.store)

    def require_store(self) -> BotStore:
        if self.store is None:
            raise PermanentError("This command needs persistent storage")
        return self.store


@dataclass(frozen=True)
class CommandInvocation:
    """A command bound to scanned, validated and authorized argument values."""

    command: "Command"
    message: ChatMessage
    source: ChatSource
    values: Mapping[str, Any]
    lang: Lang
    services: CommandServices

    @property
    def org_id(self) -> Optional[str]:
        return self.message.org_id

    def get(self, name: str, default: Any = None) -> Any:
        value = self.values.get(name)
        return default if value is None else value


class Command:
    """Base class for command definitions.

    Subclasses set `name` (the key under `commands.` in the locale tables),
    their ordered `args`, the sources they run on and their required
    permissions, then implement `run_<source>` or `run_common`.
    """

    name: ClassVar[str] = ""
    args: ClassVar[tuple[CommandArgDef, ...]] = ()
    sources: ClassVar[frozenset[str]] = frozenset()
    native_permissions: ClassVar[Mapping[str, tuple[str, ...]]] = {}
    bot_permissions: ClassVar[tuple[CommandPermissionFilter, ...]] = ()
    allow_private: ClassVar[bool] = False
    exclusive: ClassVar[bool] = False

    @property
    def string_prefix(self) -> str:
        return f"commands.{self.name}"

    def localized_name(self, lang: Lang) -> str:
        return lang.get_string(f"{self.string_prefix}.name")

    def localized_names(self, lang: Lang) -> tuple[str, ...]:
        names = [self.localized_name(lang)]
        names.extend(lang.get_list(f"{self.string_prefix}.aliases"))
        return tuple(dict.fromkeys(name.casefold() for name in names if name))

    def help_text(self, lang: Lang) -> str:
        return lang.get_string(f"{self.string_prefix}.help")

    def supports(self, source_name: str) -> bool:
        return source_name in self.sources

    def get_native_permissions(self, source_name: str) -> tuple[str, ...]:
        return tuple(self.native_permissions.get(source_name, ()))

    def default_value(
        self, arg: CommandArgDef, message: ChatMessage, services: CommandServices
    ) -> Any:
        return None

    def handler_for(self, source_name: str) -> CommandHandler:
        handler = getattr(self, f"run_{source_name}", None)
        if handler is None:
            handler = getattr(self, "run_common", None)
        if handler is None:
            raise PermanentError(
                f"Command {self.name!r} has no handler for source {source_name!r}"
            )
        return handler

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
