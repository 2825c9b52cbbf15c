from __future__ import annotations

from typing import Iterable, Optional

from ..core.localization import Lang, LangManager
from .base import Command


class CommandRegistry:
    """All command definitions known to the process.

    Names are resolved per locale because command names and aliases are
    localized.
    """

    def __init__(self, commands: Iterable[Command]) -> None:
        self._commands: dict[str, Command] = {}
        for command in commands:
            if not command.name:
                raise ValueError(f"{command!r} has no name")
            if command.name in self._commands:
                raise ValueError(f"Duplicate command definition: {command.name}")
            self._commands[command.name] = command
        self._name_cache: dict[tuple[str, str], dict[str, Command]] = {}

    def __iter__(self):
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def for_source(self, source_name: str, *, private: bool = False) -> list[Command]:
        return [
            command
            for command in self._commands.values()
            if command.supports(source_name) and (command.allow_private or not private)
        ]

    def find(
        self,
        token: str,
        lang: Lang,
        source_name: str,
        *,
        private: bool = False,
    ) -> Optional[Command]:
        names = self._names_for(lang, source_name)
        command = names.get(token.casefold())
        if command is None:
            return None
        if private and not command.allow_private:
            return None
        return command

    def _names_for(self, lang: Lang, source_name: str) -> dict[str, Command]:
        key = (lang.locale, source_name)
        cached = self._name_cache.get(key)
        if cached is not None:
            return cached
        names: dict[str, Command] = {}
        for command in self.for_source(source_name):
            for name in command.localized_names(lang):
                names.setdefault(name, command)
        self._name_cache[key] = names
        return names

    def check_aliases(self, lang_manager: LangManager) -> list[str]:
        """Report name and argument-alias collisions for every locale."""

        problems: list[str] = []
        for locale in lang_manager.available_locales():
            lang = lang_manager.get(locale)
            sources = sorted({name for cmd in self for name in cmd.sources})
            for source_name in sources:
                seen: dict[str, str] = {}
                for command in self.for_source(source_name):
                    for name in command.localized_names(lang):
                        other = seen.get(name)
                        if other is not None and other != command.name:
                            problems.append(
                                f"[{locale}/{source_name}] command name {name!r} "
                                f"is used by {other} and {command.name}"
                            )
                        seen[name] = command.name
            for command in self:
                arg_names: set[str] = set()
                aliases: dict[str, str] = {}
                for arg in command.args:
                    if arg.name in arg_names:
                        problems.append(
                            f"[{command.name}] duplicate argument {arg.name!r}"
                        )
                    arg_names.add(arg.name)
                    for alias in arg.aliases(lang):
                        other = aliases.get(alias)
                        if other is not None and other != arg.name:
                            problems.append(
                                f"[{locale}/{command.name}] alias {alias!r} is used "
                                f"by {other} and {arg.name}"
                            )
                        aliases[alias] = arg.name
        return problems
