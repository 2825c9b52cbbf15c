from __future__ import annotations

from ...core.localization import Lang
from ...integrations.chat.source import ChatSource
from ..arg_def import CommandArgDef
from ..base import Command, CommandInvocation
from ..scanners import simple_scanner

COMMAND_ARG = CommandArgDef(
    "command",
    simple_scanner,
    "commands.help.args.command",
)


class HelpCommand(Command):
    """Lists the commands available here, or describes one of them."""

    name = "help"
    args = (COMMAND_ARG,)
    sources = frozenset({"discord", "slack"})
    allow_private = True

    async def run_common(self, invocation: CommandInvocation, source: ChatSource) -> str:
        services = invocation.services
        registry = services.registry
        if registry is None:
            return ""
        lang = invocation.lang
        prefix = services.command_prefix
        private = invocation.message.is_private

        wanted = invocation.get("command")
        if wanted:
            name = str(wanted)
            if name.startswith(prefix):
                name = name[len(prefix):]
            command = registry.find(name, lang, source.name, private=private)
            if command is None:
                return lang.get_string("commands.help.unknown_command", name)
            return describe_command(command, lang, prefix)

        lines = [lang.get_string("commands.help.header", prefix)]
        for command in registry.for_source(source.name, private=private):
            lines.append(
                lang.get_string(
                    "commands.help.command_line",
                    prefix,
                    command.localized_name(lang),
                    command.help_text(lang),
                )
            )
        return "\n".join(lines)


def describe_command(command: Command, lang: Lang, prefix: str) -> str:
    lines = [
        lang.get_string(
            "commands.help.command_line",
            prefix,
            command.localized_name(lang),
            command.help_text(lang),
        )
    ]
    if command.args:
        lines.append(lang.get_string("commands.help.args_header"))
        for arg in command.args:
            lines.append(
                lang.get_string(
                    "commands.help.arg_line",
                    arg.display_name(lang),
                    ", ".join(arg.aliases(lang)),
                    lang.get_string(arg.help_id),
                )
            )
    return "\n".join(lines)
