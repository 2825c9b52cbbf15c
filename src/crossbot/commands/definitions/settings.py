from __future__ import annotations

from ...integrations.chat.source import ChatSource
from ..arg_def import CommandArgDef, ValidationRule
from ..base import Command, CommandInvocation
from ..scanners import simple_scanner

LOCALE_ARG = CommandArgDef(
    "locale",
    simple_scanner,
    "commands.setlocale.args.locale",
    rules=frozenset({ValidationRule.NON_NULL}),
)


class SetLocaleCommand(Command):
    name = "setlocale"
    args = (LOCALE_ARG,)
    sources = frozenset({"discord", "slack"})
    native_permissions = {"discord": ("ADMINISTRATOR",), "slack": ("ADMINISTRATOR",)}
    exclusive = True

    async def run_common(self, invocation: CommandInvocation, source: ChatSource) -> str:
        lang_manager = invocation.services.lang_manager
        locale = str(invocation.values["locale"]).strip().lower()
        if not lang_manager.has_locale(locale):
            return invocation.lang.get_string(
                "commands.setlocale.unknown_locale",
                locale,
                ", ".join(lang_manager.available_locales()),
            )
        org_id = invocation.org_id
        assert org_id is not None
        await lang_manager.set_org_locale(source.name, org_id, locale)
        return lang_manager.get(locale).get_string("commands.setlocale.success", locale)
