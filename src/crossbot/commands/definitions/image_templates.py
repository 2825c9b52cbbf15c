from __future__ import annotations

from ...core.store import IMAGE_TEMPLATES_TABLE
from ...integrations.chat.source import ChatSource
from ..arg_def import CommandArgDef, ValidationRule
from ..base import Command, CommandInvocation
from ..permissions import CommandPermissionFilter, PermissionType
from ..scanners import array_scanner

IDS_ARG = CommandArgDef(
    "ids",
    array_scanner,
    "commands.deleteimagetemplate.args.ids",
    rules=frozenset({ValidationRule.NON_NULL, ValidationRule.IS_ARRAY}),
)


class DeleteImageTemplateCommand(Command):
    name = "deleteimagetemplate"
    args = (IDS_ARG,)
    sources = frozenset({"discord"})
    bot_permissions = (CommandPermissionFilter(PermissionType.IMAGETEMPLATE),)
    exclusive = True

    async def run_discord(self, invocation: CommandInvocation, source: ChatSource) -> str:
        store = invocation.services.require_store()
        org_id = invocation.org_id
        assert org_id is not None
        rows = await store.get_rows(IMAGE_TEMPLATES_TABLE, source.name, org_id)
        existing = {str(row.get("id")) for row in rows}
        to_delete = [
            template_id
            for template_id in dict.fromkeys(invocation.values["ids"])
            if template_id in existing
        ]
        if not to_delete:
            return invocation.lang.get_string("commands.deleteimagetemplate.no_ids_found")
        await store.delete_rows(
            IMAGE_TEMPLATES_TABLE, source.name, org_id, {"id": to_delete}
        )
        return invocation.lang.get_string(
            "commands.deleteimagetemplate.success", ", ".join(to_delete)
        )
