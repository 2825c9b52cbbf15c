from __future__ import annotations

from typing import Any, Iterable

from ...core.store import PERMISSIONS_TABLE, ROLES_TABLE
from ...integrations.chat.source import ChatSource
from ..arg_def import CommandArgDef, ValidationRule
from ..base import Command, CommandInvocation
from ..permissions import PermissionType, SubjectType, build_permission_row
from ..scanners import array_scanner, simple_scanner

ROLES_ARG = CommandArgDef(
    "roles",
    array_scanner,
    "commands.createrole.args.roles",
    rules=frozenset({ValidationRule.NON_NULL, ValidationRule.IS_ARRAY}),
)
PARENT_ARG = CommandArgDef(
    "parent",
    simple_scanner,
    "commands.createrole.args.parent",
)


def role_id_for(role_name: str) -> str:
    return role_name.strip().casefold()


def build_role_row(source: str, org_id: str, role_name: str) -> dict[str, Any]:
    return {
        "id": role_id_for(role_name),
        "source": source,
        "org_id": org_id,
        "name": role_name,
    }


def unique_role_names(role_names: Iterable[str]) -> list[str]:
    """Drop names that differ from an earlier one only by case."""

    by_id: dict[str, str] = {}
    for role_name in role_names:
        by_id.setdefault(role_id_for(role_name), role_name)
    return list(by_id.values())


class CreateRoleCommand(Command):
    """Upserts bot-owned roles; each may be granted a `role` permission on a parent."""

    name = "createrole"
    args = (ROLES_ARG, PARENT_ARG)
    sources = frozenset({"discord", "slack"})
    native_permissions = {"discord": ("ADMINISTRATOR",), "slack": ("ADMINISTRATOR",)}
    exclusive = True

    async def run_common(self, invocation: CommandInvocation, source: ChatSource) -> str:
        store = invocation.services.require_store()
        org_id = invocation.org_id
        assert org_id is not None
        role_names = unique_role_names(invocation.values["roles"])
        parent = invocation.get("parent")
        for role_name in role_names:
            await store.insert_or_update(
                ROLES_TABLE, build_role_row(source.name, org_id, role_name)
            )
            if parent:
                await store.insert_or_update(
                    PERMISSIONS_TABLE,
                    build_permission_row(
                        source=source.name,
                        org_id=org_id,
                        subject_type=SubjectType.ROLE,
                        subject_id=role_id_for(role_name),
                        permission_type=PermissionType.ROLE,
                        row_filter={"role_id": parent},
                    ),
                )
        joined = ", ".join(role_names)
        if parent:
            return invocation.lang.get_string(
                "commands.createrole.success_with_parent", joined, parent
            )
        return invocation.lang.get_string("commands.createrole.success", joined)
