"""Commands that manage stored bot permission rows."""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional, Sequence, TypeVar

from ...core.localization import Lang
from ...core.store import PERMISSIONS_TABLE
from ...core.time_utils import parse_iso
from ...integrations.chat.source import ChatSource
from ..arg_def import CommandArgDef, ValidationRule
from ..base import Command, CommandInvocation
from ..permissions import (
    PERMISSION_FILTER_FIELDS,
    PermissionType,
    SubjectType,
    build_permission_row,
)
from ..scanners import (
    ScanContext,
    ScanFailure,
    ScanOutcome,
    Scanner,
    ScanResult,
    TimeValue,
    simple_scanner,
    time_scanner,
)

_MENTION_RE = re.compile(r"<[@#][!&]?([^|>]+)(?:\|[^>]*)?>")

E = TypeVar("E", bound=Enum)

_ADMIN = {"discord": ("ADMINISTRATOR",), "slack": ("ADMINISTRATOR",)}
_REQUIRED = frozenset({ValidationRule.NON_NULL})


def _arg(command: str, name: str, **kwargs) -> CommandArgDef:
    scanner = kwargs.pop("scanner", simple_scanner)
    return CommandArgDef(name, scanner, f"commands.{command}.args.{name}", **kwargs)


def parse_localized_enum(
    value: object, enum_type: type[E], lang: Lang, string_group: str
) -> Optional[E]:
    """Match `value` against enum values and their localized names."""

    text = str(value or "").strip().casefold()
    for member in enum_type:
        names = {str(member.value).casefold()}
        names.update(
            name.casefold()
            for name in lang.get_list(f"{string_group}.{member.value}")
        )
        if text in names:
            return member
    return None


def normalize_subject_id(value: object) -> str:
    text = str(value or "").strip()
    mention = _MENTION_RE.fullmatch(text)
    return mention.group(1) if mention else text


def _choices(enum_type: type[Enum], lang: Lang, string_group: str) -> str:
    return ", ".join(
        lang.get_string(f"{string_group}.{member.value}") for member in enum_type
    )


def localized_enum_scanner(
    enum_type: type[Enum], string_group: str, unknown_id: str
) -> Scanner:
    """Scan one token into `enum_type`; unknown names fail with `unknown_id`."""

    def scan(
        tokens: Sequence[str], arg: CommandArgDef, context: ScanContext
    ) -> ScanOutcome:
        if not tokens:
            return ScanResult(None, 0)
        member = parse_localized_enum(tokens[0], enum_type, context.lang, string_group)
        if member is None:
            return ScanFailure(
                context.lang.get_string(
                    unknown_id,
                    tokens[0],
                    _choices(enum_type, context.lang, string_group),
                )
            )
        return ScanResult(member, 1)

    return scan


subject_type_scanner = localized_enum_scanner(
    SubjectType, "permissions.subject_types", "commands.addperm.bad_subject_type"
)
permission_type_scanner = localized_enum_scanner(
    PermissionType, "permissions.types", "commands.addperm.bad_permission"
)


class AddPermissionCommand(Command):
    name = "addperm"
    args = (
        _arg("addperm", "subject_type", scanner=subject_type_scanner, rules=_REQUIRED),
        _arg("addperm", "subject", rules=_REQUIRED),
        _arg("addperm", "permission", scanner=permission_type_scanner, rules=_REQUIRED),
        _arg("addperm", "filter_role"),
        _arg(
            "addperm",
            "expires",
            scanner=time_scanner,
            skip_in_sequential_read=True,
        ),
    )
    sources = frozenset({"discord", "slack"})
    native_permissions = _ADMIN
    exclusive = True

    async def run_common(self, invocation: CommandInvocation, source: ChatSource) -> str:
        lang = invocation.lang
        subject_type: SubjectType = invocation.values["subject_type"]
        permission_type: PermissionType = invocation.values["permission"]

        row_filter = {}
        filter_role = invocation.get("filter_role")
        if filter_role and "role_id" in PERMISSION_FILTER_FIELDS[permission_type]:
            row_filter["role_id"] = str(filter_role)

        expires = invocation.get("expires")
        expires_at = None
        if isinstance(expires, TimeValue):
            created_at = invocation.message.created_at
            expires_at = (
                created_at + expires.shift
                if expires.shift is not None
                else expires.timestamp
            )

        org_id = invocation.org_id
        assert org_id is not None
        subject_id = normalize_subject_id(invocation.values["subject"])
        await invocation.services.require_store().insert_or_update(
            PERMISSIONS_TABLE,
            build_permission_row(
                source=source.name,
                org_id=org_id,
                subject_type=subject_type,
                subject_id=subject_id,
                permission_type=permission_type,
                row_filter=row_filter,
                expires_at=expires_at,
            ),
        )
        return lang.get_string(
            "commands.addperm.success",
            permission_type.value,
            subject_type.value,
            subject_id,
        )


class RemovePermissionCommand(Command):
    name = "removeperm"
    args = (
        _arg("removeperm", "subject_type", scanner=subject_type_scanner, rules=_REQUIRED),
        _arg("removeperm", "subject", rules=_REQUIRED),
        _arg("removeperm", "permission", scanner=permission_type_scanner, rules=_REQUIRED),
    )
    sources = frozenset({"discord", "slack"})
    native_permissions = _ADMIN
    exclusive = True

    async def run_common(self, invocation: CommandInvocation, source: ChatSource) -> str:
        lang = invocation.lang
        subject_type: SubjectType = invocation.values["subject_type"]
        permission_type: PermissionType = invocation.values["permission"]
        org_id = invocation.org_id
        assert org_id is not None
        removed = await invocation.services.require_store().delete_rows(
            PERMISSIONS_TABLE,
            source.name,
            org_id,
            {
                "subject_type": subject_type.value,
                "subject_id": normalize_subject_id(invocation.values["subject"]),
                "permission_type": permission_type.value,
            },
        )
        if not removed:
            return lang.get_string("commands.removeperm.nothing_removed")
        return lang.get_string("commands.removeperm.success", removed)


class ListPermissionsCommand(Command):
    name = "listperms"
    args = (_arg("listperms", "subject_type", scanner=subject_type_scanner),)
    sources = frozenset({"discord", "slack"})
    native_permissions = _ADMIN

    async def run_common(self, invocation: CommandInvocation, source: ChatSource) -> str:
        lang = invocation.lang
        org_id = invocation.org_id
        assert org_id is not None
        rows = await invocation.services.require_store().get_rows(
            PERMISSIONS_TABLE, source.name, org_id
        )
        subject_type = invocation.get("subject_type")
        if isinstance(subject_type, SubjectType):
            rows = [row for row in rows if row.get("subject_type") == subject_type.value]
        if not rows:
            return lang.get_string("commands.listperms.empty")

        lines = [lang.get_string("commands.listperms.header")]
        for row in rows:
            row_filter = row.get("filter") or {}
            details = " ".join(f"{key}={value}" for key, value in sorted(row_filter.items()))
            expires_at = parse_iso(row.get("expires_at"))
            if expires_at is not None:
                details = " ".join(
                    part
                    for part in (
                        details,
                        lang.get_string("commands.listperms.expires", expires_at.isoformat()),
                    )
                    if part
                )
            lines.append(
                lang.get_string(
                    "commands.listperms.line",
                    row.get("subject_type"),
                    row.get("subject_id"),
                    row.get("permission_type"),
                    details,
                ).rstrip()
            )
        return "\n".join(lines)
