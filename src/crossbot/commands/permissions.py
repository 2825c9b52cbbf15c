"""Bot-owned permission rows and the combined native + bot permission check.

A stored permission row looks like::

    {
        "id": "role:moderators:imagetemplate:",
        "source": "discord",
        "org_id": "123",
        "subject_type": "role",
        "subject_id": "moderators",
        "permission_type": "imagetemplate",
        "filter": {},
        "expires_at": None,
    }

A filter key missing from a row leaves that field unrestricted.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from ..core.logging_utils import log_event
from ..core.store import PERMISSIONS_TABLE, BotStore
from ..core.time_utils import parse_iso, utc_now
from ..integrations.chat.models import ChatMessage
from ..integrations.chat.source import ChatSource

if TYPE_CHECKING:
    from .base import Command

logger = logging.getLogger(__name__)

NATIVE_AXIS = "native"
BOT_AXIS = "bot"


class SubjectType(str, enum.Enum):
    USER = "user"
    ROLE = "role"
    CHANNEL = "channel"


class PermissionType(str, enum.Enum):
    IMAGETEMPLATE = "imagetemplate"
    ROLE = "role"


# Filter keys each permission type may be restricted by.
PERMISSION_FILTER_FIELDS: Mapping[PermissionType, tuple[str, ...]] = {
    PermissionType.IMAGETEMPLATE: (),
    PermissionType.ROLE: ("role_id",),
}


@dataclass(frozen=True)
class CommandPermissionFilter:
    """A bot permission a command requires.

    `fields` maps a row filter key to the argument whose value must match it.
    """

    permission_type: PermissionType
    fields: Mapping[str, str] = field(default_factory=dict)

    def expected_filter(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {key: values.get(arg_name) for key, arg_name in self.fields.items()}


@dataclass(frozen=True)
class PermissionDecision:
    allowed: bool
    missing: Optional[str] = None
    axis: Optional[str] = None


ALLOWED = PermissionDecision(allowed=True)


def permission_row_id(
    subject_type: SubjectType,
    subject_id: str,
    permission_type: PermissionType,
    row_filter: Optional[Mapping[str, Any]] = None,
) -> str:
    filter_key = json.dumps(dict(row_filter or {}), sort_keys=True) if row_filter else ""
    return f"{subject_type.value}:{subject_id}:{permission_type.value}:{filter_key}"


def build_permission_row(
    *,
    source: str,
    org_id: str,
    subject_type: SubjectType,
    subject_id: str,
    permission_type: PermissionType,
    row_filter: Optional[Mapping[str, Any]] = None,
    expires_at: Optional[datetime] = None,
) -> dict[str, Any]:
    cleaned = {key: value for key, value in (row_filter or {}).items() if value}
    return {
        "id": permission_row_id(subject_type, subject_id, permission_type, cleaned),
        "source": source,
        "org_id": org_id,
        "subject_type": subject_type.value,
        "subject_id": subject_id,
        "permission_type": permission_type.value,
        "filter": cleaned,
        "expires_at": expires_at.isoformat() if expires_at else None,
    }


def is_row_expired(row: Mapping[str, Any], now: datetime) -> bool:
    expires_at = parse_iso(row.get("expires_at"))
    return expires_at is not None and expires_at <= now


def filter_matches(row_filter: Mapping[str, Any], expected: Mapping[str, Any]) -> bool:
    for key, value in expected.items():
        if key not in row_filter or row_filter[key] in (None, ""):
            continue
        if value is None or str(row_filter[key]) != str(value):
            return False
    return True


def row_grants(
    row: Mapping[str, Any],
    *,
    requirement: CommandPermissionFilter,
    subjects: Mapping[SubjectType, Sequence[str]],
    values: Mapping[str, Any],
    now: datetime,
) -> bool:
    if row.get("permission_type") != requirement.permission_type.value:
        return False
    try:
        subject_type = SubjectType(row.get("subject_type"))
    except ValueError:
        return False
    if str(row.get("subject_id")) not in subjects.get(subject_type, ()):
        return False
    if is_row_expired(row, now):
        return False
    row_filter = row.get("filter")
    if not isinstance(row_filter, Mapping):
        row_filter = {}
    return filter_matches(row_filter, requirement.expected_filter(values))


class PermissionResolver:
    """Checks an actor against native and bot-owned permissions; both must pass."""

    def __init__(self, store: Optional[BotStore]) -> None:
        self._store = store

    async def is_authorized(
        self,
        message: ChatMessage,
        command: "Command",
        source: ChatSource,
        values: Mapping[str, Any],
    ) -> PermissionDecision:
        for permission in command.get_native_permissions(source.name):
            if not await source.permissions.has_permission_in_channel(
                message, permission
            ):
                return PermissionDecision(
                    allowed=False, missing=permission, axis=NATIVE_AXIS
                )

        requirements = command.bot_permissions
        if not requirements:
            return ALLOWED
        if message.org_id is None or self._store is None:
            return PermissionDecision(
                allowed=False,
                missing=requirements[0].permission_type.value,
                axis=BOT_AXIS,
            )

        rows = await self._store.get_rows(PERMISSIONS_TABLE, source.name, message.org_id)
        role_ids = await source.permissions.get_member_role_ids(message)
        subjects: dict[SubjectType, Sequence[str]] = {
            SubjectType.USER: (message.user_id,),
            SubjectType.ROLE: tuple(role_ids),
            SubjectType.CHANNEL: (message.channel_id,) if message.channel_id else (),
        }
        now = utc_now()
        for requirement in requirements:
            granted = any(
                row_grants(
                    row,
                    requirement=requirement,
                    subjects=subjects,
                    values=values,
                    now=now,
                )
                for row in rows
            )
            if not granted:
                log_event(
                    logger,
                    logging.DEBUG,
                    "permissions.bot.missing",
                    source=source.name,
                    org_id=message.org_id,
                    user_id=message.user_id,
                    permission=requirement.permission_type.value,
                )
                return PermissionDecision(
                    allowed=False,
                    missing=requirement.permission_type.value,
                    axis=BOT_AXIS,
                )
        return ALLOWED
