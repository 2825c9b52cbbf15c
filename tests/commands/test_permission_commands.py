from __future__ import annotations

from datetime import datetime, timezone

import pytest

from crossbot.commands.definitions.perms import normalize_subject_id, parse_localized_enum
from crossbot.commands.parser import ParseState
from crossbot.commands.permissions import SubjectType
from crossbot.core.localization import Lang
from crossbot.core.store import IMAGE_TEMPLATES_TABLE, PERMISSIONS_TABLE
from crossbot.integrations.chat.testing import make_message


async def _seed_templates(store, *ids: str) -> None:
    for template_id in ids:
        await store.insert_or_update(
            IMAGE_TEMPLATES_TABLE,
            {"id": template_id, "source": "discord", "org_id": "org-1"},
        )


@pytest.mark.anyio
async def test_addperm_grants_bot_permission(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})
    await _seed_templates(h.store, "t1")

    added = await h.pipeline.process(
        make_message("!addperm user <@!42> imagetemplate"), h.source
    )
    deleted = await h.pipeline.process(
        make_message("!dit t1", user_id="42", message_id="msg-2"), h.source
    )

    assert added.reply == "Permission imagetemplate granted to user 42."
    assert deleted.state is ParseState.REPLIED
    assert deleted.reply == "Deleted image templates: t1"


@pytest.mark.anyio
async def test_addperm_rejects_unknown_names(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    bad_type = await h.pipeline.process(
        make_message("!addperm team 42 imagetemplate"), h.source
    )
    bad_permission = await h.pipeline.process(
        make_message("!ap user 42 superpowers"), h.source
    )

    assert bad_type.state is ParseState.REJECTED
    assert bad_type.reply == (
        "Sorry, could not understand the command. Reason: "
        "Unknown subject type team. Use one of: user, role, channel"
    )
    assert bad_permission.state is ParseState.REJECTED
    assert bad_permission.reply == (
        "Sorry, could not understand the command. Reason: "
        "Unknown permission superpowers. Use one of: imagetemplate, role"
    )
    assert await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1") == []


@pytest.mark.anyio
async def test_removeperm_and_listperms_reject_unknown_subject_type(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    removed = await h.pipeline.process(make_message("!rp team 42 imagetemplate"), h.source)
    listed = await h.pipeline.process(make_message("!lp team"), h.source)

    assert removed.state is ParseState.REJECTED
    assert listed.state is ParseState.REJECTED
    assert listed.reply.endswith("Unknown subject type team. Use one of: user, role, channel")


@pytest.mark.anyio
async def test_addperm_rejects_expiry_outside_datetime_range(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    result = await h.pipeline.process(
        make_message("!addperm user 42 imagetemplate e:1000000d"), h.source
    )

    assert result.state is ParseState.REJECTED
    assert result.reply == (
        "Sorry, could not understand the command. Reason: "
        'cannot read "1000000d" as a time offset or a date'
    )
    assert await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1") == []


@pytest.mark.anyio
async def test_expired_permission_does_not_grant(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})
    await _seed_templates(h.store, "t1")

    # make_message defaults to a fixed past timestamp, so +1d is already over.
    await h.pipeline.process(
        make_message("!addperm user 42 imagetemplate e:1d"), h.source
    )
    result = await h.pipeline.process(
        make_message("!dit t1", user_id="42", message_id="msg-2"), h.source
    )

    assert result.state is ParseState.REJECTED
    rows = await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1")
    assert rows[0]["expires_at"] == "2024-02-01T12:00:00+00:00"


@pytest.mark.anyio
async def test_unexpired_permission_grants(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})
    await _seed_templates(h.store, "t1")
    now = datetime.now(timezone.utc)

    await h.pipeline.process(
        make_message("!addperm user 42 imagetemplate e:1d", created_at=now), h.source
    )
    result = await h.pipeline.process(
        make_message("!dit t1", user_id="42", message_id="msg-2"), h.source
    )

    assert result.state is ParseState.REPLIED


@pytest.mark.anyio
async def test_role_permission_with_filter_role(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    await h.pipeline.process(
        make_message("!addperm role mods role fr:admins"), h.source
    )

    rows = await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1")
    assert rows[0]["filter"] == {"role_id": "admins"}
    assert rows[0]["subject_id"] == "mods"


@pytest.mark.anyio
async def test_removeperm_and_listperms(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})
    await h.pipeline.process(make_message("!addperm user 42 imagetemplate"), h.source)
    await h.pipeline.process(make_message("!addperm channel 7 imagetemplate"), h.source)

    listed = await h.pipeline.process(make_message("!listperms"), h.source)
    listed_users = await h.pipeline.process(make_message("!lp user"), h.source)
    removed = await h.pipeline.process(
        make_message("!removeperm user 42 imagetemplate"), h.source
    )
    removed_again = await h.pipeline.process(
        make_message("!rp user 42 imagetemplate"), h.source
    )

    assert listed.reply is not None
    assert listed.reply.splitlines()[0] == "Stored permissions:"
    assert sorted(listed.reply.splitlines()[1:]) == [
        "channel 7: imagetemplate",
        "user 42: imagetemplate",
    ]
    assert listed_users.reply == "Stored permissions:\nuser 42: imagetemplate"
    assert removed.reply == "Removed 1 permission rows."
    assert removed_again.reply == "No matching permissions were found."


@pytest.mark.anyio
async def test_listperms_empty(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    result = await h.pipeline.process(make_message("!listperms"), h.source)

    assert result.reply == "No permissions are stored."


def test_parse_localized_enum_and_subject_ids() -> None:
    lang = Lang("ru", {"permissions.subject_types.user": ["пользователь"]})

    assert parse_localized_enum("USER", SubjectType, lang, "permissions.subject_types") is (
        SubjectType.USER
    )
    assert parse_localized_enum(
        "Пользователь", SubjectType, lang, "permissions.subject_types"
    ) is SubjectType.USER
    assert parse_localized_enum("team", SubjectType, lang, "permissions.subject_types") is None
    assert normalize_subject_id("<@!42>") == "42"
    assert normalize_subject_id("<@&7>") == "7"
    assert normalize_subject_id("<#C123|general>") == "C123"
    assert normalize_subject_id(" 99 ") == "99"
