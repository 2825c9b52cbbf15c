from __future__ import annotations

import pytest

from crossbot.commands.parser import ParseState
from crossbot.core.store import PERMISSIONS_TABLE, ROLES_TABLE
from crossbot.integrations.chat.testing import make_message


@pytest.mark.anyio
async def test_createrole_upserts_roles(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    result = await h.pipeline.process(make_message("!createrole Mods, helpers"), h.source)

    assert result.state is ParseState.REPLIED
    assert result.reply == "Roles saved: Mods, helpers"
    rows = await h.store.get_rows(ROLES_TABLE, "discord", "org-1")
    assert {row["id"]: row["name"] for row in rows} == {
        "mods": "Mods",
        "helpers": "helpers",
    }
    assert await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1") == []


@pytest.mark.anyio
async def test_createrole_with_parent_grants_role_permission(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    result = await h.pipeline.process(make_message("!cr mods p:admins"), h.source)

    assert result.reply == "Roles saved: mods. Members of admins may manage them."
    rows = await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1")
    assert len(rows) == 1
    assert rows[0]["subject_type"] == "role"
    assert rows[0]["subject_id"] == "mods"
    assert rows[0]["permission_type"] == "role"
    assert rows[0]["filter"] == {"role_id": "admins"}


@pytest.mark.anyio
async def test_createrole_is_idempotent(harness) -> None:
    h = harness(granted={"ADMINISTRATOR"})

    for content in (
        "!createrole mods admins",
        "!createrole Mods admins",
        "!cr MODS p:admins",
        "!createrole Mods, mods admins",
    ):
        await h.pipeline.process(make_message(content), h.source)

    roles = await h.store.get_rows(ROLES_TABLE, "discord", "org-1")
    permissions = await h.store.get_rows(PERMISSIONS_TABLE, "discord", "org-1")
    assert [row["id"] for row in roles] == ["mods"]
    assert len(permissions) == 1
    assert permissions[0]["subject_id"] == "mods"


@pytest.mark.anyio
async def test_createrole_needs_administrator(harness) -> None:
    h = harness(granted={"MANAGE_MESSAGES"})

    result = await h.pipeline.process(make_message("!createrole mods"), h.source)

    assert result.state is ParseState.REJECTED
    assert result.reply.endswith("Administrator")
    assert await h.store.get_rows(ROLES_TABLE, "discord", "org-1") == []


@pytest.mark.anyio
async def test_createrole_runs_on_slack(harness) -> None:
    h = harness(source_name="slack", granted={"ADMINISTRATOR"})

    result = await h.pipeline.process(
        make_message("!createrole mods", source="slack"), h.source
    )

    assert result.state is ParseState.REPLIED
    assert len(await h.store.get_rows(ROLES_TABLE, "slack", "org-1")) == 1
