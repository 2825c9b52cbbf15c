from __future__ import annotations

import pytest

from crossbot.commands.parser import ParseState
from crossbot.commands.permissions import PermissionType, SubjectType, build_permission_row
from crossbot.core.store import IMAGE_TEMPLATES_TABLE, PERMISSIONS_TABLE
from crossbot.integrations.chat.testing import make_message


async def _prepare(h, *template_ids: str, subject_type=SubjectType.USER, subject_id="user-1"):
    for template_id in template_ids:
        await h.store.insert_or_update(
            IMAGE_TEMPLATES_TABLE,
            {"id": template_id, "source": "discord", "org_id": "org-1", "name": template_id},
        )
    await h.store.insert_or_update(
        PERMISSIONS_TABLE,
        build_permission_row(
            source="discord",
            org_id="org-1",
            subject_type=subject_type,
            subject_id=subject_id,
            permission_type=PermissionType.IMAGETEMPLATE,
        ),
    )


async def _template_ids(h) -> list[str]:
    rows = await h.store.get_rows(IMAGE_TEMPLATES_TABLE, "discord", "org-1")
    return sorted(row["id"] for row in rows)


@pytest.mark.anyio
async def test_deletes_only_existing_templates(harness) -> None:
    h = harness()
    await _prepare(h, "1", "2", "3")

    result = await h.pipeline.process(make_message("!dit 1, 2,missing,1"), h.source)

    assert result.state is ParseState.REPLIED
    assert result.reply == "Deleted image templates: 1, 2"
    assert await _template_ids(h) == ["3"]


@pytest.mark.anyio
async def test_unknown_ids_leave_storage_alone(harness) -> None:
    h = harness()
    await _prepare(h, "1")

    result = await h.pipeline.process(
        make_message("!deleteimagetemplate ids:nope"), h.source
    )

    assert result.reply == "None of the given image template ids exist."
    assert await _template_ids(h) == ["1"]


@pytest.mark.anyio
async def test_role_grant_allows_member(harness) -> None:
    h = harness(role_ids=["artists"])
    await _prepare(h, "1", subject_type=SubjectType.ROLE, subject_id="artists")

    result = await h.pipeline.process(make_message("!dit 1"), h.source)

    assert result.state is ParseState.REPLIED
    assert await _template_ids(h) == []


@pytest.mark.anyio
async def test_channel_grant_applies_only_in_that_channel(harness) -> None:
    h = harness()
    await _prepare(h, "1", subject_type=SubjectType.CHANNEL, subject_id="chan-2")

    elsewhere = await h.pipeline.process(make_message("!dit 1"), h.source)
    inside = await h.pipeline.process(
        make_message("!dit 1", channel_id="chan-2", message_id="msg-2"), h.source
    )

    assert elsewhere.state is ParseState.REJECTED
    assert inside.state is ParseState.REPLIED


@pytest.mark.anyio
async def test_templates_of_other_organizations_are_untouched(harness) -> None:
    h = harness()
    await _prepare(h, "1")
    await h.store.insert_or_update(
        IMAGE_TEMPLATES_TABLE, {"id": "1", "source": "discord", "org_id": "org-2"}
    )

    await h.pipeline.process(make_message("!dit 1"), h.source)

    assert await _template_ids(h) == []
    assert len(await h.store.get_rows(IMAGE_TEMPLATES_TABLE, "discord", "org-2")) == 1


@pytest.mark.anyio
async def test_not_available_on_slack(harness) -> None:
    h = harness(source_name="slack")

    result = await h.pipeline.process(make_message("!dit 1", source="slack"), h.source)

    assert result.state is ParseState.NOT_A_COMMAND
