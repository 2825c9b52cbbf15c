from __future__ import annotations

from pathlib import Path

import pytest

from crossbot.core.store import (
    IMAGE_TEMPLATES_TABLE,
    PERMISSIONS_TABLE,
    ROLES_TABLE,
    BotStore,
    StoreError,
    row_matches,
)


def _template(template_id: str, org_id: str = "org-1", **extra: object) -> dict:
    return {"id": template_id, "source": "discord", "org_id": org_id, **extra}


@pytest.mark.anyio
async def test_rows_are_scoped_by_source_and_org(store: BotStore) -> None:
    await store.insert_or_update(IMAGE_TEMPLATES_TABLE, _template("a"))
    await store.insert_or_update(IMAGE_TEMPLATES_TABLE, _template("b", org_id="org-2"))
    await store.insert_or_update(
        IMAGE_TEMPLATES_TABLE, {"id": "c", "source": "slack", "org_id": "org-1"}
    )

    rows = await store.get_rows(IMAGE_TEMPLATES_TABLE, "discord", "org-1")

    assert [row["id"] for row in rows] == ["a"]


@pytest.mark.anyio
async def test_insert_or_update_replaces_existing_row(store: BotStore) -> None:
    await store.insert_or_update(ROLES_TABLE, _template("mods", name="Mods"))
    await store.insert_or_update(ROLES_TABLE, _template("mods", name="Moderators"))

    rows = await store.get_rows(ROLES_TABLE, "discord", "org-1")

    assert len(rows) == 1
    assert rows[0]["name"] == "Moderators"


@pytest.mark.anyio
async def test_delete_rows_with_list_filter_matches_any(store: BotStore) -> None:
    for template_id in ("1", "2", "3"):
        await store.insert_or_update(IMAGE_TEMPLATES_TABLE, _template(template_id))

    removed = await store.delete_rows(
        IMAGE_TEMPLATES_TABLE, "discord", "org-1", {"id": ["1", "3", "missing"]}
    )

    assert removed == 2
    rows = await store.get_rows(IMAGE_TEMPLATES_TABLE, "discord", "org-1")
    assert [row["id"] for row in rows] == ["2"]


@pytest.mark.anyio
async def test_delete_rows_without_matches_returns_zero(store: BotStore) -> None:
    await store.insert_or_update(PERMISSIONS_TABLE, _template("p", subject_id="u1"))

    removed = await store.delete_rows(
        PERMISSIONS_TABLE, "discord", "org-1", {"subject_id": "u2"}
    )

    assert removed == 0


@pytest.mark.anyio
async def test_unknown_table_and_missing_keys_raise(store: BotStore) -> None:
    with pytest.raises(StoreError):
        await store.get_rows("nope", "discord", "org-1")
    with pytest.raises(StoreError):
        await store.insert_or_update(ROLES_TABLE, {"id": "x", "source": "discord"})


@pytest.mark.anyio
async def test_rows_survive_reopen(tmp_path: Path) -> None:
    path = tmp_path / "state.sqlite3"
    first = BotStore(path)
    await first.initialize()
    await first.insert_or_update(ROLES_TABLE, _template("mods", name="Mods"))
    await first.close()

    second = BotStore(path)
    try:
        rows = await second.get_rows(ROLES_TABLE, "discord", "org-1")
    finally:
        await second.close()

    assert rows == [
        {"id": "mods", "source": "discord", "org_id": "org-1", "name": "Mods"}
    ]


def test_row_matches_scalar_and_collection_filters() -> None:
    row = {"id": "a", "kind": "x"}

    assert row_matches(row, {})
    assert row_matches(row, {"kind": "x"})
    assert row_matches(row, {"id": ("a", "b")})
    assert not row_matches(row, {"kind": "y"})
    assert not row_matches(row, {"missing": "value"})
