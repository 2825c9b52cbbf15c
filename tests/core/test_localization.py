from __future__ import annotations

import pytest

from crossbot.core.exceptions import ConfigError
from crossbot.core.localization import Lang, LangManager, flatten_table
from crossbot.core.store import SETTINGS_TABLE, BotStore

TABLES = {
    "en": {
        "greeting": "Hello {0}",
        "colors": ["red", "green"],
        "only_en": "fallback",
    },
    "de": {"greeting": "Hallo {0}"},
}


def test_flatten_table_builds_dotted_ids() -> None:
    flat = flatten_table({"commands": {"clean": {"name": "clean", "aliases": ["cl"]}}})

    assert flat == {"commands.clean.name": "clean", "commands.clean.aliases": ["cl"]}


def test_lang_falls_back_to_default_then_to_id() -> None:
    manager = LangManager(default_locale="en", tables=TABLES)
    german = manager.get("de")

    assert german.get_string("greeting", "Welt") == "Hallo Welt"
    assert german.get_string("only_en") == "fallback"
    assert german.get_string("does.not.exist") == "does.not.exist"
    assert not german.has("does.not.exist")


def test_lang_lists_and_joined_lists() -> None:
    lang = Lang("en", TABLES["en"])

    assert lang.get_list("colors") == ["red", "green"]
    assert lang.get_list("greeting") == ["Hello {0}"]
    assert lang.get_list("missing") == []
    assert lang.get_string("colors") == "red, green"


def test_unknown_locale_resolves_to_default() -> None:
    manager = LangManager(default_locale="en", tables=TABLES)

    assert manager.get("fr") is manager.default
    assert manager.get(None) is manager.default
    assert manager.available_locales() == ["de", "en"]


def test_default_locale_must_exist() -> None:
    with pytest.raises(ConfigError):
        LangManager(default_locale="fr", tables=TABLES)


def test_packaged_tables_share_the_command_keys(lang_manager: LangManager) -> None:
    assert {"en", "ru"} <= set(lang_manager.available_locales())
    russian = lang_manager.get("ru")
    assert russian.get_string("commands.clean.name") == "очистить"
    assert lang_manager.default.get_string("commands.clean.success", 3, 5) == (
        "Deleted (3) out of (5) checked messages."
    )


@pytest.mark.anyio
async def test_org_locale_is_stored_per_organization(store: BotStore) -> None:
    manager = LangManager(default_locale="en", store=store, tables=TABLES)

    await manager.set_org_locale("discord", "org-1", "de")

    assert (await manager.for_org("discord", "org-1")).locale == "de"
    assert (await manager.for_org("discord", "org-2")).locale == "en"
    assert (await manager.for_org("slack", "org-1")).locale == "en"
    assert (await manager.for_org("discord", None)).locale == "en"
    rows = await store.get_rows(SETTINGS_TABLE, "discord", "org-1")
    assert rows[0]["value"] == "de"
