"""Localized string tables.

Locale tables ship as YAML package data under `crossbot/locales`. Nested
mappings are flattened into dotted ids (`commands.clean.name`). A lookup
that misses in the active locale falls back to the default locale and then
to the id itself.
"""

from __future__ import annotations

import logging
from importlib import resources
from typing import Any, Mapping, Optional

import yaml

from .exceptions import ConfigError
from .store import SETTINGS_TABLE, BotStore

logger = logging.getLogger("crossbot.core.localization")

LOCALE_SETTING_ID = "locale"


def flatten_table(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_table(value, full_key))
        else:
            flat[full_key] = value
    return flat


def load_locale_tables(package: str = "crossbot") -> dict[str, dict[str, Any]]:
    root = resources.files(package).joinpath("locales")
    tables: dict[str, dict[str, Any]] = {}
    for entry in root.iterdir():
        name = entry.name
        if not name.endswith(".yml"):
            continue
        try:
            loaded = yaml.safe_load(entry.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid locale file {name}: {exc}") from exc
        if not isinstance(loaded, Mapping):
            raise ConfigError(f"Locale file {name} must contain a mapping")
        tables[name[: -len(".yml")].lower()] = flatten_table(loaded)
    return tables


class Lang:
    """String table bound to one locale."""

    def __init__(
        self,
        locale: str,
        table: Mapping[str, Any],
        fallback: Optional["Lang"] = None,
    ) -> None:
        self.locale = locale
        self._table = table
        self._fallback = fallback

    def _lookup(self, string_id: str) -> Any:
        if string_id in self._table:
            return self._table[string_id]
        if self._fallback is not None:
            return self._fallback._lookup(string_id)
        return None

    def has(self, string_id: str) -> bool:
        return self._lookup(string_id) is not None

    def get_string(self, string_id: str, *args: Any) -> str:
        value = self._lookup(string_id)
        if value is None:
            logger.warning("Missing localized string %s (%s)", string_id, self.locale)
            return string_id
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        text = str(value)
        if args:
            try:
                return text.format(*args)
            except (IndexError, KeyError, ValueError):
                logger.warning("Bad format arguments for %s", string_id)
                return text
        return text

    def get_list(self, string_id: str) -> list[str]:
        value = self._lookup(string_id)
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return [str(value)]


class LangManager:
    """Resolves the locale of each organization and hands out `Lang` tables."""

    def __init__(
        self,
        *,
        default_locale: str,
        store: Optional[BotStore] = None,
        tables: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> None:
        self._tables = dict(tables) if tables is not None else load_locale_tables()
        if default_locale not in self._tables:
            raise ConfigError(
                f"default_locale {default_locale!r} has no locale table; "
                f"available: {', '.join(sorted(self._tables))}"
            )
        self._default_locale = default_locale
        self._store = store
        self._default = Lang(default_locale, self._tables[default_locale])
        self._langs: dict[str, Lang] = {default_locale: self._default}

    @property
    def default_locale(self) -> str:
        return self._default_locale

    @property
    def default(self) -> Lang:
        return self._default

    def available_locales(self) -> list[str]:
        return sorted(self._tables)

    def has_locale(self, locale: str) -> bool:
        return locale.lower() in self._tables

    def get(self, locale: Optional[str]) -> Lang:
        key = (locale or "").strip().lower()
        if key not in self._tables:
            return self._default
        lang = self._langs.get(key)
        if lang is None:
            lang = Lang(key, self._tables[key], fallback=self._default)
            self._langs[key] = lang
        return lang

    async def for_org(self, source: str, org_id: Optional[str]) -> Lang:
        if org_id is None or self._store is None:
            return self._default
        rows = await self._store.get_rows(SETTINGS_TABLE, source, org_id)
        for row in rows:
            if row.get("id") == LOCALE_SETTING_ID:
                return self.get(row.get("value"))
        return self._default

    async def set_org_locale(self, source: str, org_id: str, locale: str) -> None:
        if self._store is None:
            raise ConfigError("No store configured for locale settings")
        await self._store.insert_or_update(
            SETTINGS_TABLE,
            {
                "id": LOCALE_SETTING_ID,
                "source": source,
                "org_id": org_id,
                "value": locale.lower(),
            },
        )
