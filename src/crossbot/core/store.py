"""Row-oriented persistence for bot-owned data.

Every row is keyed by (table, source, org_id, id) and carries a JSON payload.
The store offers no transactions across calls; callers that read, decide
and write must serialize themselves or write idempotent upserts.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from .sqlite_utils import connect_sqlite
from .time_utils import utc_now

BOT_STATE_SCHEMA_VERSION = 1

SETTINGS_TABLE = "settings"
ROLES_TABLE = "roles"
PERMISSIONS_TABLE = "permissions"
IMAGE_TEMPLATES_TABLE = "image_templates"
GUILDS_TABLE = "guilds"

KNOWN_TABLES = frozenset(
    {
        SETTINGS_TABLE,
        ROLES_TABLE,
        PERMISSIONS_TABLE,
        IMAGE_TEMPLATES_TABLE,
        GUILDS_TABLE,
    }
)

_KEY_FIELDS = ("id", "source", "org_id")


class StoreError(ValueError):
    """Raised for malformed rows or unknown tables."""


def row_matches(row: Mapping[str, Any], row_filter: Mapping[str, Any]) -> bool:
    """Return True when every filter field equals the row value.

    A list, tuple or set filter value matches any of its members.
    """

    for key, expected in row_filter.items():
        actual = row.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class BotStore:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="crossbot-store"
        )
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        await self._run(self._connection_sync)

    async def close(self) -> None:
        await self._run(self._close_sync)
        self._executor.shutdown(wait=True)

    async def get_rows(
        self, table: str, source: str, org_id: str
    ) -> list[dict[str, Any]]:
        _require_table(table)
        return await self._run(self._get_rows_sync, table, source, org_id)

    async def insert_or_update(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        _require_table(table)
        normalized = _normalize_row(row)
        await self._run(self._upsert_sync, table, normalized)
        return normalized

    async def delete_rows(
        self,
        table: str,
        source: str,
        org_id: str,
        row_filter: Optional[Mapping[str, Any]] = None,
    ) -> int:
        _require_table(table)
        return await self._run(
            self._delete_rows_sync, table, source, org_id, dict(row_filter or {})
        )

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _connection_sync(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = connect_sqlite(self._db_path)
            self._ensure_schema(self._connection)
        return self._connection

    def _close_sync(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_info (
                    version INTEGER NOT NULL
                )
                """
            )
            row = conn.execute(
                "SELECT version FROM schema_info ORDER BY version DESC LIMIT 1"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_info(version) VALUES (?)",
                    (BOT_STATE_SCHEMA_VERSION,),
                )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bot_rows (
                    table_name TEXT NOT NULL,
                    source TEXT NOT NULL,
                    org_id TEXT NOT NULL,
                    row_id TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (table_name, source, org_id, row_id)
                )
                """
            )

    def _get_rows_sync(
        self, table: str, source: str, org_id: str
    ) -> list[dict[str, Any]]:
        conn = self._connection_sync()
        rows = conn.execute(
            """
            SELECT payload_json FROM bot_rows
             WHERE table_name = ? AND source = ? AND org_id = ?
             ORDER BY updated_at, row_id
            """,
            (table, source, org_id),
        ).fetchall()
        return [_row_from_payload(row["payload_json"]) for row in rows]

    def _upsert_sync(self, table: str, row: dict[str, Any]) -> None:
        conn = self._connection_sync()
        with conn:
            conn.execute(
                """
                INSERT INTO bot_rows (
                    table_name,
                    source,
                    org_id,
                    row_id,
                    payload_json,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(table_name, source, org_id, row_id) DO UPDATE SET
                    payload_json=excluded.payload_json,
                    updated_at=excluded.updated_at
                """,
                (
                    table,
                    row["source"],
                    row["org_id"],
                    row["id"],
                    json.dumps(row, ensure_ascii=False, sort_keys=True),
                    utc_now().isoformat(),
                ),
            )

    def _delete_rows_sync(
        self,
        table: str,
        source: str,
        org_id: str,
        row_filter: dict[str, Any],
    ) -> int:
        conn = self._connection_sync()
        candidates = conn.execute(
            """
            SELECT row_id, payload_json FROM bot_rows
             WHERE table_name = ? AND source = ? AND org_id = ?
            """,
            (table, source, org_id),
        ).fetchall()
        doomed = [
            str(row["row_id"])
            for row in candidates
            if row_matches(_row_from_payload(row["payload_json"]), row_filter)
        ]
        if not doomed:
            return 0
        with conn:
            conn.executemany(
                """
                DELETE FROM bot_rows
                 WHERE table_name = ? AND source = ? AND org_id = ? AND row_id = ?
                """,
                [(table, source, org_id, row_id) for row_id in doomed],
            )
        return len(doomed)


def _require_table(table: str) -> None:
    if table not in KNOWN_TABLES:
        raise StoreError(f"Unknown table: {table!r}")


def _normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    normalized = dict(row)
    for key in _KEY_FIELDS:
        value = normalized.get(key)
        if value is None or not str(value).strip():
            raise StoreError(f"Row is missing required key field {key!r}")
        normalized[key] = str(value).strip()
    return normalized


def _row_from_payload(payload: str) -> dict[str, Any]:
    loaded = json.loads(payload)
    return loaded if isinstance(loaded, dict) else {}
