"""Organization (guild/workspace) snapshots and their background reconciliation.

The message pipeline reads channel and role data from `GuildDirectory`.
`GuildSyncScheduler` refreshes the directory from every registered source on
its own cadence; callers may ask for an out-of-band refresh of one
organization without waiting for it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional, Protocol, runtime_checkable

from .logging_utils import log_event
from .retry import retry_transient
from .store import GUILDS_TABLE, BotStore
from .time_utils import utc_now

TEXT_CHANNEL_KIND = "text"


@dataclass(frozen=True)
class PermissionOverwrite:
    """Channel-level allow/deny bits for one role or member."""

    target_id: str
    target_kind: str
    allow: int = 0
    deny: int = 0


@dataclass(frozen=True)
class ChannelInfo:
    channel_id: str
    name: str
    kind: str = TEXT_CHANNEL_KIND
    overwrites: tuple[PermissionOverwrite, ...] = field(default_factory=tuple)

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT_CHANNEL_KIND


@dataclass(frozen=True)
class RoleInfo:
    role_id: str
    name: str
    permissions: int = 0
    position: int = 0


@dataclass(frozen=True)
class OrganizationSnapshot:
    source: str
    org_id: str
    name: str
    owner_id: Optional[str] = None
    channels: Mapping[str, ChannelInfo] = field(default_factory=dict)
    roles: Mapping[str, RoleInfo] = field(default_factory=dict)
    synced_at: datetime = field(default_factory=utc_now)

    def channel(self, channel_id: str) -> Optional[ChannelInfo]:
        return self.channels.get(channel_id)

    def find_channel_by_name(self, name: str) -> Optional[ChannelInfo]:
        wanted = name.casefold()
        for channel in self.channels.values():
            if channel.name.casefold() == wanted:
                return channel
        return None

    def to_row(self) -> dict[str, object]:
        return {
            "id": self.org_id,
            "source": self.source,
            "org_id": self.org_id,
            "name": self.name,
            "owner_id": self.owner_id,
            "channel_count": len(self.channels),
            "role_count": len(self.roles),
            "synced_at": self.synced_at.isoformat(),
        }


class GuildDirectory:
    """In-memory snapshot map keyed by (source, org_id)."""

    def __init__(self) -> None:
        self._snapshots: dict[tuple[str, str], OrganizationSnapshot] = {}

    def get(self, source: str, org_id: Optional[str]) -> Optional[OrganizationSnapshot]:
        if org_id is None:
            return None
        return self._snapshots.get((source, org_id))

    def put(self, snapshot: OrganizationSnapshot) -> None:
        self._snapshots[(snapshot.source, snapshot.org_id)] = snapshot

    def remove(self, source: str, org_id: str) -> None:
        self._snapshots.pop((source, org_id), None)

    def organizations(self, source: str) -> list[OrganizationSnapshot]:
        return [snap for (name, _), snap in self._snapshots.items() if name == source]

    def replace_source(
        self, source: str, snapshots: Iterable[OrganizationSnapshot]
    ) -> None:
        for key in [key for key in self._snapshots if key[0] == source]:
            del self._snapshots[key]
        for snapshot in snapshots:
            self.put(snapshot)


@runtime_checkable
class OrganizationSource(Protocol):
    """A source that can enumerate its organizations."""

    @property
    def name(self) -> str: ...

    async def fetch_organizations(self) -> list[OrganizationSnapshot]: ...

    async def fetch_organization(self, org_id: str) -> Optional[OrganizationSnapshot]: ...


class GuildSyncScheduler:
    def __init__(
        self,
        *,
        directory: GuildDirectory,
        store: Optional[BotStore],
        interval_seconds: float,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._directory = directory
        self._store = store
        self._interval_seconds = interval_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._sources: dict[str, OrganizationSource] = {}
        self._task: Optional[asyncio.Task[None]] = None
        self._pending: dict[tuple[str, str], asyncio.Task[None]] = {}
        self._stopped = asyncio.Event()

    @property
    def directory(self) -> GuildDirectory:
        return self._directory

    def register(self, source: OrganizationSource) -> None:
        self._sources[source.name] = source

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._stopped.set()
        tasks = [task for task in (self._task, *self._pending.values()) if task]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._pending.clear()

    def request_sync(self, source: str, org_id: str) -> bool:
        """Schedule a refresh of one organization; returns False if not scheduled."""

        if source not in self._sources:
            return False
        key = (source, org_id)
        existing = self._pending.get(key)
        if existing is not None and not existing.done():
            return False
        task = asyncio.create_task(self._sync_one(source, org_id))
        self._pending[key] = task
        task.add_done_callback(lambda _task: self._pending.pop(key, None))
        return True

    async def sync_all(self) -> int:
        synced = 0
        for source in list(self._sources.values()):
            try:
                snapshots = await self._fetch_all(source)
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "guild_sync.source.failed",
                    source=source.name,
                    exc=exc,
                )
                continue
            self._directory.replace_source(source.name, snapshots)
            for snapshot in snapshots:
                await self._persist(snapshot)
            synced += len(snapshots)
            log_event(
                self._logger,
                logging.INFO,
                "guild_sync.source.done",
                source=source.name,
                organizations=len(snapshots),
            )
        return synced

    async def apply_snapshot(self, snapshot: OrganizationSnapshot) -> None:
        """Store a snapshot pushed by a source event (e.g. GUILD_CREATE)."""

        self._directory.put(snapshot)
        await self._persist(snapshot)

    async def _loop(self) -> None:
        while not self._stopped.is_set():
            await self.sync_all()
            try:
                await asyncio.wait_for(
                    self._stopped.wait(), timeout=self._interval_seconds
                )
            except asyncio.TimeoutError:
                continue

    async def _sync_one(self, source_name: str, org_id: str) -> None:
        source = self._sources[source_name]
        try:
            snapshot = await self._fetch_one(source, org_id)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "guild_sync.organization.failed",
                source=source_name,
                org_id=org_id,
                exc=exc,
            )
            return
        if snapshot is None:
            self._directory.remove(source_name, org_id)
            return
        await self.apply_snapshot(snapshot)

    @retry_transient(max_attempts=3, base_wait=1.0, max_wait=30.0)
    async def _fetch_all(self, source: OrganizationSource) -> list[OrganizationSnapshot]:
        return await source.fetch_organizations()

    @retry_transient(max_attempts=3, base_wait=1.0, max_wait=30.0)
    async def _fetch_one(
        self, source: OrganizationSource, org_id: str
    ) -> Optional[OrganizationSnapshot]:
        return await source.fetch_organization(org_id)

    async def _persist(self, snapshot: OrganizationSnapshot) -> None:
        if self._store is None:
            return
        try:
            await self._store.insert_or_update(GUILDS_TABLE, snapshot.to_row())
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "guild_sync.persist.failed",
                source=snapshot.source,
                org_id=snapshot.org_id,
                exc=exc,
            )


__all__ = [
    "ChannelInfo",
    "GuildDirectory",
    "GuildSyncScheduler",
    "OrganizationSnapshot",
    "OrganizationSource",
    "PermissionOverwrite",
    "RoleInfo",
    "TEXT_CHANNEL_KIND",
]
