"""
In-memory catalog of disco packages and the background task keeping it fresh.

The catalog is published as an immutable CatalogSnapshot. A refresh builds a
complete new snapshot off to the side and then replaces the published one in
a single assignment, so readers always see either the old or the new catalog
and never a partially filled one.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from discocache.data.models import ClientConfig
from discocache.domain.disco_json import decode_major_versions, decode_pkgs
from discocache.domain.models import MajorVersion, Pkg
from discocache.services.disco_api import DiscoApi
from discocache.services.events import CacheEvt, EventBus, EvtType

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    COLD = "cold"
    WARMING = "warming"
    READY = "ready"


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    One consistent view of the remote catalog.

    `pkgs` maps package id to package; `major_versions` keeps the order the
    service returned them in (newest first).
    """

    pkgs: Mapping[str, Pkg] = field(default_factory=lambda: MappingProxyType({}))
    major_versions: Tuple[MajorVersion, ...] = ()
    built_at: Optional[datetime] = None

    @classmethod
    def build(cls, pkgs: Iterable[Pkg], major_versions: Iterable[MajorVersion] = ()) -> "CatalogSnapshot":
        # Identical records collapse first, then the id keys the survivors.
        unique = dict.fromkeys(pkgs)
        by_id = {pkg.id: pkg for pkg in unique}
        return cls(
            pkgs=MappingProxyType(by_id),
            major_versions=tuple(major_versions),
            built_at=datetime.now(timezone.utc),
        )

    @classmethod
    def empty(cls, major_versions: Iterable[MajorVersion] = ()) -> "CatalogSnapshot":
        return cls(major_versions=tuple(major_versions))

    def with_major_versions(self, major_versions: Iterable[MajorVersion]) -> "CatalogSnapshot":
        return replace(self, major_versions=tuple(major_versions))

    def get(self, pkg_id: str) -> Optional[Pkg]:
        return self.pkgs.get(pkg_id)

    def __len__(self) -> int:
        return len(self.pkgs)


class CacheManager:
    """
    Owns the published snapshot and the scheduled refresh.

    Single writer: only refresh() and refresh_major_versions() replace the
    published snapshot, and both run on the event loop.
    """

    def __init__(self, api: DiscoApi, events: EventBus, config: ClientConfig):
        self.api = api
        self.events = events
        self.config = config
        self._snapshot: Optional[CatalogSnapshot] = None
        self._major_versions: Tuple[MajorVersion, ...] = ()
        self._refreshing = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._major_versions_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def is_ready(self) -> bool:
        """True once a snapshot has been published; stays true during later refreshes."""
        return self._snapshot is not None

    @property
    def state(self) -> CacheState:
        if self._refreshing:
            return CacheState.WARMING
        return CacheState.READY if self.is_ready() else CacheState.COLD

    def snapshot(self) -> CatalogSnapshot:
        """
        The published snapshot, or an empty one carrying the known major
        versions while nothing has been published yet.
        """
        snapshot = self._snapshot
        if snapshot is None:
            return CatalogSnapshot.empty(self._major_versions)
        return snapshot

    @property
    def major_versions(self) -> Tuple[MajorVersion, ...]:
        return self._major_versions

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def set_major_versions(self, major_versions: Iterable[MajorVersion]) -> None:
        self._major_versions = tuple(major_versions)
        snapshot = self._snapshot
        if snapshot is not None:
            self._snapshot = snapshot.with_major_versions(self._major_versions)

    async def refresh_major_versions(self) -> bool:
        """Reload the major version catalog, early access lines included."""
        body = await self.api.fetch_major_versions_async(include_ea=True)
        major_versions = decode_major_versions(body)
        if not major_versions:
            logger.warning("Major version refresh returned nothing, keeping previous list")
            return False
        self.set_major_versions(major_versions)
        logger.info(f"Loaded {len(major_versions)} major versions")
        return True

    async def refresh(self) -> bool:
        """
        Fetch the full catalog and publish it as a new snapshot.

        Returns False when the refresh was skipped or failed; the previously
        published snapshot stays in place in both cases.
        """
        if self._refreshing:
            logger.info("Catalog refresh already running, skipping")
            return False

        self._refreshing = True
        self.events.fire_evt(CacheEvt(EvtType.CACHE_UPDATING, source=self))
        try:
            published = await self._rebuild()
        except Exception as e:
            logger.error(f"Catalog refresh failed: {e}", exc_info=True)
            published = False
        finally:
            self._refreshing = False

        snapshot = self._snapshot
        if snapshot is not None:
            self.events.fire_evt(CacheEvt(EvtType.CACHE_READY, source=self, pkg_count=len(snapshot)))
        return published

    async def _rebuild(self) -> bool:
        logger.info("Refreshing disco catalog")
        body = await self.api.fetch_all_pkgs_async()
        pkgs = decode_pkgs(body)
        if not pkgs:
            logger.error("Catalog refresh returned no packages, keeping previous snapshot")
            return False

        snapshot = CatalogSnapshot.build(pkgs, self._major_versions)
        self._snapshot = snapshot
        logger.info(f"Published catalog snapshot with {len(snapshot)} packages")
        return True

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def _refresh_loop(self) -> None:
        """
        Refresh at a fixed rate: the first tick after initial_delay_seconds,
        then every refresh_interval_seconds counted from the previous tick.
        Ticks that fall inside a running refresh are dropped.
        """
        loop = asyncio.get_running_loop()
        interval = self.config.refresh_interval_seconds
        next_tick = loop.time() + self.config.initial_delay_seconds
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Error in catalog refresh loop: {e}")

            next_tick += interval
            now = loop.time()
            if next_tick <= now:
                missed = int((now - next_tick) // interval) + 1
                logger.info(f"Skipping {missed} refresh tick(s) missed while refreshing")
                next_tick += missed * interval

    def start(self) -> None:
        """
        Start the major version fetch and the refresh loop.

        Must be called from a running event loop.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._major_versions_task = asyncio.create_task(self.refresh_major_versions())
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        tasks = [t for t in (self._refresh_task, self._major_versions_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_task = None
        self._major_versions_task = None

    @property
    def running(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()
