"""
Holder Snapshot Cache
Serves the ranked holder leaderboard from a TTL-bounded snapshot.

States:
- FRESH: a snapshot exists and is younger than the TTL -> served as is
- STALE: no snapshot yet, or older than the TTL -> rebuilt before serving

A rebuild only becomes visible once it is complete (one reference swap).
Concurrent callers that find the cache stale share the same in-flight
rebuild. A failed or timed-out rebuild leaves the previous snapshot in place.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple

from config.holders import LeaderboardSettings
from services.holder_aggregator import Holder, build_leaderboard
from services.lock_discovery import DiscoveryStats, LockDiscovery
from services.vault_attribution import VaultAttributionResolver

logger = logging.getLogger(__name__)


class NoSnapshotAvailable(Exception):
    """No snapshot has ever been built successfully"""

    def __init__(self, cause: Optional[BaseException] = None):
        self.cause = cause
        message = "No holder data available"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


@dataclass(frozen=True)
class Snapshot:
    """Fully aggregated and ranked holder set of one rebuild"""
    holders: Tuple[Holder, ...]
    total_voting_power: int
    captured_at: float
    stats: Optional[DiscoveryStats] = None


@dataclass(frozen=True)
class HoldersPage:
    """One filtered, paginated view of a snapshot"""
    holders: List[Holder]
    total_count: int            # size of the filtered set
    total_voting_power: int     # over the whole snapshot, unfiltered
    page: int
    limit: int
    captured_at: float


def make_snapshot(holders: List[Holder], captured_at: float, stats: DiscoveryStats = None) -> Snapshot:
    return Snapshot(
        holders=tuple(holders),
        total_voting_power=sum(h.voting_power for h in holders),
        captured_at=captured_at,
        stats=stats,
    )


def filter_holders(holders, search: str) -> List[Holder]:
    """Case-insensitive substring match on address or display name"""
    term = (search or "").strip().lower()
    if not term:
        return list(holders)
    return [
        h for h in holders
        if term in h.address.lower() or term in h.display_name.lower()
    ]


class HolderSnapshotCache:
    """
    Usage:
        cache = HolderSnapshotCache(build_snapshot, ttl_seconds=300)
        page = await cache.get_holders(search="nix", page=1, limit=50)
    """

    def __init__(
        self,
        build_snapshot: Callable[[], Awaitable[Snapshot]],
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
        rebuild_timeout: Optional[float] = None,
        default_limit: int = 50,
        max_limit: int = 100,
    ):
        self._build_snapshot = build_snapshot
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.rebuild_timeout = rebuild_timeout
        self.default_limit = default_limit
        self.max_limit = max_limit

        self._snapshot: Optional[Snapshot] = None
        self._inflight: Optional[asyncio.Future] = None
        self.rebuild_count = 0
        self.failed_rebuild_count = 0
        self.last_error: Optional[str] = None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    def age_seconds(self) -> Optional[float]:
        if self._snapshot is None:
            return None
        return self.clock() - self._snapshot.captured_at

    def is_fresh(self) -> bool:
        age = self.age_seconds()
        return age is not None and age < self.ttl_seconds

    async def get_snapshot(self, force_refresh: bool = False) -> Snapshot:
        """Current snapshot, rebuilt first when stale or forced"""
        if force_refresh or not self.is_fresh():
            await self.refresh()

        snapshot = self._snapshot
        if snapshot is None:
            raise NoSnapshotAvailable()
        return snapshot

    async def get_holders(
        self,
        force_refresh: bool = False,
        search: str = "",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> HoldersPage:
        snapshot = await self.get_snapshot(force_refresh)

        page = max(1, int(page))
        limit = self.default_limit if limit is None else int(limit)
        limit = min(max(1, limit), self.max_limit)

        filtered = filter_holders(snapshot.holders, search)
        start = (page - 1) * limit

        return HoldersPage(
            holders=filtered[start:start + limit],
            total_count=len(filtered),
            total_voting_power=snapshot.total_voting_power,
            page=page,
            limit=limit,
            captured_at=snapshot.captured_at,
        )

    async def refresh(self):
        """
        Rebuild the snapshot, joining a rebuild already in flight.

        Failures are logged and swallowed while a previous snapshot exists;
        with nothing to fall back on they surface as NoSnapshotAvailable.

        The only deadline that aborts a rebuild is `rebuild_timeout`, set once
        for the cache. A caller that gives up (cancelled, or its own
        wait_for expires) stops waiting but does not abort the shared
        rebuild, since other callers may be joined to it.
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._rebuild())
        inflight = self._inflight

        try:
            # shield: one caller giving up must not cancel the shared rebuild
            await asyncio.shield(inflight)
        except asyncio.CancelledError:
            if not inflight.cancelled():
                raise
            error: BaseException = asyncio.CancelledError("rebuild cancelled")
            self._handle_failure(error)
        except Exception as e:
            self._handle_failure(e)

    def _handle_failure(self, error: BaseException):
        if self._snapshot is None:
            raise NoSnapshotAvailable(error) from error
        logger.warning(
            f"Serving last good holder snapshot "
            f"({self.age_seconds():.0f}s old) after failed rebuild: {error}"
        )

    async def _rebuild(self):
        started = time.time()
        try:
            if self.rebuild_timeout:
                snapshot = await asyncio.wait_for(self._build_snapshot(), timeout=self.rebuild_timeout)
            else:
                snapshot = await self._build_snapshot()
        except asyncio.TimeoutError as e:
            self.failed_rebuild_count += 1
            self.last_error = f"rebuild timed out after {self.rebuild_timeout}s"
            logger.error(f"Holder snapshot rebuild timed out after {self.rebuild_timeout}s")
            raise TimeoutError(self.last_error) from e
        except Exception as e:
            self.failed_rebuild_count += 1
            self.last_error = str(e)[:200]
            logger.error(f"Holder snapshot rebuild failed: {e}")
            raise

        # single reference swap; readers see the old or the new snapshot, never a mix
        self._snapshot = snapshot
        self.rebuild_count += 1
        self.last_error = None
        logger.info(
            f"Holder snapshot rebuilt: {len(snapshot.holders)} holders, "
            f"total power {snapshot.total_voting_power} in {time.time() - started:.1f}s"
        )


def build_holders_service(
    settings: LeaderboardSettings,
    reader,
    clock: Callable[[], float] = time.time,
) -> HolderSnapshotCache:
    """Wire reader -> discovery -> leaderboard into a snapshot cache"""
    resolver = VaultAttributionResolver(reader, settings)
    discovery = LockDiscovery(reader, resolver, settings)

    async def build_snapshot() -> Snapshot:
        locks, stats = await discovery.discover()
        holders = build_leaderboard(locks, settings)
        return make_snapshot(holders, captured_at=clock(), stats=stats)

    return HolderSnapshotCache(
        build_snapshot,
        ttl_seconds=settings.cache_ttl_seconds,
        clock=clock,
        rebuild_timeout=settings.rebuild_timeout_seconds,
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
    )
