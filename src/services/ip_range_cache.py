"""
Self-refreshing cache of GitHub's published webhook source ranges
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple

import structlog

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 3600.0

RangeFetcher = Callable[[], Awaitable[List[str]]]


@dataclass(frozen=True)
class IpRangeSnapshot:
    """Immutable set of CIDR blocks captured by one successful fetch"""

    ranges: Tuple[str, ...] = field(default_factory=tuple)
    fetched_at: float = 0.0

    def is_fresh(self, now: float, ttl: float) -> bool:
        return bool(self.ranges) and now - self.fetched_at < ttl


class IpRangeCache:
    """
    Caches the CIDR blocks returned by the GitHub meta endpoint

    Construct once per process. At most one fetch is in flight at any time;
    callers arriving during a refresh share its result. When a refresh fails
    the previous snapshot, even if stale, is served instead.
    """

    def __init__(
        self,
        fetcher: RangeFetcher,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self.ttl = ttl
        self._clock = clock
        self._snapshot = IpRangeSnapshot()
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> IpRangeSnapshot:
        return self._snapshot

    async def get_ranges(self) -> List[str]:
        """Return the current CIDR blocks, refreshing them if stale"""
        if self._snapshot.is_fresh(self._clock(), self.ttl):
            return list(self._snapshot.ranges)

        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._refresh())
            self._refresh_task.add_done_callback(_consume_refresh_error)

        # shield: one cancelled caller must not cancel the shared refresh
        return list(await asyncio.shield(self._refresh_task))

    async def _refresh(self) -> Tuple[str, ...]:
        task = asyncio.current_task()
        started_at = self._clock()
        try:
            ranges = tuple(await self._fetcher())
        except Exception as e:
            logger.error("Error fetching GitHub IP ranges", error=str(e))
            if self._snapshot.ranges:
                logger.warning(
                    "Using cached IP ranges due to fetch error",
                    cached_ranges=len(self._snapshot.ranges),
                )
                return self._snapshot.ranges
            raise
        else:
            if self._refresh_task is task:
                self._snapshot = IpRangeSnapshot(ranges=ranges, fetched_at=started_at)
            logger.info("Fetched GitHub webhook IP ranges", count=len(ranges))
            return ranges
        finally:
            # invalidate() may already have dropped this task
            if self._refresh_task is task:
                self._refresh_task = None

    def invalidate(self) -> None:
        """Drop the snapshot and any in-flight marker, forcing a refetch"""
        self._snapshot = IpRangeSnapshot()
        self._refresh_task = None
        logger.info("IP range cache invalidated")


def _consume_refresh_error(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled; mark the failure as retrieved
    if not task.cancelled():
        task.exception()
