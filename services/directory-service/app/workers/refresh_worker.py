"""Background worker keeping every cache partition in sync with Notion."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog

from app.cache.record_cache import RecordCache
from app.domain.entities import REFRESH_ORDER, EntityKind
from app.domain.exceptions import FetchError
from app.metrics import record_refresh, record_refresh_cycle
from app.services.fetcher import RecordFetcher

logger = structlog.get_logger(__name__)


class RefreshWorker:
    """
    Periodic and on-demand refresh of the record cache.

    A refresh cycle walks ``REFRESH_ORDER`` so related kinds are cached
    before the kinds that embed them are decoded, pausing between kinds to
    stay under the Notion rate limit. A failed kind aborts the rest of the
    cycle; partitions keep their previous content until the next cycle.
    """

    def __init__(
        self,
        fetcher: RecordFetcher,
        cache: RecordCache,
        interval_seconds: float = 24 * 60 * 60,
        step_delay_seconds: float = 0.5,
    ):
        self.fetcher = fetcher
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.step_delay_seconds = step_delay_seconds

        self.running = False
        self.task: Optional[asyncio.Task] = None

        # One lock per kind so overlapping refreshes of a kind install in call order
        self._kind_locks: Dict[EntityKind, asyncio.Lock] = {
            kind: asyncio.Lock() for kind in EntityKind
        }

        self.cycles_completed = 0
        self.cycles_failed = 0
        self.last_cycle_at: Optional[datetime] = None
        self.last_success_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    async def start(self, initial_refresh: bool = True):
        """
        Start the refresh worker.

        Runs one full cycle first so the API serves populated data, then
        schedules the periodic cycles.
        """
        if self.running:
            logger.warning("Refresh worker already running")
            return

        self.running = True
        if initial_refresh:
            await self.run_cycle()
        self.task = asyncio.create_task(self._run_scheduler())
        logger.info("Refresh worker started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the refresh worker."""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("Refresh worker stopped")

    async def _run_scheduler(self):
        """Run a full cycle every interval."""
        while self.running:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in refresh scheduler", error=str(e), exc_info=True)

    async def refresh_kind(self, kind: EntityKind, trigger: str = "on_demand") -> int:
        """
        Fetch one kind and replace its partition.

        Relation fields reflect whatever related kinds are cached right
        now, which may be older than the refreshed kind.

        Returns:
            Number of records installed

        Raises:
            FetchError: If the kind could not be fetched; the partition is untouched
        """
        started = time.perf_counter()
        async with self._kind_locks[kind]:
            try:
                records = await self.fetcher.fetch(kind)
                count = self.cache.replace(kind, records)
            except FetchError:
                record_refresh(kind, trigger, False, time.perf_counter() - started)
                raise
            except Exception as e:
                record_refresh(kind, trigger, False, time.perf_counter() - started)
                logger.error(
                    "Unexpected error refreshing partition",
                    kind=kind.value,
                    error=str(e),
                    exc_info=True,
                )
                raise FetchError(kind.value, f"{type(e).__name__}: {e}") from e

        record_refresh(kind, trigger, True, time.perf_counter() - started)
        logger.info("Partition refreshed", kind=kind.value, trigger=trigger, records=count)
        return count

    async def refresh_all(self) -> Dict[EntityKind, int]:
        """
        Refresh every kind in dependency order.

        Returns:
            Number of records installed per kind

        Raises:
            FetchError: From the first kind that failed; later kinds are skipped
        """
        counts: Dict[EntityKind, int] = {}
        for index, kind in enumerate(REFRESH_ORDER):
            if index:
                await asyncio.sleep(self.step_delay_seconds)
            counts[kind] = await self.refresh_kind(kind, trigger="scheduled")
        return counts

    async def run_cycle(self) -> bool:
        """
        Run one full refresh cycle, recording its outcome.

        Returns:
            True if every kind was refreshed
        """
        self.last_cycle_at = datetime.now(timezone.utc)
        logger.info("Starting refresh cycle", order=[kind.value for kind in REFRESH_ORDER])

        try:
            counts = await self.refresh_all()
        except FetchError as e:
            self.cycles_failed += 1
            self.last_error = e.message
            record_refresh_cycle(False)
            logger.error("Refresh cycle aborted, keeping cached data", kind=e.kind, error=e.message)
            return False

        self.cycles_completed += 1
        self.last_success_at = datetime.now(timezone.utc)
        self.last_error = None
        record_refresh_cycle(True)
        logger.info(
            "Refresh cycle completed",
            records={kind.value: count for kind, count in counts.items()},
        )
        return True

    def is_ready(self) -> bool:
        """True once one full cycle has succeeded."""
        return self.cycles_completed > 0

    def get_status(self) -> dict:
        """Get worker status."""
        return {
            "running": self.running,
            "ready": self.is_ready(),
            "cycles_completed": self.cycles_completed,
            "cycles_failed": self.cycles_failed,
            "interval_seconds": self.interval_seconds,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
            "last_success_at": (
                self.last_success_at.isoformat() if self.last_success_at else None
            ),
            "last_error": self.last_error,
        }
