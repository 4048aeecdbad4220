"""
Tests for the refresh worker.

Covers refresh ordering, the pause between kinds, failure handling and
the start/stop lifecycle.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from app.domain.entities import (
    REFRESH_ORDER,
    Article,
    Club,
    EntityKind,
    Event,
    Group,
    Member,
    Sponsor,
)
from app.domain.exceptions import FetchError
from app.services.fetcher import RecordFetcher
from app.workers.refresh_worker import RefreshWorker

FRESH_RECORDS = {
    EntityKind.CLUB: [Club(id="club-1")],
    EntityKind.GROUP: [Group(id="group-1"), Group(id="group-2")],
    EntityKind.MEMBER: [Member(id="member-new")],
    EntityKind.EVENT: [Event(id="event-1")],
    EntityKind.ARTICLE: [Article(id="article-1")],
    EntityKind.SPONSOR: [Sponsor(id="sponsor-1")],
}


@pytest.fixture
def mock_fetcher():
    """Create mock fetcher returning one batch per kind."""
    fetcher = MagicMock(spec=RecordFetcher)

    async def fetch(kind):
        return list(FRESH_RECORDS[kind])

    fetcher.fetch = AsyncMock(side_effect=fetch)
    return fetcher


@pytest.fixture
def worker(mock_fetcher, cache):
    """Create refresh worker without pauses between kinds."""
    return RefreshWorker(mock_fetcher, cache, interval_seconds=3600, step_delay_seconds=0)


def _fail_on(kind):
    async def fetch(requested):
        if requested is kind:
            raise FetchError(kind.value, "HTTP 502")
        return list(FRESH_RECORDS[requested])

    return fetch


class TestRefreshKind:
    """Test single-kind refresh."""

    @pytest.mark.asyncio
    async def test_refresh_kind_replaces_partition(self, worker, cache):
        """Test the fetched batch becomes the partition."""
        count = await worker.refresh_kind(EntityKind.GROUP)

        assert count == 2
        assert {group.id for group in cache.list_all(EntityKind.GROUP)} == {
            "group-1",
            "group-2",
        }

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_partition(self, worker, mock_fetcher, cache):
        """Test a failed fetch leaves the previous content in place."""
        cache.replace(EntityKind.MEMBER, [Member(id="member-old")])
        mock_fetcher.fetch.side_effect = _fail_on(EntityKind.MEMBER)

        with pytest.raises(FetchError):
            await worker.refresh_kind(EntityKind.MEMBER)

        assert cache.lookup(EntityKind.MEMBER, "member-old") is not None
        assert cache.generation(EntityKind.MEMBER) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_fetch_error(self, worker, mock_fetcher, cache):
        """Test a non-fetch failure is reported as a FetchError for the kind."""
        cache.replace(EntityKind.MEMBER, [Member(id="member-old")])
        mock_fetcher.fetch.side_effect = TypeError("bad block")

        with pytest.raises(FetchError) as exc_info:
            await worker.refresh_kind(EntityKind.MEMBER)

        assert exc_info.value.kind == "member"
        assert "TypeError: bad block" in exc_info.value.message
        assert cache.lookup(EntityKind.MEMBER, "member-old") is not None
        assert cache.generation(EntityKind.MEMBER) == 1

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_both_install(self, worker, cache):
        """Test overlapping refreshes of one kind each install a full batch."""
        await asyncio.gather(
            worker.refresh_kind(EntityKind.CLUB), worker.refresh_kind(EntityKind.CLUB)
        )

        assert cache.generation(EntityKind.CLUB) == 2
        assert len(cache.list_all(EntityKind.CLUB)) == 1


class TestRefreshCycle:
    """Test full refresh cycles."""

    @pytest.mark.asyncio
    async def test_kinds_refreshed_in_dependency_order(self, worker, mock_fetcher):
        """Test the cycle walks clubs, groups, members, events, articles, sponsors."""
        await worker.refresh_all()

        assert [c.args[0] for c in mock_fetcher.fetch.await_args_list] == list(
            REFRESH_ORDER
        )

    @pytest.mark.asyncio
    async def test_pause_between_kinds(self, mock_fetcher, cache):
        """Test the worker sleeps between kinds but not before the first."""
        worker = RefreshWorker(mock_fetcher, cache, step_delay_seconds=0.5)

        with patch(
            "app.workers.refresh_worker.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            await worker.refresh_all()

        assert mock_sleep.await_count == len(REFRESH_ORDER) - 1
        assert mock_sleep.await_args_list == [call(0.5)] * (len(REFRESH_ORDER) - 1)

    @pytest.mark.asyncio
    async def test_successful_cycle(self, worker, cache):
        """Test a successful cycle populates every partition."""
        result = await worker.run_cycle()

        assert result is True
        assert worker.cycles_completed == 1
        assert worker.last_success_at is not None
        assert worker.last_error is None
        assert worker.is_ready()
        for kind, records in FRESH_RECORDS.items():
            assert len(cache.list_all(kind)) == len(records)

    @pytest.mark.asyncio
    async def test_failed_kind_aborts_cycle(self, worker, mock_fetcher, cache):
        """Test kinds after a failure are skipped and old data is kept."""
        cache.replace(EntityKind.MEMBER, [Member(id="member-old")])
        mock_fetcher.fetch.side_effect = _fail_on(EntityKind.MEMBER)

        result = await worker.run_cycle()

        assert result is False
        assert worker.cycles_failed == 1
        assert "HTTP 502" in worker.last_error
        assert not worker.is_ready()
        # kinds before the failure were refreshed
        assert cache.generation(EntityKind.CLUB) == 1
        assert cache.generation(EntityKind.GROUP) == 1
        # the failed kind keeps its data, later kinds were never fetched
        assert cache.lookup(EntityKind.MEMBER, "member-old") is not None
        assert cache.generation(EntityKind.EVENT) == 0
        fetched = [c.args[0] for c in mock_fetcher.fetch.await_args_list]
        assert EntityKind.EVENT not in fetched

    @pytest.mark.asyncio
    async def test_recovery_clears_last_error(self, worker, mock_fetcher):
        """Test the next successful cycle clears the recorded error."""
        mock_fetcher.fetch.side_effect = _fail_on(EntityKind.CLUB)
        await worker.run_cycle()

        mock_fetcher.fetch.side_effect = _fail_on(None)
        await worker.run_cycle()

        assert worker.last_error is None
        assert worker.cycles_failed == 1
        assert worker.cycles_completed == 1


class TestRefreshWorkerLifecycle:
    """Test start/stop and scheduling."""

    @pytest.mark.asyncio
    async def test_start_runs_initial_cycle(self, worker):
        """Test start populates the cache before scheduling."""
        await worker.start()

        assert worker.running is True
        assert worker.task is not None
        assert worker.cycles_completed == 1

        await worker.stop()

        assert worker.running is False
        assert worker.task is None

    @pytest.mark.asyncio
    async def test_start_without_initial_cycle(self, worker, mock_fetcher):
        """Test the initial cycle can be skipped."""
        await worker.start(initial_refresh=False)

        mock_fetcher.fetch.assert_not_awaited()

        await worker.stop()

    @pytest.mark.asyncio
    async def test_start_twice(self, worker):
        """Test a second start does not spawn a second scheduler."""
        await worker.start(initial_refresh=False)
        task = worker.task

        await worker.start(initial_refresh=False)

        assert worker.task is task
        await worker.stop()

    @pytest.mark.asyncio
    async def test_initial_failure_still_starts(self, worker, mock_fetcher):
        """Test the service keeps running after a failed first cycle."""
        mock_fetcher.fetch.side_effect = _fail_on(EntityKind.CLUB)

        await worker.start()

        assert worker.running is True
        assert not worker.is_ready()
        await worker.stop()

    @pytest.mark.asyncio
    async def test_unexpected_initial_error_still_starts(self, worker, mock_fetcher):
        """Test an unexpected error in the first cycle does not abort startup."""
        mock_fetcher.fetch.side_effect = TypeError("bad block")

        await worker.start()

        assert worker.running is True
        assert worker.task is not None
        assert worker.cycles_failed == 1
        assert "TypeError" in worker.last_error
        await worker.stop()

    @pytest.mark.asyncio
    async def test_scheduler_runs_cycles(self, mock_fetcher, cache):
        """Test cycles repeat on the configured interval."""
        worker = RefreshWorker(mock_fetcher, cache, interval_seconds=0.01, step_delay_seconds=0)

        with patch.object(worker, "run_cycle", new_callable=AsyncMock) as mock_cycle:
            await worker.start(initial_refresh=False)
            await asyncio.sleep(0.1)
            await worker.stop()

        assert mock_cycle.await_count >= 2

    @pytest.mark.asyncio
    async def test_scheduler_survives_errors(self, mock_fetcher, cache):
        """Test an unexpected error does not end the scheduler."""
        worker = RefreshWorker(mock_fetcher, cache, interval_seconds=0.01, step_delay_seconds=0)

        with patch.object(
            worker, "run_cycle", new_callable=AsyncMock, side_effect=RuntimeError("boom")
        ) as mock_cycle:
            await worker.start(initial_refresh=False)
            await asyncio.sleep(0.1)

            assert not worker.task.done()
            await worker.stop()

        assert mock_cycle.await_count >= 2

    def test_get_status(self, worker):
        """Test status before any cycle."""
        status = worker.get_status()

        assert status["running"] is False
        assert status["ready"] is False
        assert status["cycles_completed"] == 0
        assert status["interval_seconds"] == 3600
        assert status["last_cycle_at"] is None
        assert status["last_error"] is None
