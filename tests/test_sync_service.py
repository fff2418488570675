"""Tests for the sync service."""
import asyncio
from datetime import datetime, timedelta, timezone

from fakes import (
    FakeTrendingSource,
    InMemoryTrendingStorage,
    SlowTrendingStorage,
    make_repository,
    run_with_ticker,
)
from trending.application.sync_service import TrendingSyncService
from trending.domain.models import TimeRange


NOW = datetime(2024, 3, 15, 8, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TickingClock(Clock):
    """Advances by a fixed step every time it is read."""

    def __init__(self, now: datetime, step: timedelta):
        super().__init__(now)
        self.step = step

    def __call__(self) -> datetime:
        value = self.now
        self.now += self.step
        return value


def _service(source, storage, clock=None, time_ranges=(TimeRange.DAILY,)):
    return TrendingSyncService(source, storage, time_ranges=time_ranges, clock=clock or Clock(NOW))


def _snapshots_of(storage, github_id, period):
    repository = storage.find_repository_by_github_id(github_id)
    return [
        s for s in storage.snapshots.values()
        if s.repository_id == repository.repo_id and s.period == period
    ]


def test_first_sync_creates_snapshot_with_star_count_score():
    storage = InMemoryTrendingStorage()
    source = FakeTrendingSource({TimeRange.DAILY: [make_repository(1, stars=500)]})

    result = asyncio.run(_service(source, storage).sync())

    [snapshot] = _snapshots_of(storage, 1, TimeRange.DAILY)
    assert snapshot.stars_at_start == 500
    assert snapshot.stars_at_end == 500
    assert snapshot.trending_score == 500
    assert snapshot.snapshot_date == NOW
    assert snapshot.period_start_date == datetime(2024, 3, 14, tzinfo=timezone.utc)
    assert result.time_ranges[0].created == 1
    assert result.time_ranges[0].updated == 0


def test_resync_in_same_window_scores_growth_and_keeps_anchor():
    storage = InMemoryTrendingStorage()
    clock = Clock(NOW)
    source = FakeTrendingSource({TimeRange.DAILY: [make_repository(1, stars=500)]})
    service = _service(source, storage, clock)
    asyncio.run(service.sync())

    clock.now = NOW + timedelta(hours=12)
    source.candidates[TimeRange.DAILY] = [make_repository(1, stars=600)]
    result = asyncio.run(service.sync())

    [snapshot] = _snapshots_of(storage, 1, TimeRange.DAILY)
    assert snapshot.stars_at_start == 500
    assert snapshot.stars_at_end == 600
    assert snapshot.trending_score == 100
    assert snapshot.snapshot_date == clock.now
    assert result.time_ranges[0].updated == 1
    assert result.time_ranges[0].created == 0


def test_new_window_creates_new_snapshot_and_keeps_history():
    storage = InMemoryTrendingStorage()
    clock = Clock(NOW)
    source = FakeTrendingSource({TimeRange.WEEKLY: [make_repository(1, stars=500)]})
    service = _service(source, storage, clock, time_ranges=(TimeRange.WEEKLY,))
    asyncio.run(service.sync())

    clock.now = NOW + timedelta(days=1)
    source.candidates[TimeRange.WEEKLY] = [make_repository(1, stars=650)]
    asyncio.run(service.sync())

    snapshots = sorted(_snapshots_of(storage, 1, TimeRange.WEEKLY), key=lambda s: s.snapshot_date)
    assert len(snapshots) == 2
    assert snapshots[0].stars_at_end == 500
    assert snapshots[1].stars_at_start == 650
    assert snapshots[1].trending_score == 650


def test_repository_row_is_replaced_and_stamped():
    storage = InMemoryTrendingStorage()
    source = FakeTrendingSource({TimeRange.DAILY: [make_repository(1, stars=500, description="old")]})
    service = _service(source, storage)
    asyncio.run(service.sync())

    source.candidates[TimeRange.DAILY] = [make_repository(1, stars=510, description=None, topics=())]
    asyncio.run(service.sync())

    repository = storage.find_repository_by_full_name("owner1/repo1")
    assert len(storage.repositories) == 1
    assert repository.stargazers_count == 510
    assert repository.description is None
    assert repository.topics == ()
    assert repository.last_synced_at == NOW


def test_per_record_errors_are_isolated():
    storage = InMemoryTrendingStorage()
    storage.fail_upsert_for = {2}
    storage.fail_snapshot_for = {4}
    candidates = [make_repository(github_id) for github_id in range(1, 6)]
    source = FakeTrendingSource({TimeRange.DAILY: candidates})

    result = asyncio.run(_service(source, storage).sync())

    daily = result.time_ranges[0]
    assert daily.errors == 2
    assert daily.synced == 3
    # Record 4 reached the upsert before its snapshot failed
    assert daily.created == 4
    assert storage.find_repository_by_github_id(2) is None
    assert _snapshots_of(storage, 4, TimeRange.DAILY) == []
    for github_id in (1, 3, 5):
        assert len(_snapshots_of(storage, github_id, TimeRange.DAILY)) == 1


def test_source_failure_only_affects_its_period():
    storage = InMemoryTrendingStorage()
    source = FakeTrendingSource({
        TimeRange.DAILY: [make_repository(1)],
        TimeRange.WEEKLY: [make_repository(2)],
        TimeRange.MONTHLY: [make_repository(3)],
        TimeRange.YEARLY: [make_repository(4)],
    })
    source.failing = {TimeRange.WEEKLY}

    result = asyncio.run(_service(source, storage, time_ranges=tuple(TimeRange)).sync())

    assert source.calls == list(TimeRange)
    by_range = {r.time_range: r for r in result.time_ranges}
    assert by_range[TimeRange.WEEKLY].to_dict() == {
        "timeRange": "weekly", "synced": 0, "created": 0, "updated": 0, "errors": 0,
    }
    for time_range in (TimeRange.DAILY, TimeRange.MONTHLY, TimeRange.YEARLY):
        assert by_range[time_range].synced == 1


def test_same_repository_counts_as_updated_in_later_periods():
    storage = InMemoryTrendingStorage()
    repo = make_repository(1, stars=500)
    source = FakeTrendingSource({TimeRange.DAILY: [repo], TimeRange.WEEKLY: [repo]})

    result = asyncio.run(_service(source, storage, time_ranges=(TimeRange.DAILY, TimeRange.WEEKLY)).sync())

    assert result.time_ranges[0].created == 1
    assert result.time_ranges[1].updated == 1
    assert len(_snapshots_of(storage, 1, TimeRange.DAILY)) == 1
    assert len(_snapshots_of(storage, 1, TimeRange.WEEKLY)) == 1


def test_sync_result_reports_start_time_and_duration():
    storage = InMemoryTrendingStorage()
    source = FakeTrendingSource()

    result = asyncio.run(_service(source, storage, time_ranges=tuple(TimeRange)).sync())

    assert result.synced_at == NOW
    assert result.duration_ms >= 0
    assert [r.time_range for r in result.time_ranges] == list(TimeRange)


def test_close_closes_source():
    source = FakeTrendingSource()

    asyncio.run(_service(source, InMemoryTrendingStorage()).close())

    assert source.closed


def test_each_record_is_stamped_when_it_is_written():
    storage = InMemoryTrendingStorage()
    source = FakeTrendingSource({TimeRange.DAILY: [make_repository(1), make_repository(2)]})
    clock = TickingClock(NOW, timedelta(seconds=1))

    result = asyncio.run(_service(source, storage, clock).sync())

    first = storage.find_repository_by_github_id(1)
    second = storage.find_repository_by_github_id(2)
    assert result.synced_at == NOW
    assert NOW < first.last_synced_at < second.last_synced_at
    # Snapshots still share the run's window and date
    assert {s.snapshot_date for s in storage.snapshots.values()} == {NOW}


def test_storage_writes_leave_event_loop_responsive():
    source = FakeTrendingSource({TimeRange.DAILY: [make_repository(github_id) for github_id in range(1, 6)]})
    service = _service(source, SlowTrendingStorage(delay=0.02))

    result, ticks = asyncio.run(run_with_ticker(service.sync()))

    assert result.time_ranges[0].synced == 5
    assert ticks > 0
