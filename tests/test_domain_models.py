"""Tests for domain models."""
from datetime import datetime, timezone

import pytest

from trending.domain.clock import utc_now
from trending.domain.models import (
    PeriodSyncResult,
    Repository,
    RepositoryWithTrendingScore,
    SyncResult,
    TimeRange,
)


def _repository(**overrides) -> Repository:
    fields = dict(
        github_id=10270250,
        owner="facebook",
        name="react",
        url="https://github.com/facebook/react",
        stargazers_count=200000,
        forks_count=40000,
        created_at=datetime(2013, 5, 24, 16, 15, 54, tzinfo=timezone.utc),
        updated_at=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Repository(**fields)


def test_repository_creation():
    """Test creating an immutable Repository entity."""
    repo = _repository()

    assert repo.owner == "facebook"
    assert repo.name == "react"
    assert repo.full_name == "facebook/react"
    assert repo.stargazers_count == 200000
    assert repo.repo_id is None
    assert repo.last_synced_at is None
    assert repo.topics == ()


def test_repository_with_id():
    """Test adding ID to repository."""
    repo = _repository()

    repo_with_id = repo.with_id(42)

    assert repo_with_id.repo_id == 42
    assert repo_with_id.owner == repo.owner
    assert repo.repo_id is None  # Original unchanged (immutability)


def test_repository_synced_at():
    synced = _repository().synced_at(datetime(2024, 6, 1, tzinfo=timezone.utc))

    assert synced.last_synced_at == datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_repository_to_dict_uses_wire_names():
    repo = _repository(topics=("ui", "javascript"), language="JavaScript").with_id(7)

    data = RepositoryWithTrendingScore(repo, 12.5).to_dict()

    assert data["id"] == 7
    assert data["githubId"] == 10270250
    assert data["fullName"] == "facebook/react"
    assert data["stargazersCount"] == 200000
    assert data["topics"] == ["ui", "javascript"]
    assert data["createdAt"] == "2013-05-24T16:15:54+00:00"
    assert data["lastSyncedAt"] is None
    assert data["trendingScore"] == 12.5


@pytest.mark.parametrize("time_range, days", [
    (TimeRange.DAILY, 1),
    (TimeRange.WEEKLY, 7),
    (TimeRange.MONTHLY, 30),
    (TimeRange.YEARLY, 365),
])
def test_time_range_days(time_range, days):
    assert time_range.days == days


def test_time_range_parse():
    assert TimeRange.parse("weekly") is TimeRange.WEEKLY
    with pytest.raises(ValueError, match="hourly"):
        TimeRange.parse("hourly")


def test_sync_result_to_dict():
    """Test creating SyncResult."""
    result = SyncResult(
        synced_at=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        duration_ms=1500,
        time_ranges=[
            PeriodSyncResult(TimeRange.DAILY, synced=99, created=10, updated=90, errors=1),
            PeriodSyncResult(TimeRange.WEEKLY),
        ]
    )

    assert result.total_errors == 1
    assert result.to_dict() == {
        "syncedAt": "2024-01-01T12:00:00+00:00",
        "duration": 1500,
        "timeRanges": [
            {"timeRange": "daily", "synced": 99, "created": 10, "updated": 90, "errors": 1},
            {"timeRange": "weekly", "synced": 0, "created": 0, "updated": 0, "errors": 0},
        ],
    }


def test_default_clock_is_timezone_aware_utc():
    """Both services stamp times with an aware UTC clock."""
    assert utc_now().tzinfo is timezone.utc
