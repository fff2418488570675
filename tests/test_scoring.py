"""Tests for the trend score model."""
from datetime import datetime, timezone

from trending.domain.models import TimeRange
from trending.domain.scoring import (
    advance_snapshot,
    initial_score,
    open_snapshot,
    period_start_date,
    trending_score,
)


NOW = datetime(2024, 3, 15, 14, 30, 0, tzinfo=timezone.utc)


def test_trending_score_is_average_daily_growth():
    assert trending_score(500, 600, 1) == 100
    assert trending_score(1000, 1700, 7) == 100
    assert trending_score(100, 100, 30) == 0


def test_trending_score_is_not_clamped():
    assert trending_score(600, 500, 1) == -100


def test_trending_score_with_zero_days():
    assert trending_score(500, 600, 0) == 0


def test_initial_score_is_star_count():
    assert initial_score(500) == 500


def test_period_start_date_is_window_start_at_midnight():
    assert period_start_date(TimeRange.DAILY, NOW) == datetime(2024, 3, 14, tzinfo=timezone.utc)
    assert period_start_date(TimeRange.WEEKLY, NOW) == datetime(2024, 3, 8, tzinfo=timezone.utc)
    assert period_start_date(TimeRange.YEARLY, NOW) == datetime(2023, 3, 16, tzinfo=timezone.utc)


def test_period_start_date_is_stable_within_a_day():
    later = NOW.replace(hour=23, minute=59)
    assert period_start_date(TimeRange.MONTHLY, NOW) == period_start_date(TimeRange.MONTHLY, later)


def test_open_snapshot_anchors_at_current_counts():
    snapshot = open_snapshot(1, TimeRange.DAILY, NOW, stars=500, forks=50, now=NOW)

    assert snapshot.stars_at_start == snapshot.stars_at_end == 500
    assert snapshot.forks_at_start == snapshot.forks_at_end == 50
    assert snapshot.trending_score == 500
    assert snapshot.snapshot_date == NOW


def test_advance_snapshot_keeps_anchor():
    snapshot = open_snapshot(1, TimeRange.WEEKLY, NOW, stars=500, forks=50, now=NOW)
    later = NOW.replace(hour=20)

    advanced = advance_snapshot(snapshot, stars=570, forks=55, now=later)

    assert advanced.stars_at_start == 500
    assert advanced.forks_at_start == 50
    assert advanced.stars_at_end == 570
    assert advanced.forks_at_end == 55
    assert advanced.trending_score == 10
    assert advanced.snapshot_date == later
