"""Trend score model.

A trending score is the average daily star growth since the window's
anchor. A snapshot seen for the first time has no growth baseline yet, so its
score is the raw star count.
"""
from dataclasses import replace
from datetime import datetime, timedelta

from trending.domain.models import Snapshot, TimeRange


def trending_score(stars_at_start: int, current_stars: int, days_ago: int) -> float:
    """Average daily star growth; not clamped, so it may be negative."""
    if days_ago == 0:
        return 0.0
    return (current_stars - stars_at_start) / days_ago


def initial_score(current_stars: int) -> float:
    return float(current_stars)


def period_start_date(time_range: TimeRange, now: datetime) -> datetime:
    """Lower bound of the lookback window, truncated to midnight.

    Truncation makes every sync on the same day address the same window.
    """
    start = now - timedelta(days=time_range.days)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def open_snapshot(
    repository_id: int,
    time_range: TimeRange,
    period_start: datetime,
    stars: int,
    forks: int,
    now: datetime
) -> Snapshot:
    """Builds the first snapshot of a repository in a window."""
    return Snapshot(
        repository_id=repository_id,
        period=time_range,
        period_start_date=period_start,
        stars_at_start=stars,
        stars_at_end=stars,
        forks_at_start=forks,
        forks_at_end=forks,
        trending_score=initial_score(stars),
        snapshot_date=now
    )


def advance_snapshot(snapshot: Snapshot, stars: int, forks: int, now: datetime) -> Snapshot:
    """Refreshes an existing snapshot with the latest observation."""
    return replace(
        snapshot,
        stars_at_end=stars,
        forks_at_end=forks,
        trending_score=trending_score(snapshot.stars_at_start, stars, snapshot.period.days),
        snapshot_date=now
    )
