"""Domain models representing core business entities."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class TimeRange(str, Enum):
    """Rolling lookback window a trending ranking is computed for."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def days(self) -> int:
        """Length of the lookback window in days."""
        return _WINDOW_DAYS[self]

    @classmethod
    def parse(cls, value: str) -> 'TimeRange':
        """Returns the TimeRange for a tag like 'weekly'."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown time range {value!r}, expected one of: {allowed}")


_WINDOW_DAYS = {
    TimeRange.DAILY: 1,
    TimeRange.WEEKLY: 7,
    TimeRange.MONTHLY: 30,
    TimeRange.YEARLY: 365,
}


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Repository:
    """Immutable domain entity representing a GitHub repository.

    Records fetched from GitHub carry no local id and no sync time; the
    storage assigns ``repo_id`` and the sync stamps ``last_synced_at``.
    """
    github_id: int
    owner: str
    name: str
    url: str
    stargazers_count: int
    forks_count: int
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    language: Optional[str] = None
    open_issues_count: Optional[int] = None
    topics: Tuple[str, ...] = ()
    last_synced_at: Optional[datetime] = None
    repo_id: Optional[int] = None

    @property
    def full_name(self) -> str:
        """Returns the full repository name (owner/name)."""
        return f"{self.owner}/{self.name}"

    def with_id(self, repo_id: int) -> 'Repository':
        """Returns a new Repository instance with the provided ID."""
        return replace(self, repo_id=repo_id)

    def synced_at(self, timestamp: datetime) -> 'Repository':
        """Returns a new Repository instance stamped with a sync time."""
        return replace(self, last_synced_at=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Serializes the repository in the API wire format."""
        return {
            "id": self.repo_id,
            "githubId": self.github_id,
            "owner": self.owner,
            "name": self.name,
            "fullName": self.full_name,
            "url": self.url,
            "description": self.description,
            "language": self.language,
            "stargazersCount": self.stargazers_count,
            "forksCount": self.forks_count,
            "openIssuesCount": self.open_issues_count,
            "topics": list(self.topics),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
            "lastSyncedAt": _isoformat(self.last_synced_at),
        }


@dataclass(frozen=True)
class Snapshot:
    """Trend measurement of one repository for one period window.

    ``stars_at_start`` and ``forks_at_start`` anchor the growth measurement
    and never change once the snapshot exists.
    """
    repository_id: int
    period: TimeRange
    period_start_date: datetime
    stars_at_start: int
    stars_at_end: int
    forks_at_start: int
    forks_at_end: int
    trending_score: float
    snapshot_date: datetime
    snapshot_id: Optional[int] = None

    def with_id(self, snapshot_id: int) -> 'Snapshot':
        """Returns a new Snapshot instance with the provided ID."""
        return replace(self, snapshot_id=snapshot_id)


@dataclass(frozen=True)
class PeriodSyncResult:
    """Counters for one period of a sync run."""
    time_range: TimeRange
    synced: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeRange": self.time_range.value,
            "synced": self.synced,
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a full sync run over every period."""
    synced_at: datetime
    duration_ms: int
    time_ranges: List[PeriodSyncResult] = field(default_factory=list)

    @property
    def total_errors(self) -> int:
        return sum(result.errors for result in self.time_ranges)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "syncedAt": _isoformat(self.synced_at),
            "duration": self.duration_ms,
            "timeRanges": [result.to_dict() for result in self.time_ranges],
        }


@dataclass(frozen=True)
class RepositoryWithTrendingScore:
    """A repository as it appears in a trending ranking."""
    repository: Repository
    trending_score: float

    def to_dict(self) -> Dict[str, Any]:
        data = self.repository.to_dict()
        data["trendingScore"] = self.trending_score
        return data


@dataclass(frozen=True)
class PaginationMeta:
    """Pagination metadata returned alongside a ranking page."""
    current_page: int
    total_pages: int
    page_size: int
    total_repos: int
    has_next: bool
    has_previous: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "pageSize": self.page_size,
            "totalRepos": self.total_repos,
            "hasNext": self.has_next,
            "hasPrevious": self.has_previous,
        }


@dataclass(frozen=True)
class TrendingPage:
    """One page of the trending ranking."""
    repos: List[RepositoryWithTrendingScore]
    pagination: PaginationMeta
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repos": [entry.to_dict() for entry in self.repos],
            "pagination": self.pagination.to_dict(),
            "lastUpdated": _isoformat(self.last_updated),
        }
