"""Repository interface (port) for data persistence.

This is the port in hexagonal architecture that the infrastructure layer implements.
Each call is expected to be atomic on its own; nothing is transactional
across calls.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from trending.domain.filters import RepositoryFilter
from trending.domain.models import Repository, Snapshot, TimeRange


class IRepositoryStorage(ABC):
    """Abstract interface for repository and snapshot storage."""

    @abstractmethod
    def find_repository_by_github_id(self, github_id: int) -> Optional[Repository]:
        """Find a repository by its GitHub identifier."""
        pass

    @abstractmethod
    def find_repository_by_full_name(self, full_name: str) -> Optional[Repository]:
        """Find a repository by its owner/name."""
        pass

    @abstractmethod
    def upsert_repository(self, repository: Repository) -> Repository:
        """Insert or fully replace a repository keyed on its GitHub id.

        Args:
            repository: Repository entity to persist

        Returns:
            The stored repository, carrying its local id
        """
        pass

    @abstractmethod
    def find_snapshot(
        self,
        repository_id: int,
        period: TimeRange,
        period_start_date: datetime
    ) -> Optional[Snapshot]:
        """Find the snapshot of a repository for one period window."""
        pass

    @abstractmethod
    def create_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Store a new snapshot and return it with its id."""
        pass

    @abstractmethod
    def update_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Persist the end values, score and date of an existing snapshot."""
        pass

    @abstractmethod
    def find_snapshots(
        self,
        period: TimeRange,
        repository_filter: RepositoryFilter
    ) -> List[Tuple[Snapshot, Repository]]:
        """All snapshots of a period whose repository matches the filter,
        most recent ``snapshot_date`` first."""
        pass

    @abstractmethod
    def find_repositories(
        self,
        repository_filter: RepositoryFilter,
        limit: int,
        offset: int = 0
    ) -> List[Repository]:
        """Matching repositories ordered by star count, highest first."""
        pass

    @abstractmethod
    def count_repositories(self, repository_filter: RepositoryFilter) -> int:
        """Number of repositories matching the filter."""
        pass

    @abstractmethod
    def latest_sync_time(self) -> Optional[datetime]:
        """Most recent ``last_synced_at`` across all repositories."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close any open connections."""
        pass
