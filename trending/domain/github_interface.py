"""GitHub API interfaces (ports) for fetching repository data.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from trending.domain.models import Repository, TimeRange


class ISearchClient(ABC):
    """Raw repository search against the upstream API."""

    @abstractmethod
    async def search(self, query: str, sort: str = "stars", order: str = "desc") -> Dict[str, Any]:
        """Run a repository search.

        Args:
            query: Search qualifiers, e.g. ``pushed:>=2024-01-01``
            sort: Field to sort by
            order: ``asc`` or ``desc``

        Returns:
            ``{"items": [...], "totalCount": n}`` with the raw items

        Raises:
            SourceUnavailable: When the upstream call does not succeed
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass


class ITrendingSource(ABC):
    """Source of trending candidates for a period."""

    @abstractmethod
    async def fetch_trending_candidates(self, time_range: TimeRange) -> List[Repository]:
        """Fetch at most 100 candidate repositories, most starred first.

        Raises:
            SourceUnavailable: When the upstream call does not succeed
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass


class IResponseCache(ABC):
    """Key/value cache for raw upstream responses."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the cached value, or None on a miss."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        """Store a value that expires after ``ttl_seconds``."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
