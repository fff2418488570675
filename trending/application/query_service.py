"""Read side: trending rankings and repository lookups."""
import logging
from datetime import datetime
from typing import Callable, Optional, Union
from trending.application.query_schemas import DEFAULT_PAGE_SIZE, TrendingQuery, parse_full_name
from trending.domain.clock import utc_now
from trending.domain.errors import InternalError
from trending.domain.filters import RepositoryFilter
from trending.domain.models import (
    Repository,
    RepositoryWithTrendingScore,
    TimeRange,
    TrendingPage,
)
from trending.domain.ranking import build_pagination, latest_per_repository, paginate, rank
from trending.domain.repository_interface import IRepositoryStorage


logger = logging.getLogger(__name__)


class TrendingQueryService:
    """Serves paginated trending rankings from stored snapshots.

    Read-only; safe to share between concurrent requests as long as the
    storage is.
    """

    def __init__(self, storage: IRepositoryStorage, clock: Callable[[], datetime] = utc_now):
        self._storage = storage
        self._clock = clock

    def get_trending(
        self,
        time_range: Union[TimeRange, str],
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        language: Optional[str] = None,
        search: Optional[str] = None
    ) -> TrendingPage:
        """Return one page of the ranking for a period.

        Raises:
            InvalidQuery: When a parameter is out of range
            InternalError: When the store fails
        """
        return self.get_trending_page(TrendingQuery.parse({
            "time_range": time_range,
            "page": page,
            "page_size": page_size,
            "language": language,
            "search": search,
        }))

    def get_trending_page(self, query: TrendingQuery) -> TrendingPage:
        """Return the ranking page described by an already validated query.

        Ranks the most recent snapshot of every matching repository by
        trending score, then star count. When the period has no snapshots
        yet, falls back to repositories ordered by stars with a score of 0.

        Raises:
            InternalError: When the store fails
        """
        time_range, page, page_size = query.time_range, query.page, query.page_size
        repository_filter = RepositoryFilter.build(language=query.language, search=query.search)

        try:
            snapshots = self._storage.find_snapshots(time_range, repository_filter)

            if not snapshots:
                logger.info(f"No {time_range.value} snapshots found, falling back to star ranking")
                return self._star_ranking(repository_filter, page, page_size)

            entries = rank(
                RepositoryWithTrendingScore(repository, snapshot.trending_score)
                for snapshot, repository in latest_per_repository(snapshots)
            )
            repos, pagination = paginate(entries, page, page_size)

            return TrendingPage(repos=repos, pagination=pagination, last_updated=self._last_updated())

        except Exception as e:
            logger.error(f"Error fetching {time_range.value} trending repositories: {e}")
            raise InternalError("Failed to fetch trending repositories") from e

    def _star_ranking(self, repository_filter: RepositoryFilter, page: int, page_size: int) -> TrendingPage:
        total = self._storage.count_repositories(repository_filter)
        repositories = self._storage.find_repositories(
            repository_filter,
            limit=page_size,
            offset=(page - 1) * page_size
        )
        return TrendingPage(
            repos=[RepositoryWithTrendingScore(repository, 0.0) for repository in repositories],
            pagination=build_pagination(page, page_size, total),
            last_updated=self._last_updated()
        )

    def _last_updated(self) -> datetime:
        latest = self._storage.latest_sync_time()
        return latest if latest is not None else self._clock()

    def get_by_full_name(self, full_name: str) -> Optional[Repository]:
        """Look up a repository by owner/name; None when it is not stored.

        Raises:
            InvalidQuery: When the name is not of the form owner/name
            InternalError: When the store fails
        """
        full_name = parse_full_name(full_name)

        try:
            return self._storage.find_repository_by_full_name(full_name)
        except Exception as e:
            logger.error(f"Error fetching repository {full_name}: {e}")
            raise InternalError("Failed to fetch repository") from e
