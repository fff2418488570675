"""Pure ranking helpers: deduplication, ordering and pagination."""
import math
from typing import Iterable, List, Sequence, Tuple, TypeVar

from trending.domain.models import (
    PaginationMeta,
    Repository,
    RepositoryWithTrendingScore,
    Snapshot,
)


T = TypeVar("T")


def latest_per_repository(
    snapshots: Iterable[Tuple[Snapshot, Repository]]
) -> List[Tuple[Snapshot, Repository]]:
    """Keeps the first snapshot seen for each repository.

    Input must be ordered by ``snapshot_date`` descending, so the first one
    seen is the most recent.
    """
    seen = set()
    latest = []
    for snapshot, repository in snapshots:
        if snapshot.repository_id in seen:
            continue
        seen.add(snapshot.repository_id)
        latest.append((snapshot, repository))
    return latest


def rank(entries: Iterable[RepositoryWithTrendingScore]) -> List[RepositoryWithTrendingScore]:
    """Orders by trending score, then star count, both descending.

    Full name breaks any remaining tie so the order is deterministic.
    """
    return sorted(
        entries,
        key=lambda entry: (
            -entry.trending_score,
            -entry.repository.stargazers_count,
            entry.repository.full_name,
        )
    )


def build_pagination(page: int, page_size: int, total: int) -> PaginationMeta:
    total_pages = math.ceil(total / page_size)
    return PaginationMeta(
        current_page=page,
        total_pages=total_pages,
        page_size=page_size,
        total_repos=total,
        has_next=page < total_pages,
        has_previous=page > 1
    )


def paginate(items: Sequence[T], page: int, page_size: int) -> Tuple[List[T], PaginationMeta]:
    """Slices one page out of ``items``; pages past the end are empty."""
    start_index = (page - 1) * page_size
    page_items = list(items[start_index:start_index + page_size])
    return page_items, build_pagination(page, page_size, len(items))
