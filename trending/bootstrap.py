"""Explicit construction of the service graph.

Nothing here is cached at module level; every caller gets the objects it
asked for and owns closing them.
"""
import logging
from typing import Optional
from trending.application.query_service import TrendingQueryService
from trending.application.sync_service import TrendingSyncService
from trending.config import Settings
from trending.domain.github_interface import IResponseCache, ISearchClient
from trending.domain.models import SyncResult
from trending.domain.repository_interface import IRepositoryStorage
from trending.infrastructure.github_client import (
    CachedSearchClient,
    GitHubGraphQLClient,
    GitHubTrendingSource
)
from trending.infrastructure.postgres_repository import PostgresTrendingStorage
from trending.infrastructure.redis_cache import RedisResponseCache


logger = logging.getLogger(__name__)


def create_storage(settings: Settings) -> PostgresTrendingStorage:
    return PostgresTrendingStorage(settings.connection_string)


def create_cache(settings: Settings) -> Optional[IResponseCache]:
    """Redis cache when REDIS_URL is set, otherwise no cache."""
    if not settings.redis_url:
        logger.info("REDIS_URL not set, GitHub search results will not be cached")
        return None
    return RedisResponseCache.from_url(settings.redis_url)


def create_sync_service(
    settings: Settings,
    storage: IRepositoryStorage,
    cache: Optional[IResponseCache] = None
) -> TrendingSyncService:
    """Wire the sync service.

    Raises:
        ConfigurationError: When GITHUB_TOKEN is missing
    """
    search_client: ISearchClient = GitHubGraphQLClient(settings.require_github_token())
    if cache is not None:
        search_client = CachedSearchClient(search_client, cache, settings.search_cache_ttl_seconds)
    return TrendingSyncService(GitHubTrendingSource(search_client), storage)


def create_query_service(storage: IRepositoryStorage) -> TrendingQueryService:
    return TrendingQueryService(storage)


async def run_sync(
    settings: Settings,
    storage: IRepositoryStorage,
    cache: Optional[IResponseCache] = None
) -> SyncResult:
    """Run one full sync and release the GitHub client afterwards.

    Raises:
        ConfigurationError: When GITHUB_TOKEN is missing; nothing is synced
    """
    service = create_sync_service(settings, storage, cache)
    try:
        return await service.sync()
    finally:
        await service.close()
