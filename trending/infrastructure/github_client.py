"""GitHub GraphQL API client implementation with caching and rate limit tracking."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
import aiohttp
from gql import gql, Client
from gql.transport.aiohttp import AIOHTTPTransport
from gql.transport.exceptions import (
    TransportError,
    TransportQueryError,
    TransportServerError
)
from trending.domain.errors import ConfigurationError, SourceUnavailable
from trending.domain.github_interface import IResponseCache, ISearchClient, ITrendingSource
from trending.domain.models import Repository, TimeRange


logger = logging.getLogger(__name__)

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
MAX_CANDIDATES = 100
SEARCH_CACHE_TTL_SECONDS = 1800


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubGraphQLClient(ISearchClient):
    """GitHub GraphQL search client.

    Implements the ISearchClient port. Upstream failures are surfaced as
    SourceUnavailable and never retried here; the caller decides what a
    failed search costs.
    """

    # GraphQL query searching repositories with the fields a sync stores
    SEARCH_QUERY = gql("""
        query SearchRepositories($query: String!, $first: Int!) {
            search(query: $query, type: REPOSITORY, first: $first) {
                repositoryCount
                nodes {
                    ... on Repository {
                        databaseId
                        name
                        nameWithOwner
                        owner {
                            login
                        }
                        url
                        description
                        primaryLanguage {
                            name
                        }
                        stargazerCount
                        forkCount
                        issues(states: OPEN) {
                            totalCount
                        }
                        repositoryTopics(first: 20) {
                            nodes {
                                topic {
                                    name
                                }
                            }
                        }
                        createdAt
                        updatedAt
                    }
                }
            }
            rateLimit {
                remaining
                resetAt
            }
        }
    """)

    def __init__(self, access_token: str, page_size: int = MAX_CANDIDATES, timeout: int = 30):
        """Initialize GitHub client.

        Args:
            access_token: GitHub personal access token
            page_size: Number of repositories to request per search (max 100)
            timeout: Request timeout in seconds

        Raises:
            ConfigurationError: When no access token is given
        """
        if not access_token:
            raise ConfigurationError("GITHUB_TOKEN must be set")
        self._access_token = access_token
        self._page_size = min(page_size, MAX_CANDIDATES)  # GitHub max is 100
        self._timeout = timeout
        self._transport: Optional[AIOHTTPTransport] = None
        self._client: Optional[Client] = None
        self._rate_limit_remaining: Optional[int] = None
        self._rate_limit_reset_at: Optional[datetime] = None

    def _init_client(self) -> None:
        """Initialize the GraphQL client (lazy initialization)."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._access_token}"}
            self._transport = AIOHTTPTransport(
                url=GITHUB_GRAPHQL_URL,
                headers=headers,
                timeout=self._timeout
            )
            self._client = Client(
                transport=self._transport,
                fetch_schema_from_transport=False,
                execute_timeout=self._timeout
            )

    def _check_rate_limit(self) -> None:
        """Fail fast while the quota is known to be exhausted."""
        if self._rate_limit_remaining == 0 and self._rate_limit_reset_at:
            if self._rate_limit_reset_at > datetime.now(timezone.utc):
                raise SourceUnavailable(
                    f"rate limit exhausted until {self._rate_limit_reset_at.isoformat()}",
                    status=403
                )

    def _record_rate_limit(self, result: Dict[str, Any]) -> None:
        rate_limit = result.get("rateLimit") or {}
        if "remaining" in rate_limit:
            self._rate_limit_remaining = rate_limit["remaining"]
        self._rate_limit_reset_at = _parse_timestamp(rate_limit.get("resetAt"))
        logger.info(
            f"Rate limit remaining: {self._rate_limit_remaining}, "
            f"resets at: {self._rate_limit_reset_at}"
        )

    async def _execute(self, search_query: str) -> Dict[str, Any]:
        self._init_client()
        async with self._client as session:
            return await session.execute(
                self.SEARCH_QUERY,
                variable_values={"query": search_query, "first": self._page_size}
            )

    async def search(self, query: str, sort: str = "stars", order: str = "desc") -> Dict[str, Any]:
        """Search repositories.

        The sort/order pair is sent as GitHub's ``sort:<field>-<order>``
        search qualifier.

        Raises:
            SourceUnavailable: When GitHub does not answer successfully
        """
        self._check_rate_limit()
        search_query = f"{query} sort:{sort}-{order}"

        try:
            result = await self._execute(search_query)
        except TransportServerError as e:
            logger.error(f"GitHub search failed with status {e.code}: {e}")
            raise SourceUnavailable(str(e), status=e.code) from e
        except TransportQueryError as e:
            messages = [error.get("message", str(error)) for error in (e.errors or [])]
            message = ", ".join(messages) or str(e)
            logger.error(f"GitHub search returned errors: {message}")
            raise SourceUnavailable(message) from e
        except aiohttp.ClientResponseError as e:
            logger.error(f"GitHub search failed with status {e.status}: {e.message}")
            raise SourceUnavailable(e.message, status=e.status) from e
        except (TransportError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error executing GraphQL search: {e!r}")
            raise SourceUnavailable(str(e) or type(e).__name__) from e

        self._record_rate_limit(result)
        search_result = result.get("search") or {}
        return {
            "items": [node for node in search_result.get("nodes") or [] if node],
            "totalCount": search_result.get("repositoryCount", 0),
        }

    async def close(self) -> None:
        """Close the GraphQL client and transport."""
        if self._transport:
            await self._transport.close()
            self._transport = None
            self._client = None


class CachedSearchClient(ISearchClient):
    """Read-through cache around another search client.

    Caching is best effort: any cache failure is logged and treated as a
    miss, so the result is always the inner client's answer or a cached copy
    of it.
    """

    def __init__(
        self,
        inner: ISearchClient,
        cache: IResponseCache,
        ttl_seconds: int = SEARCH_CACHE_TTL_SECONDS
    ):
        self._inner = inner
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def cache_key(query: str, sort: str, order: str) -> str:
        return f"github:search:{query}:{sort}:{order}"

    async def search(self, query: str, sort: str = "stars", order: str = "desc") -> Dict[str, Any]:
        key = self.cache_key(query, sort, order)

        try:
            cached = await self._cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            cached = None

        if cached is not None and not (isinstance(cached, dict) and isinstance(cached.get("items"), list)):
            logger.warning(f"Ignoring malformed cache entry for {key}")
            cached = None

        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached

        result = await self._inner.search(query, sort, order)

        try:
            await self._cache.set(key, result, self._ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

        return result

    async def close(self) -> None:
        await self._inner.close()


class GitHubTrendingSource(ITrendingSource):
    """Trending candidates: repositories pushed within the period, most starred first."""

    def __init__(
        self,
        search_client: ISearchClient,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self._search_client = search_client
        self._clock = clock

    def build_query(self, time_range: TimeRange) -> str:
        """Search qualifier selecting repositories pushed within the window."""
        since = self._clock() - timedelta(days=time_range.days)
        return f"pushed:>={since.date().isoformat()}"

    async def fetch_trending_candidates(self, time_range: TimeRange) -> List[Repository]:
        query = self.build_query(time_range)
        logger.info(f"Fetching {time_range.value} trending candidates with query {query!r}")

        result = await self._search_client.search(query, "stars", "desc")

        repositories = []
        for item in result.get("items", [])[:MAX_CANDIDATES]:
            repository = parse_repository(item)
            if repository is not None:
                repositories.append(repository)
        return repositories

    async def close(self) -> None:
        await self._search_client.close()


def parse_repository(node: Dict[str, Any]) -> Optional[Repository]:
    """Transform a GitHub search node into a domain entity.

    Returns None for nodes missing the identifying fields.
    """
    github_id = node.get("databaseId")
    owner = (node.get("owner") or {}).get("login")
    name = node.get("name")
    if github_id is None or not owner or not name:
        logger.warning(f"Skipping incomplete search result: {node.get('nameWithOwner')}")
        return None

    language = (node.get("primaryLanguage") or {}).get("name")
    issues = node.get("issues")
    topic_nodes = (node.get("repositoryTopics") or {}).get("nodes") or []
    topics = tuple(
        topic_node["topic"]["name"]
        for topic_node in topic_nodes
        if topic_node and topic_node.get("topic")
    )

    return Repository(
        github_id=int(github_id),
        owner=owner,
        name=name,
        url=node.get("url") or f"https://github.com/{owner}/{name}",
        description=node.get("description"),
        language=language,
        stargazers_count=node.get("stargazerCount", 0),
        forks_count=node.get("forkCount", 0),
        open_issues_count=issues.get("totalCount") if issues else None,
        topics=topics,
        created_at=_parse_timestamp(node.get("createdAt")),
        updated_at=_parse_timestamp(node.get("updatedAt"))
    )
