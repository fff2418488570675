"""Redis implementation of the response cache."""
import json
import logging
from typing import Any, Dict, Optional
from redis.asyncio import Redis
from trending.domain.github_interface import IResponseCache


logger = logging.getLogger(__name__)


class RedisResponseCache(IResponseCache):
    """Stores JSON-encoded responses under string keys with a TTL.

    Errors from Redis or from (de)serialization propagate; callers that treat
    the cache as optional catch them.
    """

    def __init__(self, client: Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> 'RedisResponseCache':
        """Build a cache from a ``redis://`` URL."""
        logger.info("Using Redis response cache")
        return cls(Redis.from_url(url))

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        await self._client.setex(key, ttl_seconds, json.dumps(value))

    async def close(self) -> None:
        await self._client.aclose()
