"""Tests for the Redis response cache."""
import asyncio

import pytest

from trending.infrastructure.redis_cache import RedisResponseCache


class FakeRedis:
    def __init__(self):
        self.values = {}
        self.ttls = {}
        self.closed = False

    async def get(self, key):
        return self.values.get(key)

    async def setex(self, key, ttl, value):
        self.values[key] = value.encode()
        self.ttls[key] = ttl

    async def aclose(self):
        self.closed = True


def test_values_are_stored_as_json_with_ttl():
    redis = FakeRedis()
    cache = RedisResponseCache(redis)

    asyncio.run(cache.set("github:search:q:stars:desc", {"items": [{"databaseId": 1}], "totalCount": 1}, 1800))

    assert redis.ttls["github:search:q:stars:desc"] == 1800
    assert asyncio.run(cache.get("github:search:q:stars:desc")) == {"items": [{"databaseId": 1}], "totalCount": 1}


def test_missing_key_is_a_miss():
    assert asyncio.run(RedisResponseCache(FakeRedis()).get("absent")) is None


def test_unserializable_values_raise():
    cache = RedisResponseCache(FakeRedis())

    with pytest.raises(TypeError):
        asyncio.run(cache.set("key", {"when": object()}, 60))


def test_close_closes_client():
    redis = FakeRedis()

    asyncio.run(RedisResponseCache(redis).close())

    assert redis.closed
