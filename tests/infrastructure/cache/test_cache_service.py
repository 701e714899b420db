"""Tests for the Redis cache and permission map caching"""

import json
from unittest.mock import AsyncMock

import pytest

from shopfloor.application.services.authorization_service import AuthorizationService
from shopfloor.infrastructure.cache.redis_cache import CacheService


@pytest.fixture
def cache_service():
    """Cache service with a mocked Redis client"""
    service = CacheService(redis_client=AsyncMock())
    service._connected = True
    return service


@pytest.fixture
def disconnected_cache():
    return CacheService()


@pytest.mark.asyncio
async def test_get_hit_decodes_json(cache_service):
    cache_service.redis.get = AsyncMock(return_value='{"chat.send": 1}')

    assert await cache_service.get("permissions:u1") == {"chat.send": 1}
    cache_service.redis.get.assert_called_once_with("permissions:u1")


@pytest.mark.asyncio
async def test_set_uses_ttl(cache_service):
    result = await cache_service.set("permissions:u1", {"users.read": 2}, ttl=120)

    assert result is True
    key, ttl, payload = cache_service.redis.setex.call_args[0]
    assert (key, ttl) == ("permissions:u1", 120)
    assert json.loads(payload) == {"users.read": 2}


@pytest.mark.asyncio
async def test_redis_errors_degrade_to_miss(cache_service):
    cache_service.redis.get = AsyncMock(side_effect=ConnectionError("gone"))

    assert await cache_service.get("permissions:u1") is None


@pytest.mark.asyncio
async def test_delete_pattern_counts_keys(cache_service):
    async def scan_iter(match=None):
        for key in ("permissions:u1", "permissions:u2"):
            yield key

    cache_service.redis.scan_iter = scan_iter

    assert await cache_service.delete_pattern("permissions:*") == 2
    assert cache_service.redis.delete.call_count == 2


@pytest.mark.asyncio
async def test_unavailable_cache_is_a_no_op(disconnected_cache):
    assert disconnected_cache.is_available() is False
    assert await disconnected_cache.get("k") is None
    assert await disconnected_cache.set("k", 1) is False
    assert await disconnected_cache.delete("k") is False
    assert await disconnected_cache.delete_pattern("k*") == 0


@pytest.mark.asyncio
async def test_permission_map_served_from_cache(test_db):
    cache = AsyncMock(spec=CacheService)
    cache.get.return_value = {"production.read": "2"}
    service = AuthorizationService(test_db, cache_service=cache)

    permissions = await service.get_permissions("u1")

    assert permissions == {"production.read": 2}
    cache.get.assert_awaited_once_with("permissions:u1")
    cache.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_permission_map_cached_after_load(test_db, manager_user):
    cache = AsyncMock(spec=CacheService)
    cache.get.return_value = None
    service = AuthorizationService(test_db, cache_service=cache)

    permissions = await service.get_permissions(manager_user.id)

    assert permissions["timeTracking.viewAll"] == 2
    cache.set.assert_awaited_once()
    key, value = cache.set.call_args[0]
    assert key == f"permissions:{manager_user.id}"
    assert value == permissions


@pytest.mark.asyncio
async def test_invalidate_single_user_and_everyone(test_db):
    cache = AsyncMock(spec=CacheService)
    service = AuthorizationService(test_db, cache_service=cache)

    await service.invalidate("u1")
    await service.invalidate()

    cache.delete.assert_awaited_once_with("permissions:u1")
    cache.delete_pattern.assert_awaited_once_with("permissions:*")
