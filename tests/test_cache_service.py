from datetime import datetime

import fakeredis
import fakeredis.aioredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.config import Settings
from app.db.redis import create_redis_client
from app.services.cache_service import CacheService


class BrokenRedis:
    """Every command fails the way a dropped connection does."""

    async def _fail(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    get = set = delete = ping = info = _fail

    async def scan_iter(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")
        yield  # pragma: no cover


@pytest.fixture
def cache():
    return CacheService(fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True))


@pytest.fixture
def broken_cache():
    return CacheService(BrokenRedis())


async def test_set_get_delete_round_trip(cache):
    assert await cache.set("fleet_stats_v1", {"vehicles": {"total": 2}}, 60)
    assert await cache.get("fleet_stats_v1") == {"vehicles": {"total": 2}}

    assert await cache.delete("fleet_stats_v1")
    assert await cache.get("fleet_stats_v1") is None


async def test_values_are_json_encoded(cache):
    await cache.set("doc_status_VEHICLE_1", {"expiry_date": datetime(2025, 1, 2, 3, 4, 5)})
    assert await cache.get("doc_status_VEHICLE_1") == {"expiry_date": "2025-01-02T03:04:05"}


async def test_set_applies_ttl(cache):
    await cache.set("vendor_dashboard_1", {"ok": True}, 120)
    ttl = await cache.client.ttl("vendor_dashboard_1")
    assert 0 < ttl <= 120


async def test_clear_by_pattern_only_removes_matching_keys(cache):
    await cache.set("vendor_hierarchy_a", 1)
    await cache.set("vendor_hierarchy_b", 2)
    await cache.set("fleet_stats_a", 3)

    assert await cache.clear_by_pattern("vendor_hierarchy_*")

    assert await cache.get("vendor_hierarchy_a") is None
    assert await cache.get("vendor_hierarchy_b") is None
    assert await cache.get("fleet_stats_a") == 3


async def test_remember_computes_once_then_hits(cache):
    calls = []

    async def compute():
        calls.append(1)
        return {"value": len(calls)}

    assert await cache.remember("compliance_report_x", 60, compute) == {"value": 1}
    assert await cache.remember("compliance_report_x", 60, compute) == {"value": 1}
    assert len(calls) == 1


async def test_remember_does_not_store_none(cache):
    async def compute():
        return None

    assert await cache.remember("vendor_hierarchy_missing", 60, compute) is None
    assert await cache.client.exists("vendor_hierarchy_missing") == 0


async def test_cache_errors_degrade_to_misses(broken_cache):
    assert await broken_cache.get("any") is None
    assert await broken_cache.set("any", {"a": 1}) is False
    assert await broken_cache.delete("any") is False
    assert await broken_cache.clear_by_pattern("any_*") is False
    assert await broken_cache.is_connected() is False
    assert (await broken_cache.get_stats())["status"] == "disconnected"


async def test_remember_falls_back_to_computation_when_redis_is_down(broken_cache):
    async def build(vendor_id):
        return {"vendor": {"id": vendor_id, "children": []}}

    result = await broken_cache.cache_vendor_hierarchy("v1", build)
    assert result == {"vendor": {"id": "v1", "children": []}}


async def test_is_connected(cache):
    assert await cache.is_connected() is True


def test_redis_client_uses_bounded_timeouts():
    settings = Settings(REDIS_URL="redis://cache.internal:6380/1", REDIS_CONNECT_TIMEOUT=0.5, REDIS_SOCKET_TIMEOUT=1.5)

    client = create_redis_client(settings)

    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["socket_connect_timeout"] == 0.5
    assert kwargs["socket_timeout"] == 1.5
    assert kwargs["host"] == "cache.internal"
    assert kwargs.get("retry_on_timeout", False) is False
