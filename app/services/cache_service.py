# app/services/cache_service.py
"""
Redis-backed cache used as an optional side channel.

Nothing here raises on a Redis failure: reads degrade to a miss, writes
report False, and ``remember`` falls back to computing the value directly.
"""
import json
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi.encoders import jsonable_encoder
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import DEFAULT_CACHE_TTL, HIERARCHY_CACHE_TTL, AGGREGATE_CACHE_TTL
from app.utiles.logger import get_logger

logger = get_logger(__name__)

# Cache key prefixes
HIERARCHY_KEY = "vendor_hierarchy_{}"
FLEET_STATS_KEY = "fleet_stats_{}"
DASHBOARD_KEY = "vendor_dashboard_{}"
COMPLIANCE_KEY = "compliance_report_{}"
DOC_STATUS_KEY = "doc_status_{}_{}"
EXPIRING_DOCS_KEY = "expiring_docs_{}"
VENDOR_VEHICLES_KEY = "vendor_vehicles_{}"
VENDOR_DRIVERS_KEY = "vendor_drivers_{}"
ALL_VENDORS_KEY = "all_vendors_{}"

# Errors treated as "cache unavailable"
CACHE_ERRORS = (RedisError, OSError, ValueError, TypeError)


class CacheService:
    def __init__(self, client: Redis):
        self.client = client

    async def initialize(self) -> bool:
        """Ping Redis once at startup; a failure is logged, not fatal."""
        connected = await self.is_connected()
        if connected:
            logger.info("Redis cache service initialized")
        else:
            logger.error("Redis cache unavailable, continuing without cache")
        return connected

    async def is_connected(self) -> bool:
        try:
            return bool(await self.client.ping())
        except CACHE_ERRORS:
            return False

    # --------------------------
    # Primitive operations
    # --------------------------
    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self.client.get(key)
            return json.loads(value) if value is not None else None
        except CACHE_ERRORS as e:
            logger.error("Cache get error for key=%s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, expiry_in_seconds: int = DEFAULT_CACHE_TTL) -> bool:
        try:
            payload = json.dumps(jsonable_encoder(value))
            await self.client.set(key, payload, ex=expiry_in_seconds)
            return True
        except CACHE_ERRORS as e:
            logger.error("Cache set error for key=%s: %s", key, e)
            return False

    async def delete(self, *keys: str) -> bool:
        if not keys:
            return True
        try:
            await self.client.delete(*keys)
            return True
        except CACHE_ERRORS as e:
            logger.error("Cache delete error for keys=%s: %s", keys, e)
            return False

    async def clear_by_pattern(self, pattern: str) -> bool:
        """Delete every key matching a glob pattern, e.g. ``vendor_hierarchy_*``."""
        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if keys:
                await self.client.delete(*keys)
            logger.info("Cleared %s cache keys matching %s", len(keys), pattern)
            return True
        except CACHE_ERRORS as e:
            logger.error("Cache clear pattern error for pattern=%s: %s", pattern, e)
            return False

    async def get_stats(self) -> Dict[str, Any]:
        try:
            info = await self.client.info()
        except CACHE_ERRORS as e:
            logger.error("Cache stats error: %s", e)
            return {"status": "disconnected"}
        return {
            "status": "connected",
            "connected_clients": info.get("connected_clients"),
            "used_memory": info.get("used_memory"),
            "total_connections_received": info.get("total_connections_received"),
            "total_commands_processed": info.get("total_commands_processed"),
        }

    # --------------------------
    # Read-through wrappers
    # --------------------------
    async def remember(self, key: str, ttl: int, compute: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for ``key`` or compute, store and return it.
        Concurrent misses each recompute; ``None`` results are not cached.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s", key)
            return cached

        value = await compute()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def cache_vendor_hierarchy(self, vendor_id: str, build: Callable[[str], Awaitable[Any]]) -> Any:
        return await self.remember(HIERARCHY_KEY.format(vendor_id), HIERARCHY_CACHE_TTL, lambda: build(vendor_id))

    async def cache_fleet_stats(self, vendor_id: str, build: Callable[[str], Awaitable[Any]]) -> Any:
        return await self.remember(FLEET_STATS_KEY.format(vendor_id), AGGREGATE_CACHE_TTL, lambda: build(vendor_id))
