# app/services/monitoring_service.py
import asyncio
import os
import resource
import time
from collections import deque
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.services.cache_service import CacheService
from app.utiles.custom_helpers import _now_utc
from app.utiles.logger import get_logger

logger = get_logger(__name__)

MAX_SAMPLES = 100
MAX_RESPONSE_TIMES = 1000


class MonitoringService:
    """In-memory request/error counters plus periodic memory and CPU samples."""

    def __init__(self, db: AsyncIOMotorDatabase, cache: CacheService, sample_seconds: int = 60):
        self.db = db
        self.cache = cache
        self.sample_seconds = sample_seconds
        self.start_time = time.monotonic()
        self.requests = {"total": 0, "success": 0, "failed": 0}
        self.errors: Dict[str, Any] = {"total": 0, "by_type": {}}
        self.response_times = deque(maxlen=MAX_RESPONSE_TIMES)
        self.memory_samples = deque(maxlen=MAX_SAMPLES)
        self.cpu_samples = deque(maxlen=MAX_SAMPLES)
        self._sampler: Optional[asyncio.Task] = None

    # --------------------------
    # Tracking
    # --------------------------
    def track_request(self, method: str, path: str, status_code: int, duration_ms: float):
        self.requests["total"] += 1
        if 200 <= status_code < 400:
            self.requests["success"] += 1
        else:
            self.requests["failed"] += 1
        self.response_times.append(duration_ms)
        logger.info("API Request %s %s -> %s (%.1f ms)", method, path, status_code, duration_ms)

    def track_error(self, error: BaseException, method: str = "", path: str = ""):
        error_type = type(error).__name__
        self.errors["total"] += 1
        self.errors["by_type"][error_type] = self.errors["by_type"].get(error_type, 0) + 1
        logger.error("Error occurred on %s %s: %s: %s", method, path, error_type, error)

    def sample_memory(self):
        usage = resource.getrusage(resource.RUSAGE_SELF)
        self.memory_samples.append({"timestamp": _now_utc(), "max_rss_kb": usage.ru_maxrss})

    def sample_cpu(self):
        usage = resource.getrusage(resource.RUSAGE_SELF)
        self.cpu_samples.append({
            "timestamp": _now_utc(),
            "user": usage.ru_utime,
            "system": usage.ru_stime,
        })

    # --------------------------
    # Periodic sampling
    # --------------------------
    def start_monitoring(self):
        if self._sampler and not self._sampler.done():
            return
        self._sampler = asyncio.create_task(self._sample_loop(), name="monitoring:sampler")
        logger.info("System monitoring started (every %ss)", self.sample_seconds)

    async def _sample_loop(self):
        while True:
            self.sample_memory()
            self.sample_cpu()
            await asyncio.sleep(self.sample_seconds)

    def stop_monitoring(self):
        if self._sampler:
            self._sampler.cancel()
            self._sampler = None
            logger.info("System monitoring stopped")

    # --------------------------
    # Reports
    # --------------------------
    def average_response_time(self) -> float:
        if not self.response_times:
            return 0.0
        return round(sum(self.response_times) / len(self.response_times), 2)

    async def database_status(self) -> Dict[str, Any]:
        try:
            await self.db.command("ping")
            collections = await self.db.list_collection_names()
            return {"status": "connected", "collections": len(collections)}
        except Exception as e:
            logger.error("Error getting database metrics: %s", e)
            return {"status": "disconnected"}

    async def get_system_metrics(self) -> Dict[str, Any]:
        usage = resource.getrusage(resource.RUSAGE_SELF)
        database, redis_stats = await asyncio.gather(self.database_status(), self.cache.get_stats())
        return {
            "uptime": round(time.monotonic() - self.start_time, 2),
            "memory": {"max_rss_kb": usage.ru_maxrss},
            "cpu": {
                "load_avg": list(os.getloadavg()),
                "cpu_count": os.cpu_count(),
                "user_time": usage.ru_utime,
                "system_time": usage.ru_stime,
            },
            "requests": dict(self.requests),
            "errors": {"total": self.errors["total"], "by_type": dict(self.errors["by_type"])},
            "performance": {
                "average_response_time": self.average_response_time(),
                "memory_usage": list(self.memory_samples),
                "cpu_usage": list(self.cpu_samples),
            },
            "database": database,
            "redis": redis_stats,
        }

    async def get_request_stats(self) -> Dict[str, Any]:
        return {
            "requests": dict(self.requests),
            "errors": {"total": self.errors["total"], "by_type": dict(self.errors["by_type"])},
            "performance": {"average_response_time": self.average_response_time()},
        }

    async def get_resource_usage(self) -> Dict[str, Any]:
        metrics = await self.get_system_metrics()
        return {key: metrics[key] for key in ("memory", "cpu", "database", "redis")}
