# app/services/fleet_stats_service.py
import asyncio
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import COLLECTION_VENDORS, COLLECTION_VEHICLES, COLLECTION_DRIVERS
from app.models.enums import DriverStatus, VehicleStatus, VendorType
from app.services.cache_service import (
    CacheService,
    COMPLIANCE_KEY,
    DASHBOARD_KEY,
    FLEET_STATS_KEY,
    VENDOR_DRIVERS_KEY,
    VENDOR_VEHICLES_KEY,
)
from app.utiles.logger import get_logger

logger = get_logger(__name__)


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


class FleetStatsService:
    """Per-vendor fleet aggregates (vehicles, drivers, direct child vendors)."""

    def __init__(self, db: AsyncIOMotorDatabase, cache: CacheService):
        self.db = db
        self.cache = cache

    async def _fleet(self, vendor_id: str):
        vehicles, drivers = await asyncio.gather(
            self.db[COLLECTION_VEHICLES].find({"vendor_id": vendor_id}, {"_id": 0}).to_list(None),
            self.db[COLLECTION_DRIVERS].find({"vendor_id": vendor_id}, {"_id": 0}).to_list(None),
        )
        return vehicles, drivers

    # --------------------------
    # Fleet stats (cached)
    # --------------------------
    async def build_fleet_stats(self, vendor_id: str) -> Dict[str, Any]:
        (vehicles, drivers), vendors = await asyncio.gather(
            self._fleet(vendor_id),
            self.db[COLLECTION_VENDORS].find({"parent_vendor_id": vendor_id}, {"_id": 0}).to_list(None),
        )
        return {
            "vehicles": {
                "total": len(vehicles),
                "active": sum(1 for v in vehicles if v.get("status") == VehicleStatus.ACTIVE.value),
                "inactive": sum(1 for v in vehicles if v.get("status") == VehicleStatus.INACTIVE.value),
            },
            "drivers": {
                "total": len(drivers),
                "active": sum(1 for d in drivers if d.get("status") == DriverStatus.ACTIVE.value),
                "inactive": sum(1 for d in drivers if d.get("status") == DriverStatus.INACTIVE.value),
            },
            "vendors": {
                "total": len(vendors),
                "active": sum(1 for v in vendors if v.get("is_active")),
                "inactive": sum(1 for v in vendors if not v.get("is_active")),
            },
        }

    async def get_fleet_stats(self, vendor_id: str) -> Dict[str, Any]:
        return await self.cache.cache_fleet_stats(vendor_id, self.build_fleet_stats)

    async def invalidate(self, vendor_id: str):
        await self.cache.delete(
            FLEET_STATS_KEY.format(vendor_id),
            DASHBOARD_KEY.format(vendor_id),
            VENDOR_VEHICLES_KEY.format(vendor_id),
            VENDOR_DRIVERS_KEY.format(vendor_id),
            COMPLIANCE_KEY.format(vendor_id),
        )

    # --------------------------
    # Dashboard reports
    # --------------------------
    async def get_vendor_statistics(self, vendor_id: str) -> Dict[str, Any]:
        vehicles, drivers = await self._fleet(vendor_id)
        ratings = [d.get("rating") or 0 for d in drivers]
        return {
            "total_vehicles": len(vehicles),
            "active_vehicles": sum(1 for v in vehicles if v.get("status") == VehicleStatus.ACTIVE.value),
            "total_drivers": len(drivers),
            "active_drivers": sum(1 for d in drivers if d.get("status") == DriverStatus.ACTIVE.value),
            "total_trips": sum(d.get("total_trips") or 0 for d in drivers),
            "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else 0,
        }

    async def get_status_counts(self, vendor: Dict[str, Any]) -> Dict[str, Any]:
        vendor_id = vendor["vendor_id"]
        vendor_type = vendor.get("vendor_type")
        if vendor_type == VendorType.SUPER.value:
            child_types: List[str] = [VendorType.CITY.value]
        elif vendor_type == VendorType.CITY.value:
            child_types = [VendorType.SUB.value, VendorType.LOCAL.value]
        elif vendor_type == VendorType.SUB.value:
            child_types = [VendorType.LOCAL.value]
        else:
            child_types = []

        (vehicles, drivers), vendors = await asyncio.gather(
            self._fleet(vendor_id),
            self.db[COLLECTION_VENDORS].find(
                {"parent_vendor_id": vendor_id, "vendor_type": {"$in": child_types}}, {"_id": 0}
            ).to_list(None),
        )
        return {
            "vehicles": {
                "active": sum(1 for v in vehicles if v.get("status") == VehicleStatus.ACTIVE.value),
                "inactive": sum(1 for v in vehicles if v.get("status") == VehicleStatus.INACTIVE.value),
            },
            "drivers": {
                "active": sum(1 for d in drivers if d.get("status") == DriverStatus.ACTIVE.value),
                "inactive": sum(1 for d in drivers if d.get("status") == DriverStatus.INACTIVE.value),
            },
            "vendors": {
                "active": sum(1 for v in vendors if v.get("is_active")),
                "inactive": sum(1 for v in vendors if not v.get("is_active")),
            },
        }

    async def get_fleet_status(self, vendor_id: str) -> Dict[str, Any]:
        vehicles = await self.db[COLLECTION_VEHICLES].find({"vendor_id": vendor_id}, {"_id": 0}).to_list(None)
        by_fuel_type: Dict[str, int] = {}
        for v in vehicles:
            by_fuel_type[v.get("fuel_type")] = by_fuel_type.get(v.get("fuel_type"), 0) + 1
        return {
            "total": len(vehicles),
            "active": sum(1 for v in vehicles if v.get("status") == VehicleStatus.ACTIVE.value),
            "inactive": sum(1 for v in vehicles if v.get("status") == VehicleStatus.INACTIVE.value),
            "maintenance": sum(1 for v in vehicles if v.get("status") == VehicleStatus.MAINTENANCE.value),
            "assigned": sum(1 for v in vehicles if v.get("assigned_driver_id")),
            "unassigned": sum(1 for v in vehicles if not v.get("assigned_driver_id")),
            "by_fuel_type": by_fuel_type,
        }

    async def get_driver_availability(self, vendor_id: str) -> Dict[str, Any]:
        drivers = await self.db[COLLECTION_DRIVERS].find({"vendor_id": vendor_id}, {"_id": 0}).to_list(None)
        return {
            "total": len(drivers),
            "available": sum(
                1 for d in drivers
                if d.get("status") == DriverStatus.ACTIVE.value and not d.get("assigned_vehicle_id")
            ),
            "assigned": sum(1 for d in drivers if d.get("assigned_vehicle_id")),
            "suspended": sum(1 for d in drivers if d.get("status") == DriverStatus.SUSPENDED.value),
            "inactive": sum(1 for d in drivers if d.get("status") == DriverStatus.INACTIVE.value),
        }

    async def get_operational_metrics(self, vendor_id: str) -> Dict[str, Any]:
        vehicles, drivers = await self._fleet(vendor_id)
        active_vehicles = sum(1 for v in vehicles if v.get("status") == VehicleStatus.ACTIVE.value)
        active_drivers = sum(1 for d in drivers if d.get("status") == DriverStatus.ACTIVE.value)
        assignments = sum(1 for v in vehicles if v.get("assigned_driver_id"))
        return {
            "fleet_utilization": {
                "total_vehicles": len(vehicles),
                "active_vehicles": active_vehicles,
                "utilization_rate": _rate(active_vehicles, len(vehicles)),
            },
            "driver_utilization": {
                "total_drivers": len(drivers),
                "active_drivers": active_drivers,
                "utilization_rate": _rate(active_drivers, len(drivers)),
            },
            "assignment_efficiency": {
                "total_assignments": assignments,
                "assignment_rate": _rate(assignments, len(vehicles)),
            },
        }
