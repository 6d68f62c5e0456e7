# app/services/assignment_service.py
"""
Vehicle <-> driver pairing.

Both sides carry a pointer (``assigned_driver_id`` / ``assigned_vehicle_id``)
and they are written one after the other, vehicle first.
"""
import asyncio
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import COLLECTION_DRIVERS, COLLECTION_VEHICLES, COLLECTION_VENDORS
from app.core.exceptions import ValidationFailed
from app.services.driver_service import DriverService
from app.services.fleet_stats_service import FleetStatsService
from app.services.notification_service import NotificationService
from app.services.vehicle_service import VehicleService
from app.utiles.custom_helpers import _storage_now
from app.utiles.logger import get_logger

logger = get_logger(__name__)


class AssignmentService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        vehicles: VehicleService,
        drivers: DriverService,
        fleet_stats: FleetStatsService,
        notifier: NotificationService,
    ):
        self.db = db
        self.vehicles = vehicles
        self.drivers = drivers
        self.fleet_stats = fleet_stats
        self.notifier = notifier

    async def _notify(self, vehicle: Dict[str, Any], driver_id: str, action: str):
        owner = await self.db[COLLECTION_VENDORS].find_one({"vendor_id": vehicle["vendor_id"]}, {"email": 1})
        if owner and owner.get("email"):
            await self.notifier.send_assignment_notification(owner["email"], vehicle["vehicle_id"], driver_id, action)

    async def assign(self, actor: Dict[str, Any], vehicle_id: str, driver_id: str) -> Dict[str, Any]:
        vehicle, driver = await asyncio.gather(
            self.vehicles.get_managed_vehicle(actor, vehicle_id),
            self.drivers.get_managed_driver(actor, driver_id),
        )

        if vehicle["vendor_id"] != driver["vendor_id"]:
            raise ValidationFailed("Vehicle and driver must belong to the same vendor")
        if driver.get("assigned_vehicle_id") and driver["assigned_vehicle_id"] != vehicle_id:
            logger.error("Driver %s already assigned to vehicle %s", driver_id, driver["assigned_vehicle_id"])
            raise ValidationFailed("Driver is already assigned to another vehicle")
        if vehicle.get("assigned_driver_id") and vehicle["assigned_driver_id"] != driver_id:
            logger.error("Vehicle %s already assigned to driver %s", vehicle_id, vehicle["assigned_driver_id"])
            raise ValidationFailed("Vehicle is already assigned to another driver")

        now = _storage_now()
        await self.db[COLLECTION_VEHICLES].update_one(
            {"vehicle_id": vehicle_id}, {"$set": {"assigned_driver_id": driver_id, "updated_at": now}}
        )
        await self.db[COLLECTION_DRIVERS].update_one(
            {"driver_id": driver_id}, {"$set": {"assigned_vehicle_id": vehicle_id, "updated_at": now}}
        )
        await self.fleet_stats.invalidate(vehicle["vendor_id"])
        await self._notify(vehicle, driver_id, "ASSIGNED")

        logger.info("Driver %s assigned to vehicle %s", driver_id, vehicle_id)
        vehicle.update({"assigned_driver_id": driver_id, "updated_at": now})
        driver.update({"assigned_vehicle_id": vehicle_id, "updated_at": now})
        return {"vehicle": vehicle, "driver": driver}

    async def unassign_vehicle(self, actor: Dict[str, Any], vehicle_id: str) -> Dict[str, Any]:
        vehicle = await self.vehicles.get_managed_vehicle(actor, vehicle_id)
        driver_id = vehicle.get("assigned_driver_id")
        if not driver_id:
            raise ValidationFailed("Vehicle does not have an assigned driver")

        now = _storage_now()
        await self.db[COLLECTION_VEHICLES].update_one(
            {"vehicle_id": vehicle_id}, {"$set": {"assigned_driver_id": None, "updated_at": now}}
        )
        await self.db[COLLECTION_DRIVERS].update_one(
            {"driver_id": driver_id, "assigned_vehicle_id": vehicle_id},
            {"$set": {"assigned_vehicle_id": None, "updated_at": now}},
        )
        await self.fleet_stats.invalidate(vehicle["vendor_id"])
        await self._notify(vehicle, driver_id, "UNASSIGNED")

        logger.info("Driver %s unassigned from vehicle %s", driver_id, vehicle_id)
        vehicle.update({"assigned_driver_id": None, "updated_at": now})
        return {"vehicle": vehicle, "driver_id": driver_id}

    async def unassign_driver(self, actor: Dict[str, Any], driver_id: str) -> Dict[str, Any]:
        driver = await self.drivers.get_managed_driver(actor, driver_id)
        if not driver.get("assigned_vehicle_id"):
            raise ValidationFailed("Driver does not have an assigned vehicle")
        return await self.unassign_vehicle(actor, driver["assigned_vehicle_id"])
