# app/services/vehicle_service.py
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.config import AGGREGATE_CACHE_TTL, COLLECTION_DRIVERS, COLLECTION_VEHICLES
from app.core.exceptions import Conflict, NotFound, ValidationFailed
from app.models.enums import EntityType
from app.models.vehicle import VehicleCreate, VehicleUpdate
from app.services.cache_service import CacheService, VENDOR_VEHICLES_KEY
from app.services.document_service import DocumentService
from app.services.fleet_stats_service import FleetStatsService
from app.services.hierarchy_service import HierarchyService
from app.utiles.custom_helpers import _gen_id, _storage_now
from app.utiles.logger import get_logger

logger = get_logger(__name__)

PROJECTION = {"_id": 0}


def _normalize_registration(number: str) -> str:
    """Format registration number → strip spaces + uppercase."""
    return number.strip().upper()


class VehicleService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        cache: CacheService,
        hierarchy: HierarchyService,
        documents: DocumentService,
        fleet_stats: FleetStatsService,
    ):
        self.db = db
        self.cache = cache
        self.hierarchy = hierarchy
        self.documents = documents
        self.fleet_stats = fleet_stats

    @property
    def vehicles(self):
        return self.db[COLLECTION_VEHICLES]

    async def _ensure_registration_free(self, registration_number: str, exclude_vehicle_id: Optional[str] = None):
        query: Dict[str, Any] = {"registration_number": registration_number}
        if exclude_vehicle_id:
            query["vehicle_id"] = {"$ne": exclude_vehicle_id}
        if await self.vehicles.find_one(query, {"_id": 1}):
            logger.warning("Vehicle registration number already exists: %s", registration_number)
            raise Conflict("Vehicle with this registration number already exists")

    # --------------------------
    # Create vehicle
    # --------------------------
    async def create_vehicle(self, actor: Dict[str, Any], payload: VehicleCreate) -> Dict[str, Any]:
        """
        Register a vehicle owned by the calling vendor.
        - Rejects a duplicate registration number
        - Inline documents become unverified document records
        """
        registration_number = _normalize_registration(payload.registration_number)
        await self._ensure_registration_free(registration_number)

        now = _storage_now()
        doc = {
            "vehicle_id": _gen_id(),
            "registration_number": registration_number,
            "model": payload.model.strip(),
            "seating_capacity": payload.seating_capacity,
            "fuel_type": payload.fuel_type.value,
            "status": payload.status.value,
            "vendor_id": actor["vendor_id"],
            "assigned_driver_id": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.vehicles.insert_one(doc)
        except DuplicateKeyError as e:
            logger.exception("Duplicate on create_vehicle for registration_number=%s", registration_number)
            raise Conflict("Vehicle with this registration number already exists") from e
        doc.pop("_id", None)

        embedded = payload.documents.model_dump(exclude_none=True) if payload.documents else None
        created_docs = await self.documents.create_embedded_documents(
            EntityType.VEHICLE, doc["vehicle_id"], embedded, actor["vendor_id"], actor["vendor_id"]
        )
        await self.fleet_stats.invalidate(actor["vendor_id"])

        logger.info("Vehicle registered: vehicle_id=%s vendor_id=%s", doc["vehicle_id"], actor["vendor_id"])
        return {**doc, "documents": created_docs}

    # --------------------------
    # Read
    # --------------------------
    async def get_vehicle(self, vehicle_id: str) -> Dict[str, Any]:
        vehicle = await self.vehicles.find_one({"vehicle_id": vehicle_id}, PROJECTION)
        if not vehicle:
            logger.warning("Vehicle not found: vehicle_id=%s", vehicle_id)
            raise NotFound("Vehicle not found")
        return vehicle

    async def get_managed_vehicle(self, actor: Dict[str, Any], vehicle_id: str) -> Dict[str, Any]:
        vehicle = await self.get_vehicle(vehicle_id)
        await self.hierarchy.ensure_can_manage(actor, vehicle["vendor_id"])
        return vehicle

    async def list_vehicles(self, vendor_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return await self.vehicles.find({"vendor_id": vendor_id, "status": status}, PROJECTION).to_list(None)
        return await self.cache.remember(
            VENDOR_VEHICLES_KEY.format(vendor_id),
            AGGREGATE_CACHE_TTL,
            lambda: self.vehicles.find({"vendor_id": vendor_id}, PROJECTION).to_list(None),
        )

    # --------------------------
    # Update vehicle
    # --------------------------
    async def update_vehicle(self, vehicle_id: str, payload: VehicleUpdate) -> Dict[str, Any]:
        update_fields = payload.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        if not update_fields:
            raise ValidationFailed("At least one field must be provided for update")

        if "registration_number" in update_fields:
            update_fields["registration_number"] = _normalize_registration(update_fields["registration_number"])
            await self._ensure_registration_free(update_fields["registration_number"], exclude_vehicle_id=vehicle_id)
        update_fields["updated_at"] = _storage_now()

        updated = await self.vehicles.find_one_and_update(
            {"vehicle_id": vehicle_id},
            {"$set": update_fields},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            logger.error("Vehicle update failed: vehicle not found (vehicle_id=%s)", vehicle_id)
            raise NotFound("Vehicle not found")

        await self.fleet_stats.invalidate(updated["vendor_id"])
        logger.info("Vehicle updated: vehicle_id=%s fields=%s", vehicle_id, sorted(update_fields))
        return updated

    # --------------------------
    # Delete vehicle
    # --------------------------
    async def delete_vehicle(self, vehicle_id: str) -> Dict[str, Any]:
        """Hard delete; frees the assigned driver and drops the vehicle's documents."""
        vehicle = await self.get_vehicle(vehicle_id)

        if vehicle.get("assigned_driver_id"):
            await self.db[COLLECTION_DRIVERS].update_one(
                {"driver_id": vehicle["assigned_driver_id"], "assigned_vehicle_id": vehicle_id},
                {"$set": {"assigned_vehicle_id": None, "updated_at": _storage_now()}},
            )
        await self.documents.delete_entity_documents(EntityType.VEHICLE, vehicle_id, vehicle["vendor_id"])
        await self.vehicles.delete_one({"vehicle_id": vehicle_id})
        await self.fleet_stats.invalidate(vehicle["vendor_id"])

        logger.info("Vehicle deleted: vehicle_id=%s", vehicle_id)
        return {"message": "Vehicle deleted successfully", "vehicle_id": vehicle_id}
