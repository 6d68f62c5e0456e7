# app/services/driver_service.py
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.config import AGGREGATE_CACHE_TTL, COLLECTION_DRIVERS, COLLECTION_VEHICLES
from app.core.exceptions import Conflict, NotFound, ValidationFailed
from app.models.driver import DriverCreate, DriverRatingUpdate, DriverUpdate
from app.models.enums import EntityType
from app.services.cache_service import CacheService, VENDOR_DRIVERS_KEY
from app.services.document_service import DocumentService
from app.services.fleet_stats_service import FleetStatsService
from app.services.hierarchy_service import HierarchyService
from app.utiles.custom_helpers import _gen_id, _normalize_email, _storage_now
from app.utiles.logger import get_logger

logger = get_logger(__name__)

PROJECTION = {"_id": 0}


class DriverService:
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
    def drivers(self):
        return self.db[COLLECTION_DRIVERS]

    async def _ensure_email_free(self, email: str, exclude_driver_id: Optional[str] = None):
        query: Dict[str, Any] = {"email": email}
        if exclude_driver_id:
            query["driver_id"] = {"$ne": exclude_driver_id}
        if await self.drivers.find_one(query, {"_id": 1}):
            logger.warning("Driver email already exists: %s", email)
            raise Conflict("Driver with this email already exists")

    async def create_driver(self, actor: Dict[str, Any], payload: DriverCreate) -> Dict[str, Any]:
        """Register a driver under the calling vendor."""
        email = _normalize_email(payload.email)
        await self._ensure_email_free(email)

        now = _storage_now()
        doc = {
            "driver_id": _gen_id(),
            "name": payload.name.strip(),
            "email": email,
            "phone": payload.phone.strip(),
            "status": payload.status.value,
            "vendor_id": actor["vendor_id"],
            "assigned_vehicle_id": None,
            "rating": 0,
            "total_trips": 0,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self.drivers.insert_one(doc)
        except DuplicateKeyError as e:
            logger.exception("Duplicate on create_driver for email=%s", email)
            raise Conflict("Driver with this email already exists") from e
        doc.pop("_id", None)

        embedded = payload.documents.model_dump(exclude_none=True) if payload.documents else None
        created_docs = await self.documents.create_embedded_documents(
            EntityType.DRIVER, doc["driver_id"], embedded, actor["vendor_id"], actor["vendor_id"]
        )
        await self.fleet_stats.invalidate(actor["vendor_id"])

        logger.info("Driver registered: driver_id=%s vendor_id=%s", doc["driver_id"], actor["vendor_id"])
        return {**doc, "documents": created_docs}

    async def get_driver(self, driver_id: str) -> Dict[str, Any]:
        driver = await self.drivers.find_one({"driver_id": driver_id}, PROJECTION)
        if not driver:
            logger.warning("Driver not found: driver_id=%s", driver_id)
            raise NotFound("Driver not found")
        return driver

    async def get_managed_driver(self, actor: Dict[str, Any], driver_id: str) -> Dict[str, Any]:
        driver = await self.get_driver(driver_id)
        await self.hierarchy.ensure_can_manage(actor, driver["vendor_id"])
        return driver

    async def list_drivers(self, vendor_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        if status:
            return await self.drivers.find({"vendor_id": vendor_id, "status": status}, PROJECTION).to_list(None)
        return await self.cache.remember(
            VENDOR_DRIVERS_KEY.format(vendor_id),
            AGGREGATE_CACHE_TTL,
            lambda: self.drivers.find({"vendor_id": vendor_id}, PROJECTION).to_list(None),
        )

    async def update_driver(self, driver_id: str, payload: DriverUpdate) -> Dict[str, Any]:
        update_fields = payload.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        if not update_fields:
            raise ValidationFailed("At least one field must be provided for update")

        if "email" in update_fields:
            update_fields["email"] = _normalize_email(update_fields["email"])
            await self._ensure_email_free(update_fields["email"], exclude_driver_id=driver_id)
        update_fields["updated_at"] = _storage_now()

        updated = await self.drivers.find_one_and_update(
            {"driver_id": driver_id},
            {"$set": update_fields},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("Driver not found")

        await self.fleet_stats.invalidate(updated["vendor_id"])
        logger.info("Driver updated: driver_id=%s fields=%s", driver_id, sorted(update_fields))
        return updated

    async def update_rating(self, driver_id: str, payload: DriverRatingUpdate) -> Dict[str, Any]:
        update: Dict[str, Any] = {"$set": {"rating": payload.rating, "updated_at": _storage_now()}}
        if payload.completed_trip:
            update["$inc"] = {"total_trips": 1}

        updated = await self.drivers.find_one_and_update(
            {"driver_id": driver_id}, update, projection=PROJECTION, return_document=ReturnDocument.AFTER
        )
        if not updated:
            raise NotFound("Driver not found")
        await self.fleet_stats.invalidate(updated["vendor_id"])
        logger.info("Driver %s rating set to %s (trips=%s)", driver_id, payload.rating, updated.get("total_trips"))
        return updated

    async def delete_driver(self, driver_id: str) -> Dict[str, Any]:
        """Hard delete; frees the assigned vehicle and drops the driver's documents."""
        driver = await self.get_driver(driver_id)

        if driver.get("assigned_vehicle_id"):
            await self.db[COLLECTION_VEHICLES].update_one(
                {"vehicle_id": driver["assigned_vehicle_id"], "assigned_driver_id": driver_id},
                {"$set": {"assigned_driver_id": None, "updated_at": _storage_now()}},
            )
        await self.documents.delete_entity_documents(EntityType.DRIVER, driver_id, driver["vendor_id"])
        await self.drivers.delete_one({"driver_id": driver_id})
        await self.fleet_stats.invalidate(driver["vendor_id"])

        logger.info("Driver deleted: driver_id=%s", driver_id)
        return {"message": "Driver deleted successfully", "driver_id": driver_id}
