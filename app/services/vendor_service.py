# app/services/vendor_service.py
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.config import AGGREGATE_CACHE_TTL, COLLECTION_VENDORS
from app.core.exceptions import Conflict, InvalidCredentials, NotFound, PermissionDenied, ValidationFailed
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.document import DocumentUpload
from app.models.enums import EntityType, Permission, VendorType
from app.models.vendor import (
    BulkNotification,
    ChildVendorRegister,
    VendorProfileUpdate,
    VendorRegister,
)
from app.services.cache_service import CacheService, ALL_VENDORS_KEY, DASHBOARD_KEY
from app.services.document_service import DocumentService
from app.services.fleet_stats_service import FleetStatsService
from app.services.hierarchy_service import HierarchyService, VENDOR_PROJECTION
from app.services.notification_service import NotificationService
from app.utiles.custom_helpers import _gen_id, _normalize_email, _storage_now
from app.utiles.logger import get_logger

logger = get_logger(__name__)

# URL level segment -> vendor type it addresses
LEVEL_TYPES = {
    "city": VendorType.CITY.value,
    "sub": VendorType.SUB.value,
    "local": VendorType.LOCAL.value,
}


def has_permission(vendor: Dict[str, Any], permission) -> bool:
    """ALL grants every capability."""
    permission = permission.value if isinstance(permission, Permission) else permission
    granted = vendor.get("permissions") or []
    return Permission.ALL.value in granted or permission in granted


def _enum_values(items) -> List[str]:
    return [i.value if hasattr(i, "value") else i for i in items or []]


class VendorService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        cache: CacheService,
        hierarchy: HierarchyService,
        fleet_stats: FleetStatsService,
        documents: DocumentService,
        notifier: NotificationService,
    ):
        self.db = db
        self.cache = cache
        self.hierarchy = hierarchy
        self.fleet_stats = fleet_stats
        self.documents = documents
        self.notifier = notifier

    @property
    def vendors(self):
        return self.db[COLLECTION_VENDORS]

    async def _ensure_email_free(self, email: str, exclude_vendor_id: Optional[str] = None):
        query: Dict[str, Any] = {"email": email}
        if exclude_vendor_id:
            query["vendor_id"] = {"$ne": exclude_vendor_id}
        if await self.vendors.find_one(query, {"_id": 1}):
            logger.warning("Vendor email already registered: %s", email)
            raise Conflict("Vendor with this email already exists")

    async def _insert_vendor(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        try:
            await self.vendors.insert_one(doc)
        except DuplicateKeyError as e:
            logger.exception("Duplicate on vendor insert for email=%s", doc["email"])
            raise Conflict("Vendor with this email already exists") from e
        doc.pop("_id", None)
        doc.pop("password_hash", None)
        return doc

    def _new_vendor(self, name, email, password, vendor_type, parent_vendor_id, permissions, operating_area):
        now = _storage_now()
        return {
            "vendor_id": _gen_id(),
            "name": name.strip(),
            "email": _normalize_email(email),
            "password_hash": get_password_hash(password),
            "vendor_type": vendor_type,
            "parent_vendor_id": parent_vendor_id,
            "permissions": _enum_values(permissions),
            "operating_area": operating_area,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }

    # --------------------------
    # Registration / login
    # --------------------------
    async def register_super_vendor(self, payload: VendorRegister) -> Dict[str, Any]:
        """Self-registration is only open to SUPER vendors with no parent."""
        if payload.vendor_type != VendorType.SUPER or payload.parent_vendor_id:
            logger.warning("Rejected self registration of %s vendor", payload.vendor_type.value)
            raise ValidationFailed("Only SUPER vendors can self-register, and they cannot have a parent")

        email = _normalize_email(payload.email)
        await self._ensure_email_free(email)

        doc = self._new_vendor(
            payload.name, email, payload.password, VendorType.SUPER.value, None,
            payload.permissions, payload.operating_area.model_dump(),
        )
        vendor = await self._insert_vendor(doc)
        await self.cache.clear_by_pattern(ALL_VENDORS_KEY.format("*"))
        await self.notifier.send_welcome_notification(vendor["email"], vendor["vendor_id"], vendor["name"])

        logger.info("Super vendor registered: vendor_id=%s", vendor["vendor_id"])
        return {"vendor": vendor, "token": create_access_token(vendor["vendor_id"])}

    async def _authorize_child_registration(self, actor: Dict[str, Any], vendor_type: str, parent: Dict[str, Any]):
        actor_type = actor.get("vendor_type")
        if vendor_type == VendorType.CITY.value:
            allowed = actor_type == VendorType.SUPER.value and actor["vendor_id"] == parent["vendor_id"]
        elif vendor_type == VendorType.SUB.value:
            allowed = await self.hierarchy.can_manage(actor, parent["vendor_id"])
        else:
            # the CITY itself, its SUPER, or a SUB sitting under that CITY
            allowed = await self.hierarchy.can_manage(actor, parent["vendor_id"]) or (
                actor_type == VendorType.SUB.value and actor.get("parent_vendor_id") == parent["vendor_id"]
            )
        if not allowed:
            logger.error(
                "Vendor %s (%s) may not register a %s vendor under %s",
                actor["vendor_id"], actor_type, vendor_type, parent["vendor_id"],
            )
            raise PermissionDenied(f"You are not allowed to register a {vendor_type} vendor under this parent")

    async def register_child_vendor(
        self, actor: Dict[str, Any], vendor_type, payload: ChildVendorRegister
    ) -> Dict[str, Any]:
        vendor_type = vendor_type.value if isinstance(vendor_type, VendorType) else vendor_type
        parent = await self.hierarchy.get_vendor(payload.parent_vendor_id)
        if not parent:
            raise NotFound("Parent vendor not found")

        await self._authorize_child_registration(actor, vendor_type, parent)

        # LOCAL vendors are registered directly under a CITY; SUB parents only arrive via transfer
        if vendor_type == VendorType.LOCAL.value and parent.get("vendor_type") != VendorType.CITY.value:
            raise ValidationFailed("Local vendors must be registered under a City vendor")

        operating_area = payload.operating_area.model_dump()
        await self.hierarchy.ensure_valid_parent(vendor_type, parent, operating_area=operating_area)

        email = _normalize_email(payload.email)
        await self._ensure_email_free(email)

        doc = self._new_vendor(
            payload.name, email, payload.password, vendor_type, parent["vendor_id"],
            payload.permissions, operating_area,
        )
        vendor = await self._insert_vendor(doc)
        await self.hierarchy.invalidate_hierarchy_caches(parent["vendor_id"])
        await self.notifier.send_welcome_notification(vendor["email"], vendor["vendor_id"], vendor["name"])

        logger.info(
            "%s vendor registered: vendor_id=%s parent=%s by=%s",
            vendor_type, vendor["vendor_id"], parent["vendor_id"], actor["vendor_id"],
        )
        return vendor

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        vendor = await self.vendors.find_one({"email": _normalize_email(email)}, {"_id": 0})
        if not vendor or not verify_password(password, vendor.get("password_hash", "")):
            logger.warning("Login failed for %s", email)
            raise InvalidCredentials("Invalid email or password")
        if not vendor.get("is_active", True):
            logger.warning("Login rejected for inactive vendor %s", vendor["vendor_id"])
            raise InvalidCredentials("Vendor account is inactive")

        vendor.pop("password_hash", None)
        logger.info("Vendor logged in: vendor_id=%s", vendor["vendor_id"])
        return {"vendor": vendor, "token": create_access_token(vendor["vendor_id"])}

    # --------------------------
    # Profile
    # --------------------------
    async def get_profile(self, vendor_id: str) -> Dict[str, Any]:
        vendor = await self.hierarchy.get_vendor(vendor_id)
        if not vendor:
            raise NotFound("Vendor not found")
        return vendor

    async def update_profile(self, vendor_id: str, payload: VendorProfileUpdate) -> Dict[str, Any]:
        update_fields = payload.model_dump(exclude_unset=True, exclude_none=True)
        if not update_fields:
            raise ValidationFailed("At least one of name, email, password or permissions must be provided")

        if "email" in update_fields:
            update_fields["email"] = _normalize_email(update_fields["email"])
            await self._ensure_email_free(update_fields["email"], exclude_vendor_id=vendor_id)
        if "password" in update_fields:
            update_fields["password_hash"] = get_password_hash(update_fields.pop("password"))
        if "permissions" in update_fields:
            update_fields["permissions"] = _enum_values(update_fields["permissions"])
        if "name" in update_fields:
            update_fields["name"] = update_fields["name"].strip()
        update_fields["updated_at"] = _storage_now()

        updated = await self.vendors.find_one_and_update(
            {"vendor_id": vendor_id},
            {"$set": update_fields},
            projection=VENDOR_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("Vendor not found")

        await self._invalidate_vendor(updated)
        logger.info("Vendor profile updated: vendor_id=%s fields=%s", vendor_id, sorted(update_fields))
        return updated

    async def _invalidate_vendor(self, vendor: Dict[str, Any]):
        await self.hierarchy.invalidate_hierarchy_caches(vendor["vendor_id"], vendor.get("parent_vendor_id"))

    async def update_status(self, vendor_id: str, level: str, status: str) -> Dict[str, Any]:
        vendor = await self._get_level_vendor(vendor_id, level)
        updated = await self.vendors.find_one_and_update(
            {"vendor_id": vendor["vendor_id"]},
            {"$set": {"is_active": status == "ACTIVE", "updated_at": _storage_now()}},
            projection=VENDOR_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        await self._invalidate_vendor(updated)
        logger.info("Vendor %s status set to %s", vendor_id, status)
        return updated

    async def update_permissions(self, vendor_id: str, permissions) -> Dict[str, Any]:
        updated = await self.vendors.find_one_and_update(
            {"vendor_id": vendor_id},
            {"$set": {"permissions": _enum_values(permissions), "updated_at": _storage_now()}},
            projection=VENDOR_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("Vendor not found")
        await self._invalidate_vendor(updated)
        logger.info("Vendor %s permissions set to %s", vendor_id, updated["permissions"])
        return updated

    # --------------------------
    # Listings
    # --------------------------
    async def get_sub_vendors(self, actor: Dict[str, Any]) -> List[Dict[str, Any]]:
        if actor.get("vendor_type") not in (VendorType.SUPER.value, VendorType.CITY.value):
            raise PermissionDenied("Unauthorized vendor type to list sub-vendors")
        return await self.hierarchy.get_sub_vendors(actor["vendor_id"])

    async def get_all_vendors_under_super(self, vendor_id: str) -> List[Dict[str, Any]]:
        vendor = await self.hierarchy.get_vendor(vendor_id)
        if not vendor or vendor.get("vendor_type") != VendorType.SUPER.value:
            raise NotFound("Super vendor not found")
        return await self.cache.remember(
            ALL_VENDORS_KEY.format(vendor_id),
            AGGREGATE_CACHE_TTL,
            lambda: self.hierarchy.get_all_sub_vendors(vendor_id),
        )

    async def get_city_vendors(self, vendor_id: str) -> Dict[str, List[Dict[str, Any]]]:
        vendor = await self.hierarchy.get_vendor(vendor_id)
        if not vendor or vendor.get("vendor_type") != VendorType.CITY.value:
            raise NotFound("City vendor not found")
        children = await self.hierarchy.get_sub_vendors(vendor_id)
        return {
            "sub_vendors": [v for v in children if v.get("vendor_type") == VendorType.SUB.value],
            "local_vendors": [v for v in children if v.get("vendor_type") == VendorType.LOCAL.value],
        }

    async def get_sub_vendor_local_vendors(self, actor: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
        """LOCAL vendors sharing the calling SUB vendor's CITY parent."""
        if actor.get("vendor_type") != VendorType.SUB.value:
            raise PermissionDenied("Only a Sub vendor can list local vendors under their parent City vendor")
        local_vendors = await self.hierarchy.get_sub_vendors(actor.get("parent_vendor_id"), VendorType.LOCAL)
        return {"local_vendors": local_vendors}

    async def get_dashboard(self, vendor_id: str) -> Dict[str, Any]:
        async def build():
            vendor = await self.hierarchy.get_vendor(vendor_id)
            if not vendor:
                return None
            return {
                "vendor": {
                    "id": vendor["vendor_id"],
                    "name": vendor.get("name"),
                    "type": vendor.get("vendor_type"),
                    "is_active": vendor.get("is_active", True),
                },
                "statistics": await self.fleet_stats.get_fleet_stats(vendor_id),
            }

        dashboard = await self.cache.remember(DASHBOARD_KEY.format(vendor_id), AGGREGATE_CACHE_TTL, build)
        if dashboard is None:
            raise NotFound("Vendor not found")
        return dashboard

    # --------------------------
    # Vendor documents
    # --------------------------
    async def _get_level_vendor(self, vendor_id: str, level: str) -> Dict[str, Any]:
        vendor = await self.hierarchy.get_vendor(vendor_id)
        if not vendor or vendor.get("vendor_type") != LEVEL_TYPES.get(level):
            logger.warning("No %s vendor with id %s", level, vendor_id)
            raise NotFound(f"{level.capitalize()} vendor not found")
        return vendor

    async def upload_vendor_document(
        self, actor: Dict[str, Any], vendor_id: str, level: str, payload: DocumentUpload
    ) -> Dict[str, Any]:
        vendor = await self._get_level_vendor(vendor_id, level)
        return await self.documents.upload_document(
            EntityType.VENDOR, vendor["vendor_id"], payload, vendor["vendor_id"], actor["vendor_id"]
        )

    async def verify_vendor_document(
        self,
        actor: Dict[str, Any],
        vendor_id: str,
        level: str,
        document_type: str,
        approved: bool,
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        vendor = await self._get_level_vendor(vendor_id, level)
        return await self.documents.verify_entity_document(
            EntityType.VENDOR, vendor["vendor_id"], document_type, actor["vendor_id"], approved, remarks
        )

    # --------------------------
    # Notifications
    # --------------------------
    async def send_bulk_notification(self, actor: Dict[str, Any], payload: BulkNotification) -> Dict[str, Any]:
        """BCC every listed vendor the caller manages; others are reported as skipped."""
        managed: List[str] = []
        skipped: List[str] = []
        for vendor_id in dict.fromkeys(payload.vendor_ids):
            if await self.hierarchy.get_vendor(vendor_id) and await self.hierarchy.can_manage(actor, vendor_id):
                managed.append(vendor_id)
            else:
                skipped.append(vendor_id)

        if not managed:
            raise PermissionDenied("None of the listed vendors are managed by you")

        vendors = await self.vendors.find({"vendor_id": {"$in": managed}}, {"_id": 0, "email": 1}).to_list(None)
        emails = [v["email"] for v in vendors if v.get("email")]
        sent = await self.notifier.send_bulk_notification(emails, payload.subject, payload.message)

        logger.info("Bulk notification by %s: recipients=%s skipped=%s sent=%s", actor["vendor_id"], len(emails), len(skipped), sent)
        return {"sent": sent, "recipients": len(emails), "skipped": skipped}
