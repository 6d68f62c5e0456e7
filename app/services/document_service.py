# app/services/document_service.py
"""
Compliance documents for vehicles, drivers and vendors.

Documents live in one collection keyed by ``(entity_type, entity_id)``.
Status is derived on every write; reads that feed dashboards are cached
for a few minutes and invalidated whenever a document changes.
"""
import asyncio
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.config import (
    AGGREGATE_CACHE_TTL,
    COLLECTION_DOCUMENTS,
    COLLECTION_DRIVERS,
    COLLECTION_VEHICLES,
    COLLECTION_VENDORS,
    EXPIRY_THRESHOLD_DAYS,
)
from app.core.exceptions import NotFound
from app.models.document import DocumentUpload
from app.models.enums import DocumentStatus, EntityType, VerificationStatus
from app.services.cache_service import CacheService, COMPLIANCE_KEY, DOC_STATUS_KEY, EXPIRING_DOCS_KEY
from app.services.notification_service import NotificationService
from app.utiles.custom_helpers import _gen_id, _now_utc, _storage_now, _to_storage
from app.utiles.document_helpers import (
    derive_document_status,
    get_days_until_expiry,
    is_document_expired,
    is_document_expiring_soon,
    is_entity_compliant,
    summarize_documents,
)
from app.utiles.logger import get_logger

logger = get_logger(__name__)

PROJECTION = {"_id": 0}


def _entity_type(entity_type) -> str:
    return entity_type.value if isinstance(entity_type, EntityType) else str(entity_type).upper()


def _group_by_entity(documents: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for doc in documents:
        grouped.setdefault(doc["entity_id"], []).append(doc)
    return grouped


def _partition(entity_ids: List[str], grouped: Mapping[str, List[Dict[str, Any]]], now) -> Dict[str, int]:
    compliant = sum(1 for entity_id in entity_ids if is_entity_compliant(grouped.get(entity_id, []), now))
    return {"total": len(entity_ids), "compliant": compliant, "non_compliant": len(entity_ids) - compliant}


class DocumentService:
    def __init__(self, db: AsyncIOMotorDatabase, cache: CacheService, notifier: NotificationService):
        self.db = db
        self.cache = cache
        self.notifier = notifier

    @property
    def documents(self):
        return self.db[COLLECTION_DOCUMENTS]

    # --------------------------
    # Cache invalidation
    # --------------------------
    async def invalidate(self, entity_type, entity_id: str, vendor_id: Optional[str] = None):
        keys = [DOC_STATUS_KEY.format(_entity_type(entity_type), entity_id)]
        if vendor_id:
            keys.append(COMPLIANCE_KEY.format(vendor_id))
        await self.cache.delete(*keys)
        await self.cache.clear_by_pattern(EXPIRING_DOCS_KEY.format("*"))

    # --------------------------
    # Writes
    # --------------------------
    async def upload_document(
        self,
        entity_type,
        entity_id: str,
        payload: DocumentUpload,
        owner_vendor_id: str,
        uploaded_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a new unverified document against an entity."""
        entity_type = _entity_type(entity_type)
        now = _storage_now()
        expiry_date = _to_storage(payload.expiry_date)

        doc = {
            "document_id": _gen_id(),
            "entity_type": entity_type,
            "entity_id": entity_id,
            "document_type": payload.document_type.strip(),
            "document_number": payload.document_number.strip(),
            "document_url": payload.document_url,
            "expiry_date": expiry_date,
            "is_verified": False,
            "verification_remarks": None,
            "verified_by": None,
            "verified_at": None,
            "vendor_id": owner_vendor_id,
            "uploaded_by": uploaded_by,
            "status": derive_document_status(expiry_date, False),
            "created_at": now,
            "updated_at": now,
        }

        await self.documents.insert_one(doc)
        doc.pop("_id", None)
        await self.invalidate(entity_type, entity_id, owner_vendor_id)

        logger.info(
            "Document uploaded: document_id=%s type=%s entity=%s/%s",
            doc["document_id"], doc["document_type"], entity_type, entity_id,
        )
        return doc

    async def create_embedded_documents(
        self,
        entity_type,
        entity_id: str,
        documents: Optional[Mapping[str, Any]],
        owner_vendor_id: str,
        uploaded_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Turn ``{document_type: {number, document_url, expiry_date}}`` into document records."""
        created = []
        for document_type, embedded in (documents or {}).items():
            if not embedded:
                continue
            payload = DocumentUpload(
                document_type=document_type,
                document_number=embedded["number"],
                document_url=embedded["document_url"],
                expiry_date=embedded.get("expiry_date"),
            )
            created.append(await self.upload_document(entity_type, entity_id, payload, owner_vendor_id, uploaded_by))
        return created

    async def verify_document(
        self,
        document_id: str,
        verifier_id: str,
        approved: bool = True,
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        existing = await self.documents.find_one({"document_id": document_id}, PROJECTION)
        if not existing:
            logger.warning("Verify failed: document not found (document_id=%s)", document_id)
            raise NotFound("Document not found")

        now = _storage_now()
        updated = await self.documents.find_one_and_update(
            {"document_id": document_id},
            {"$set": {
                "is_verified": approved,
                "verification_remarks": remarks,
                "verified_by": verifier_id,
                "verified_at": now,
                "status": derive_document_status(existing.get("expiry_date"), approved),
                "updated_at": now,
            }},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        await self.invalidate(updated["entity_type"], updated["entity_id"], updated.get("vendor_id"))

        status = VerificationStatus.VERIFIED.value if approved else VerificationStatus.REJECTED.value
        logger.info("Document %s %s by %s", document_id, status, verifier_id)

        owner = await self.db[COLLECTION_VENDORS].find_one({"vendor_id": updated.get("vendor_id")}, {"email": 1})
        if owner and owner.get("email"):
            await self.notifier.send_verification_notification(owner["email"], document_id, status, remarks)
        return updated

    async def verify_entity_document(
        self,
        entity_type,
        entity_id: str,
        document_type: str,
        verifier_id: str,
        approved: bool = True,
        remarks: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Verify the most recent document of a given type on an entity."""
        docs = await self.documents.find(
            {"entity_type": _entity_type(entity_type), "entity_id": entity_id, "document_type": document_type},
            PROJECTION,
        ).to_list(None)
        if not docs:
            raise NotFound(f"No {document_type} document found for this {_entity_type(entity_type).lower()}")
        latest = max(docs, key=lambda d: d["created_at"])
        return await self.verify_document(latest["document_id"], verifier_id, approved, remarks)

    async def delete_entity_documents(self, entity_type, entity_id: str, vendor_id: Optional[str] = None) -> int:
        result = await self.documents.delete_many({"entity_type": _entity_type(entity_type), "entity_id": entity_id})
        await self.invalidate(entity_type, entity_id, vendor_id)
        logger.info("Deleted %s documents for %s/%s", result.deleted_count, _entity_type(entity_type), entity_id)
        return result.deleted_count

    # --------------------------
    # Reads
    # --------------------------
    async def get_document(self, document_id: str) -> Dict[str, Any]:
        doc = await self.documents.find_one({"document_id": document_id}, PROJECTION)
        if not doc:
            raise NotFound("Document not found")
        return doc

    async def list_entity_documents(self, entity_type, entity_id: str) -> List[Dict[str, Any]]:
        return await self.documents.find(
            {"entity_type": _entity_type(entity_type), "entity_id": entity_id}, PROJECTION
        ).to_list(None)

    async def build_document_status(self, entity_type, entity_id: str) -> Dict[str, Any]:
        now = _now_utc()
        documents = await self.list_entity_documents(entity_type, entity_id)
        return {
            "total": len(documents),
            "verified": sum(1 for d in documents if d.get("is_verified")),
            "expired": sum(1 for d in documents if is_document_expired(d.get("expiry_date"), now)),
            "expiring_soon": sum(
                1 for d in documents if is_document_expiring_soon(d.get("expiry_date"), EXPIRY_THRESHOLD_DAYS, now)
            ),
            "is_compliant": is_entity_compliant(documents, now),
            "documents": [
                {
                    "document_id": d["document_id"],
                    "type": d.get("document_type"),
                    "expiry_date": d.get("expiry_date"),
                    "status": d.get("status"),
                    "is_verified": bool(d.get("is_verified")),
                    "is_expired": is_document_expired(d.get("expiry_date"), now),
                    "is_expiring_soon": is_document_expiring_soon(d.get("expiry_date"), EXPIRY_THRESHOLD_DAYS, now),
                }
                for d in documents
            ],
        }

    async def get_document_status(self, entity_type, entity_id: str) -> Dict[str, Any]:
        key = DOC_STATUS_KEY.format(_entity_type(entity_type), entity_id)
        return await self.cache.remember(
            key, AGGREGATE_CACHE_TTL, lambda: self.build_document_status(entity_type, entity_id)
        )

    async def get_entity_expiry_status(
        self, entity_type, entity_id: str, days: int = EXPIRY_THRESHOLD_DAYS
    ) -> Dict[str, Any]:
        documents = await self.list_entity_documents(entity_type, entity_id)
        return summarize_documents(documents, days)

    async def _find_expiring(self, days_threshold: int) -> List[Dict[str, Any]]:
        now = _now_utc()
        return await self.documents.find(
            {"expiry_date": {"$gte": _to_storage(now), "$lte": _to_storage(now + timedelta(days=days_threshold))}},
            PROJECTION,
        ).to_list(None)

    async def build_expiring_documents(self, days_threshold: int = EXPIRY_THRESHOLD_DAYS) -> List[Dict[str, Any]]:
        documents = await self._find_expiring(days_threshold)
        return [
            {
                "document_id": d["document_id"],
                "entity_id": d["entity_id"],
                "entity_type": d["entity_type"],
                "document_type": d.get("document_type"),
                "vendor_id": d.get("vendor_id"),
                "expiry_date": d["expiry_date"],
                "days_until_expiry": get_days_until_expiry(d["expiry_date"]),
            }
            for d in documents
        ]

    async def get_expiring_documents(self, days_threshold: int = EXPIRY_THRESHOLD_DAYS) -> List[Dict[str, Any]]:
        return await self.cache.remember(
            EXPIRING_DOCS_KEY.format(days_threshold),
            AGGREGATE_CACHE_TTL,
            lambda: self.build_expiring_documents(days_threshold),
        )

    # --------------------------
    # Vendor rollups
    # --------------------------
    async def _vendor_entities(self, vendor_id: str):
        vehicles, drivers = await asyncio.gather(
            self.db[COLLECTION_VEHICLES].find({"vendor_id": vendor_id}, {"_id": 0, "vehicle_id": 1}).to_list(None),
            self.db[COLLECTION_DRIVERS].find({"vendor_id": vendor_id}, {"_id": 0, "driver_id": 1}).to_list(None),
        )
        vehicle_ids = [v["vehicle_id"] for v in vehicles]
        driver_ids = [d["driver_id"] for d in drivers]

        vehicle_docs, driver_docs = await asyncio.gather(
            self.documents.find(
                {"entity_type": EntityType.VEHICLE.value, "entity_id": {"$in": vehicle_ids}}, PROJECTION
            ).to_list(None),
            self.documents.find(
                {"entity_type": EntityType.DRIVER.value, "entity_id": {"$in": driver_ids}}, PROJECTION
            ).to_list(None),
        )
        return vehicle_ids, driver_ids, _group_by_entity(vehicle_docs), _group_by_entity(driver_docs)

    async def build_vendor_compliance_report(self, vendor_id: str) -> Dict[str, Any]:
        now = _now_utc()
        vehicle_ids, driver_ids, vehicle_docs, driver_docs = await self._vendor_entities(vendor_id)
        return {
            "vehicles": _partition(vehicle_ids, vehicle_docs, now),
            "drivers": _partition(driver_ids, driver_docs, now),
        }

    async def get_vendor_compliance_report(self, vendor_id: str) -> Dict[str, Any]:
        return await self.cache.remember(
            COMPLIANCE_KEY.format(vendor_id),
            AGGREGATE_CACHE_TTL,
            lambda: self.build_vendor_compliance_report(vendor_id),
        )

    async def get_document_compliance_summary(self, vendor_id: str) -> Dict[str, Any]:
        now = _now_utc()
        documents = await self.documents.find({"vendor_id": vendor_id}, PROJECTION).to_list(None)
        valid = sum(
            1 for d in documents if d.get("is_verified") and not is_document_expired(d.get("expiry_date"), now)
        )
        return {
            "total": len(documents),
            "verified": sum(1 for d in documents if d.get("is_verified")),
            "pending": sum(1 for d in documents if not d.get("is_verified")),
            "expired": sum(1 for d in documents if is_document_expired(d.get("expiry_date"), now)),
            "expiring_soon": sum(
                1 for d in documents if is_document_expiring_soon(d.get("expiry_date"), EXPIRY_THRESHOLD_DAYS, now)
            ),
            "compliance_rate": round(valid / len(documents) * 100, 2) if documents else 0.0,
        }

    async def get_document_expiry_summary(self, vendor_id: str, days: int = EXPIRY_THRESHOLD_DAYS) -> Dict[str, Any]:
        """Per entity kind: how many have an expired document, an expiring one, or neither."""
        now = _now_utc()
        vehicle_ids, driver_ids, vehicle_docs, driver_docs = await self._vendor_entities(vendor_id)

        def _counts(entity_ids, grouped):
            expired = expiring = valid = 0
            for entity_id in entity_ids:
                summary = summarize_documents(grouped.get(entity_id, []), days, now)
                if summary["is_expired"]:
                    expired += 1
                elif summary["expiring_soon"]:
                    expiring += 1
                else:
                    valid += 1
            return {"total": len(entity_ids), "expired": expired, "expiring_soon": expiring, "valid": valid}

        return {
            "vehicles": _counts(vehicle_ids, vehicle_docs),
            "drivers": _counts(driver_ids, driver_docs),
        }

    # --------------------------
    # Background jobs
    # --------------------------
    async def check_and_notify_expiring_documents(self, threshold_days: int = EXPIRY_THRESHOLD_DAYS) -> Dict[str, int]:
        """
        E-mail the owning vendor once per document expiring within the window.
        A failure on one document is counted and the scan moves on.
        """
        documents = await self._find_expiring(threshold_days)
        logger.info("Found %s expiring documents (threshold=%s days)", len(documents), threshold_days)

        emails: Dict[str, Optional[str]] = {}
        sent = failed = 0
        for doc in documents:
            try:
                vendor_id = doc.get("vendor_id")
                if vendor_id not in emails:
                    vendor = await self.db[COLLECTION_VENDORS].find_one({"vendor_id": vendor_id}, {"email": 1})
                    emails[vendor_id] = vendor.get("email") if vendor else None

                ok = False
                if emails[vendor_id]:
                    ok = await self.notifier.send_document_expiry_notification(
                        emails[vendor_id],
                        doc.get("document_type"),
                        doc.get("expiry_date"),
                        doc.get("entity_type"),
                        doc.get("entity_id"),
                    )
                else:
                    logger.warning("No owner e-mail for document %s (vendor_id=%s)", doc["document_id"], vendor_id)
            except Exception as e:
                logger.error("Expiry notification failed for document %s: %s", doc.get("document_id"), e)
                ok = False

            if ok:
                sent += 1
            else:
                failed += 1

        logger.info("Document expiry notifications: total=%s sent=%s failed=%s", len(documents), sent, failed)
        return {"total": len(documents), "sent": sent, "failed": failed}

    async def mark_expired_documents(self) -> int:
        now = _storage_now()
        result = await self.documents.update_many(
            {"expiry_date": {"$lt": now}, "status": {"$ne": DocumentStatus.EXPIRED.value}},
            {"$set": {"status": DocumentStatus.EXPIRED.value, "updated_at": now}},
        )
        if result.modified_count:
            await self.cache.clear_by_pattern(DOC_STATUS_KEY.format("*", "*"))
            await self.cache.clear_by_pattern(COMPLIANCE_KEY.format("*"))
            await self.cache.clear_by_pattern(EXPIRING_DOCS_KEY.format("*"))
        logger.info("Marked %s documents as expired", result.modified_count)
        return result.modified_count

    async def generate_compliance_reports(self) -> int:
        """Recompute and re-cache the compliance report of every active vendor."""
        vendors = await self.db[COLLECTION_VENDORS].find({"is_active": True}, {"_id": 0, "vendor_id": 1}).to_list(None)
        for vendor in vendors:
            report = await self.build_vendor_compliance_report(vendor["vendor_id"])
            await self.cache.set(COMPLIANCE_KEY.format(vendor["vendor_id"]), report, AGGREGATE_CACHE_TTL)
        logger.info("Generated compliance reports for %s vendors", len(vendors))
        return len(vendors)
