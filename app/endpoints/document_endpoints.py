from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, status

from app.core.config import EXPIRY_THRESHOLD_DAYS
from app.core.container import Services
from app.endpoints.deps import get_current_vendor, get_services, require_permission
from app.models.document import DocumentUpload, DocumentVerify
from app.models.enums import EntityType, Permission, VerificationStatus
from app.utiles.custom_helpers import success_response
from app.utiles.decoratores import handle_exceptions
from app.utiles.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Document Management"])

Vendor = Dict[str, Any]


# ======================================================
# Uploads
# ======================================================

@router.post("/vehicles/{vehicle_id}/documents", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def upload_vehicle_document(
    vehicle_id: str,
    payload: DocumentUpload,
    vendor: Vendor = Depends(require_permission(Permission.FLEET_MANAGEMENT)),
    services: Services = Depends(get_services),
):
    vehicle = await services.vehicles.get_managed_vehicle(vendor, vehicle_id)
    document = await services.documents.upload_document(
        EntityType.VEHICLE, vehicle_id, payload, vehicle["vendor_id"], vendor["vendor_id"]
    )
    return success_response(document)


@router.post("/drivers/{driver_id}/documents", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def upload_driver_document(
    driver_id: str,
    payload: DocumentUpload,
    vendor: Vendor = Depends(require_permission(Permission.DRIVER_MANAGEMENT)),
    services: Services = Depends(get_services),
):
    driver = await services.drivers.get_managed_driver(vendor, driver_id)
    document = await services.documents.upload_document(
        EntityType.DRIVER, driver_id, payload, driver["vendor_id"], vendor["vendor_id"]
    )
    return success_response(document)


# ======================================================
# Status
# ======================================================

@router.get("/vehicles/{vehicle_id}/documents/status", response_model=dict)
@handle_exceptions
async def get_vehicle_document_status(
    vehicle_id: str,
    days: int = Query(EXPIRY_THRESHOLD_DAYS, gt=0),
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.vehicles.get_managed_vehicle(vendor, vehicle_id)
    doc_status = await services.documents.get_document_status(EntityType.VEHICLE, vehicle_id)
    expiry = await services.documents.get_entity_expiry_status(EntityType.VEHICLE, vehicle_id, days)
    return success_response({**doc_status, "expiry": expiry})


@router.get("/drivers/{driver_id}/documents/status", response_model=dict)
@handle_exceptions
async def get_driver_document_status(
    driver_id: str,
    days: int = Query(EXPIRY_THRESHOLD_DAYS, gt=0),
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.drivers.get_managed_driver(vendor, driver_id)
    doc_status = await services.documents.get_document_status(EntityType.DRIVER, driver_id)
    expiry = await services.documents.get_entity_expiry_status(EntityType.DRIVER, driver_id, days)
    return success_response({**doc_status, "expiry": expiry})


@router.get("/expiring", response_model=dict)
@handle_exceptions
async def get_expiring_documents(
    days: int = Query(EXPIRY_THRESHOLD_DAYS, gt=0),
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    """Documents expiring within ``days`` that belong to vendors the caller manages."""
    documents = await services.documents.get_expiring_documents(days)
    managed = []
    for doc in documents:
        if await services.hierarchy.can_manage(vendor, doc.get("vendor_id")):
            managed.append(doc)
    return success_response(managed)


# ======================================================
# Verification / reports
# ======================================================

@router.post("/{document_id}/verify", response_model=dict)
@handle_exceptions
async def verify_document(
    document_id: str,
    payload: DocumentVerify,
    vendor: Vendor = Depends(require_permission(Permission.DOCUMENT_VERIFICATION)),
    services: Services = Depends(get_services),
):
    document = await services.documents.get_document(document_id)
    await services.hierarchy.ensure_can_manage(vendor, document["vendor_id"])
    verified = await services.documents.verify_document(
        document_id, vendor["vendor_id"], payload.status == VerificationStatus.VERIFIED, payload.remarks
    )
    return success_response(verified)


@router.get("/compliance/{vendor_id}", response_model=dict)
@handle_exceptions
async def get_compliance_report(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.documents.get_vendor_compliance_report(vendor_id))


@router.get("/summary/{vendor_id}", response_model=dict)
@handle_exceptions
async def get_compliance_summary(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.documents.get_document_compliance_summary(vendor_id))


@router.post("/notify-expiring", response_model=dict)
@handle_exceptions
async def notify_expiring_documents(
    days: int = Query(EXPIRY_THRESHOLD_DAYS, gt=0),
    vendor: Vendor = Depends(require_permission(Permission.COMPLIANCE_TRACKING)),
    services: Services = Depends(get_services),
):
    logger.info("API Request → Expiry notification run by %s (days=%s)", vendor["vendor_id"], days)
    return success_response(await services.documents.check_and_notify_expiring_documents(days))
