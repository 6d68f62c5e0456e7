from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status

from app.core.container import Services
from app.endpoints.deps import get_current_vendor, get_services, require_permission
from app.models.document import EntityDocumentVerify
from app.models.driver import AssignVehicleRequest, DriverCreate, DriverRatingUpdate, DriverUpdate
from app.models.enums import DriverStatus, EntityType, Permission, VerificationStatus
from app.utiles.custom_helpers import success_response
from app.utiles.decoratores import handle_exceptions
from app.utiles.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Driver Management"])

Vendor = Dict[str, Any]
driver_management = require_permission(Permission.DRIVER_MANAGEMENT)


# ---------------- Create Driver ----------------
@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def create_driver(
    driver: DriverCreate,
    vendor: Vendor = Depends(driver_management),
    services: Services = Depends(get_services),
):
    logger.info("API Request → Create Driver: email=%s", driver.email)
    response = await services.drivers.create_driver(vendor, driver)
    logger.info("API Response → Driver created: ID=%s", response["driver_id"])
    return success_response(response)


# ---------------- List Drivers ----------------
@router.get("", response_model=dict)
@handle_exceptions
async def list_drivers(
    vendor_id: Optional[str] = None,
    driver_status: Optional[DriverStatus] = None,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    target = vendor_id or vendor["vendor_id"]
    await services.hierarchy.ensure_can_manage(vendor, target)
    drivers = await services.drivers.list_drivers(target, driver_status.value if driver_status else None)
    return success_response(drivers)


# ---------------- Get Driver ----------------
@router.get("/{driver_id}", response_model=dict)
@handle_exceptions
async def get_driver(
    driver_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    return success_response(await services.drivers.get_managed_driver(vendor, driver_id))


# ---------------- Update Driver ----------------
@router.put("/{driver_id}", response_model=dict)
@handle_exceptions
async def update_driver(
    driver_id: str,
    update: DriverUpdate,
    vendor: Vendor = Depends(driver_management),
    services: Services = Depends(get_services),
):
    logger.info("API Request → Update Driver: ID=%s", driver_id)
    await services.drivers.get_managed_driver(vendor, driver_id)
    return success_response(await services.drivers.update_driver(driver_id, update))


@router.patch("/{driver_id}/rating", response_model=dict)
@handle_exceptions
async def update_driver_rating(
    driver_id: str,
    payload: DriverRatingUpdate,
    vendor: Vendor = Depends(driver_management),
    services: Services = Depends(get_services),
):
    await services.drivers.get_managed_driver(vendor, driver_id)
    return success_response(await services.drivers.update_rating(driver_id, payload))


# ---------------- Delete Driver ----------------
@router.delete("/{driver_id}", response_model=dict)
@handle_exceptions
async def delete_driver(
    driver_id: str,
    vendor: Vendor = Depends(driver_management),
    services: Services = Depends(get_services),
):
    logger.info("API Request → Delete Driver: ID=%s", driver_id)
    await services.drivers.get_managed_driver(vendor, driver_id)
    return success_response(await services.drivers.delete_driver(driver_id))


# ---------------- Assign / Unassign Vehicle ----------------
@router.post("/{driver_id}/assign-vehicle", response_model=dict)
@handle_exceptions
async def assign_vehicle(
    driver_id: str,
    payload: AssignVehicleRequest,
    vendor: Vendor = Depends(driver_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.assignments.assign(vendor, payload.vehicle_id, driver_id))


@router.post("/{driver_id}/unassign-vehicle", response_model=dict)
@handle_exceptions
async def unassign_vehicle(
    driver_id: str,
    vendor: Vendor = Depends(driver_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.assignments.unassign_driver(vendor, driver_id))


# ---------------- Documents ----------------
@router.post("/{driver_id}/verify-documents", response_model=dict)
@handle_exceptions
async def verify_driver_documents(
    driver_id: str,
    payload: EntityDocumentVerify,
    vendor: Vendor = Depends(require_permission(Permission.COMPLIANCE_TRACKING)),
    services: Services = Depends(get_services),
):
    await services.drivers.get_managed_driver(vendor, driver_id)
    document = await services.documents.verify_entity_document(
        EntityType.DRIVER,
        driver_id,
        payload.document_type,
        vendor["vendor_id"],
        payload.status == VerificationStatus.VERIFIED,
        payload.remarks,
    )
    return success_response(document)


@router.get("/{driver_id}/documents/status", response_model=dict)
@handle_exceptions
async def get_driver_document_status(
    driver_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.drivers.get_managed_driver(vendor, driver_id)
    return success_response(await services.documents.get_document_status(EntityType.DRIVER, driver_id))
