from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status

from app.core.container import Services
from app.endpoints.deps import get_current_vendor, get_services, require_permission
from app.models.document import EntityDocumentVerify
from app.models.enums import EntityType, Permission, VehicleStatus, VerificationStatus
from app.models.vehicle import AssignDriverRequest, VehicleCreate, VehicleUpdate
from app.utiles.custom_helpers import success_response
from app.utiles.decoratores import handle_exceptions
from app.utiles.logger import get_logger

# Initialize logger
logger = get_logger(__name__)

# APIRouter for vehicle management
router = APIRouter(tags=["Vehicle Management"])

Vendor = Dict[str, Any]
fleet_management = require_permission(Permission.FLEET_MANAGEMENT)


# ---------------- Register Vehicle ----------------
@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def register_vehicle(
    vehicle: VehicleCreate,
    vendor: Vendor = Depends(fleet_management),
    services: Services = Depends(get_services),
):
    """
    Endpoint: Register a new vehicle for the calling vendor.
    Inline documents are stored as unverified documents.
    """
    logger.info("API Request → Register Vehicle: Number=%s", vehicle.registration_number)
    response = await services.vehicles.create_vehicle(vendor, vehicle)
    logger.info("API Response → Vehicle registered successfully: ID=%s", response["vehicle_id"])
    return success_response(response)


# ---------------- List Vehicles ----------------
@router.get("", response_model=dict)
@handle_exceptions
async def list_vehicles(
    vendor_id: Optional[str] = None,
    vehicle_status: Optional[VehicleStatus] = None,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    """Endpoint: Vehicles of the caller, or of a vendor the caller manages."""
    target = vendor_id or vendor["vendor_id"]
    await services.hierarchy.ensure_can_manage(vendor, target)
    vehicles = await services.vehicles.list_vehicles(target, vehicle_status.value if vehicle_status else None)
    logger.info("API Response → Found %s vehicles for vendor %s", len(vehicles), target)
    return success_response(vehicles)


# ---------------- Get Vehicle ----------------
@router.get("/{vehicle_id}", response_model=dict)
@handle_exceptions
async def get_vehicle(
    vehicle_id: str,
    vendor: Vendor = Depends(fleet_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.vehicles.get_managed_vehicle(vendor, vehicle_id))


# ---------------- Update Vehicle ----------------
@router.put("/{vehicle_id}", response_model=dict)
@handle_exceptions
async def update_vehicle(
    vehicle_id: str,
    update: VehicleUpdate,
    vendor: Vendor = Depends(fleet_management),
    services: Services = Depends(get_services),
):
    logger.info("API Request → Update Vehicle: ID=%s", vehicle_id)
    await services.vehicles.get_managed_vehicle(vendor, vehicle_id)
    return success_response(await services.vehicles.update_vehicle(vehicle_id, update))


# ---------------- Delete Vehicle ----------------
@router.delete("/{vehicle_id}", response_model=dict)
@handle_exceptions
async def delete_vehicle(
    vehicle_id: str,
    vendor: Vendor = Depends(fleet_management),
    services: Services = Depends(get_services),
):
    """
    Endpoint: Delete a vehicle.
    The assigned driver is released and the vehicle's documents are removed.
    """
    logger.info("API Request → Delete Vehicle: ID=%s", vehicle_id)
    await services.vehicles.get_managed_vehicle(vendor, vehicle_id)
    return success_response(await services.vehicles.delete_vehicle(vehicle_id))


# ---------------- Assign / Unassign Driver ----------------
@router.post("/{vehicle_id}/assign-driver", response_model=dict)
@handle_exceptions
async def assign_driver(
    vehicle_id: str,
    payload: AssignDriverRequest,
    vendor: Vendor = Depends(fleet_management),
    services: Services = Depends(get_services),
):
    logger.info("API Request → Assign driver %s to vehicle %s", payload.driver_id, vehicle_id)
    return success_response(await services.assignments.assign(vendor, vehicle_id, payload.driver_id))


@router.post("/{vehicle_id}/unassign-driver", response_model=dict)
@handle_exceptions
async def unassign_driver(
    vehicle_id: str,
    vendor: Vendor = Depends(fleet_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.assignments.unassign_vehicle(vendor, vehicle_id))


# ---------------- Documents ----------------
@router.post("/{vehicle_id}/verify-documents", response_model=dict)
@handle_exceptions
async def verify_vehicle_documents(
    vehicle_id: str,
    payload: EntityDocumentVerify,
    vendor: Vendor = Depends(require_permission(Permission.COMPLIANCE_TRACKING)),
    services: Services = Depends(get_services),
):
    await services.vehicles.get_managed_vehicle(vendor, vehicle_id)
    document = await services.documents.verify_entity_document(
        EntityType.VEHICLE,
        vehicle_id,
        payload.document_type,
        vendor["vendor_id"],
        payload.status == VerificationStatus.VERIFIED,
        payload.remarks,
    )
    return success_response(document)


@router.get("/{vehicle_id}/documents/status", response_model=dict)
@handle_exceptions
async def get_vehicle_document_status(
    vehicle_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.vehicles.get_managed_vehicle(vendor, vehicle_id)
    return success_response(await services.documents.get_document_status(EntityType.VEHICLE, vehicle_id))
