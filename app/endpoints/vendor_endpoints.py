from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from app.core.container import Services
from app.endpoints.deps import get_current_vendor, get_services, require_permission
from app.models.document import DocumentUpload
from app.models.enums import Permission, VendorLevel, VendorType, VerificationStatus
from app.models.vendor import (
    BulkNotification,
    ChildVendorRegister,
    VendorDocumentVerify,
    VendorLogin,
    VendorPermissionsUpdate,
    VendorProfileUpdate,
    VendorRegister,
    VendorStatusUpdate,
    VendorTransfer,
)
from app.utiles.custom_helpers import success_response
from app.utiles.decoratores import handle_exceptions
from app.utiles.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Vendor Management"])

Vendor = Dict[str, Any]
user_management = require_permission(Permission.USER_MANAGEMENT)


# ======================================================
# Registration / authentication
# ======================================================

@router.post("/register", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def register_vendor(payload: VendorRegister, services: Services = Depends(get_services)):
    """Self-registration of a SUPER vendor; returns the vendor and a login token."""
    logger.info("API Request → Register vendor: email=%s", payload.email)
    return success_response(await services.vendors.register_super_vendor(payload))


@router.post("/register/city", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def register_city_vendor(
    payload: ChildVendorRegister,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.vendors.register_child_vendor(vendor, VendorType.CITY, payload))


@router.post("/register/sub", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def register_sub_vendor(
    payload: ChildVendorRegister,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.vendors.register_child_vendor(vendor, VendorType.SUB, payload))


@router.post("/register/local", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def register_local_vendor(
    payload: ChildVendorRegister,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.vendors.register_child_vendor(vendor, VendorType.LOCAL, payload))


@router.post("/login", response_model=dict)
@handle_exceptions
async def login_vendor(payload: VendorLogin, services: Services = Depends(get_services)):
    logger.info("API Request → Vendor login: email=%s", payload.email)
    return success_response(await services.vendors.login(payload.email, payload.password))


# ======================================================
# Own profile / tree
# ======================================================

@router.get("/profile", response_model=dict)
@handle_exceptions
async def get_profile(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    return success_response(await services.vendors.get_profile(vendor["vendor_id"]))


@router.patch("/profile", response_model=dict)
@handle_exceptions
async def update_profile(
    payload: VendorProfileUpdate,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    return success_response(await services.vendors.update_profile(vendor["vendor_id"], payload))


@router.get("/sub-vendors", response_model=dict)
@handle_exceptions
async def get_sub_vendors(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    return success_response(await services.vendors.get_sub_vendors(vendor))


@router.get("/dashboard", response_model=dict)
@handle_exceptions
async def get_dashboard(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    return success_response(await services.vendors.get_dashboard(vendor["vendor_id"]))


@router.get("/hierarchy", response_model=dict)
@handle_exceptions
async def get_own_hierarchy(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    return success_response(await services.hierarchy.get_vendor_hierarchy(vendor["vendor_id"]))


# ======================================================
# Listings
# ======================================================

@router.get("/super/{vendor_id}/all-vendors", response_model=dict)
@handle_exceptions
async def get_all_vendors(
    vendor_id: str,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.vendors.get_all_vendors_under_super(vendor_id))


@router.get("/city/{vendor_id}/all-vendors", response_model=dict)
@handle_exceptions
async def get_city_vendors(
    vendor_id: str,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.vendors.get_city_vendors(vendor_id))


@router.get("/sub-vendors/local/{vendor_id}/all-vendors", response_model=dict)
@handle_exceptions
async def get_sub_vendor_local_vendors(
    vendor_id: str,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.vendors.get_sub_vendor_local_vendors(vendor))


# ======================================================
# Notifications
# ======================================================

@router.post("/notifications/bulk", response_model=dict)
@handle_exceptions
async def send_bulk_notification(
    payload: BulkNotification,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    return success_response(await services.vendors.send_bulk_notification(vendor, payload))


# ======================================================
# Per-level operations
# ======================================================

@router.post("/{level}/{vendor_id}/documents", response_model=dict, status_code=status.HTTP_201_CREATED)
@handle_exceptions
async def upload_vendor_document(
    level: VendorLevel,
    vendor_id: str,
    payload: DocumentUpload,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(
        await services.vendors.upload_vendor_document(vendor, vendor_id, level.value, payload)
    )


@router.post("/{level}/{vendor_id}/verify-documents", response_model=dict)
@handle_exceptions
async def verify_vendor_document(
    level: VendorLevel,
    vendor_id: str,
    payload: VendorDocumentVerify,
    vendor: Vendor = Depends(require_permission(Permission.DOCUMENT_VERIFICATION)),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    document = await services.vendors.verify_vendor_document(
        vendor,
        vendor_id,
        level.value,
        payload.document_type,
        payload.status == VerificationStatus.VERIFIED,
        payload.remarks,
    )
    return success_response(document)


@router.post("/{level}/{vendor_id}/status", response_model=dict)
@handle_exceptions
async def update_vendor_status(
    level: VendorLevel,
    vendor_id: str,
    payload: VendorStatusUpdate,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.vendors.update_status(vendor_id, level.value, payload.status))


@router.post("/{vendor_id}/permissions", response_model=dict)
@handle_exceptions
async def update_vendor_permissions(
    vendor_id: str,
    payload: VendorPermissionsUpdate,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.vendors.update_permissions(vendor_id, payload.permissions))


@router.post("/{vendor_id}/transfer", response_model=dict)
@handle_exceptions
async def transfer_vendor(
    vendor_id: str,
    payload: VendorTransfer,
    vendor: Vendor = Depends(user_management),
    services: Services = Depends(get_services),
):
    # the caller must manage both the vendor and its new parent
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    await services.hierarchy.ensure_can_manage(vendor, payload.new_parent_id)
    return success_response(await services.hierarchy.transfer_vendor(vendor_id, payload.new_parent_id))


# ======================================================
# Hierarchy / reporting for a managed vendor
# ======================================================

@router.get("/{vendor_id}/hierarchy", response_model=dict)
@handle_exceptions
async def get_vendor_hierarchy(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.hierarchy.get_vendor_hierarchy(vendor_id))


@router.get("/{vendor_id}/parent-chain", response_model=dict)
@handle_exceptions
async def get_parent_chain(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.hierarchy.get_parent_chain(vendor_id))


@router.get("/{vendor_id}/hierarchy-stats", response_model=dict)
@handle_exceptions
async def get_hierarchy_stats(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.hierarchy.get_vendor_stats(vendor_id))


@router.get("/{vendor_id}/statistics", response_model=dict)
@handle_exceptions
async def get_vendor_statistics(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.fleet_stats.get_vendor_statistics(vendor_id))


@router.get("/{vendor_id}/documents/expiry-summary", response_model=dict)
@handle_exceptions
async def get_document_expiry_summary(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.documents.get_document_expiry_summary(vendor_id))


@router.get("/{vendor_id}/status-counts", response_model=dict)
@handle_exceptions
async def get_status_counts(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    target = await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.fleet_stats.get_status_counts(target))


@router.get("/{vendor_id}/fleet-status", response_model=dict)
@handle_exceptions
async def get_fleet_status(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.fleet_stats.get_fleet_status(vendor_id))


@router.get("/{vendor_id}/driver-availability", response_model=dict)
@handle_exceptions
async def get_driver_availability(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.fleet_stats.get_driver_availability(vendor_id))


@router.get("/{vendor_id}/compliance-reports", response_model=dict)
@handle_exceptions
async def get_compliance_reports(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    report = await services.documents.get_vendor_compliance_report(vendor_id)
    summary = await services.documents.get_document_compliance_summary(vendor_id)
    return success_response({"entities": report, "documents": summary})


@router.get("/{vendor_id}/operational-metrics", response_model=dict)
@handle_exceptions
async def get_operational_metrics(
    vendor_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    services: Services = Depends(get_services),
):
    await services.hierarchy.ensure_can_manage(vendor, vendor_id)
    return success_response(await services.fleet_stats.get_operational_metrics(vendor_id))
