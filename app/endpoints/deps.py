from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.container import Services
from app.core.exceptions import InvalidCredentials, PermissionDenied
from app.core.security import LOGIN_TOKEN_TYPE, decode_token
from app.services.vendor_service import has_permission
from app.utiles.logger import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_current_vendor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """Resolve the bearer token to an active vendor or fail with 401."""
    if credentials is None:
        raise InvalidCredentials("Please authenticate")

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != LOGIN_TOKEN_TYPE or not payload.get("vendor_id"):
        logger.warning("Rejected invalid or expired token")
        raise InvalidCredentials("Invalid or expired token")

    vendor = await services.hierarchy.get_vendor(payload["vendor_id"])
    if not vendor or not vendor.get("is_active", True):
        logger.warning("Token for missing or inactive vendor %s", payload["vendor_id"])
        raise InvalidCredentials("Vendor not found or inactive")
    return vendor


def require_permission(permission):
    """Dependency factory: 403 unless the vendor holds ``permission`` or ALL."""

    async def checker(vendor: Dict[str, Any] = Depends(get_current_vendor)) -> Dict[str, Any]:
        if not has_permission(vendor, permission):
            logger.warning("Vendor %s lacks permission %s", vendor["vendor_id"], permission)
            raise PermissionDenied("Insufficient permissions")
        return vendor

    return checker
