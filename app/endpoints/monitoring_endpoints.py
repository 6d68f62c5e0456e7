from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.core.container import Services
from app.endpoints.deps import get_current_vendor, get_services
from app.utiles.custom_helpers import success_response
from app.utiles.decoratores import handle_exceptions

router = APIRouter(tags=["Monitoring"])

Vendor = Dict[str, Any]


@router.get("/metrics", response_model=dict)
@handle_exceptions
async def get_system_metrics(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    metrics = await services.monitoring.get_system_metrics()
    metrics["scheduler"] = services.scheduler.get_all_job_statuses()
    return success_response(metrics)


@router.get("/stats", response_model=dict)
@handle_exceptions
async def get_request_stats(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    return success_response(await services.monitoring.get_request_stats())


@router.get("/resources", response_model=dict)
@handle_exceptions
async def get_resource_usage(vendor: Vendor = Depends(get_current_vendor), services: Services = Depends(get_services)):
    return success_response(await services.monitoring.get_resource_usage())
