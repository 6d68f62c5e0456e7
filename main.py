# main.py (project root)
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.container import Services, build_services
from app.core.email import build_fast_mail
from app.core.exceptions import error_body
from app.db.mongodb import close_mongo_connection, connect_to_mongo
from app.db.redis import close_redis_client, create_redis_client
from app.endpoints import document_endpoints, driver_endpoint, monitoring_endpoints, vehicle_endpoint, vendor_endpoints
from app.services.scheduler_service import schedule_compliance_jobs
from app.utiles.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect Mongo/Redis, wire services and start background jobs."""
    if getattr(app.state, "services", None) is not None:
        # services injected by the caller (tests); nothing to connect
        yield
        return

    client, db = await connect_to_mongo(settings.MONGO_URI, settings.MONGO_DB)
    redis_client = create_redis_client(settings)
    services = build_services(db, redis_client, build_fast_mail(settings), settings)
    app.state.services = services

    await services.cache.initialize()
    services.monitoring.start_monitoring()
    if settings.SCHEDULER_ENABLED:
        schedule_compliance_jobs(services.scheduler, services.documents)
    logger.info("✅ Fleet management API started")

    try:
        yield
    finally:
        services.scheduler.stop_all_jobs()
        services.monitoring.stop_monitoring()
        await close_redis_client(redis_client)
        await close_mongo_connection(client)
        app.state.services = None


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())[1:])
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(services: Optional[Services] = None) -> FastAPI:
    app = FastAPI(
        title="Fleet Management API",
        description="Vendor hierarchy, fleet and compliance document management",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def track_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        services = getattr(request.app.state, "services", None)
        if services is not None:
            services.monitoring.track_request(
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500 and request.app.state.services is not None:
            request.app.state.services.monitoring.track_error(exc, request.method, request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(error_body(exc.detail, exc.status_code)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content=error_body(_validation_message(exc), 400))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if request.app.state.services is not None:
            request.app.state.services.monitoring.track_error(exc, request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal Server Error", 500))

    app.include_router(vendor_endpoints.router, prefix="/api/vendors")
    app.include_router(vehicle_endpoint.router, prefix="/api/vehicles")
    app.include_router(driver_endpoint.router, prefix="/api/drivers")
    app.include_router(document_endpoints.router, prefix="/api/documents")
    app.include_router(monitoring_endpoints.router, prefix="/api/v1/monitoring")

    @app.get("/health")
    async def health_check():
        return {"status": "OK", "timestamp": time.time()}

    @app.get("/")
    async def root():
        return {"message": "Fleet Management API running"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
