from dataclasses import dataclass

from fastapi_mail import FastMail
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from app.core.config import Settings, get_settings
from app.services.assignment_service import AssignmentService
from app.services.cache_service import CacheService
from app.services.document_service import DocumentService
from app.services.driver_service import DriverService
from app.services.fleet_stats_service import FleetStatsService
from app.services.hierarchy_service import HierarchyService
from app.services.monitoring_service import MonitoringService
from app.services.notification_service import NotificationService
from app.services.scheduler_service import SchedulerService
from app.services.vehicle_service import VehicleService
from app.services.vendor_service import VendorService


@dataclass
class Services:
    db: AsyncIOMotorDatabase
    cache: CacheService
    notifier: NotificationService
    fleet_stats: FleetStatsService
    hierarchy: HierarchyService
    documents: DocumentService
    vendors: VendorService
    vehicles: VehicleService
    drivers: DriverService
    assignments: AssignmentService
    scheduler: SchedulerService
    monitoring: MonitoringService


def build_services(db: AsyncIOMotorDatabase, redis_client: Redis, mailer: FastMail, settings: Settings = None) -> Services:
    """Wire every service around one database, one Redis client and one mailer."""
    settings = settings or get_settings()
    cache = CacheService(redis_client)
    notifier = NotificationService(mailer)
    fleet_stats = FleetStatsService(db, cache)
    hierarchy = HierarchyService(db, cache, fleet_stats)
    documents = DocumentService(db, cache, notifier)
    vehicles = VehicleService(db, cache, hierarchy, documents, fleet_stats)
    drivers = DriverService(db, cache, hierarchy, documents, fleet_stats)
    return Services(
        db=db,
        cache=cache,
        notifier=notifier,
        fleet_stats=fleet_stats,
        hierarchy=hierarchy,
        documents=documents,
        vendors=VendorService(db, cache, hierarchy, fleet_stats, documents, notifier),
        vehicles=vehicles,
        drivers=drivers,
        assignments=AssignmentService(db, vehicles, drivers, fleet_stats, notifier),
        scheduler=SchedulerService(),
        monitoring=MonitoringService(db, cache, settings.MONITORING_SAMPLE_SECONDS),
    )
