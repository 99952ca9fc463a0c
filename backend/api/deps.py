"""
FastAPI dependencies wiring services to the shared database, catalog and publisher.
"""
from fastapi import Depends, Request

from ..database import get_db
from ..events import EventPublisher, publisher
from ..pricing.catalog import PricingCatalog
from ..pricing.quoting import PricingEngine
from ..redis_service import RedisService, get_redis
from ..services.dashboard import DashboardService
from ..services.directory import CustomerDirectory, DriverDirectory, PackageDirectory, VehicleDirectory
from ..services.lifecycle import BookingLifecycleService


def get_catalog(request: Request) -> PricingCatalog:
    return request.app.state.catalog


def get_publisher() -> EventPublisher:
    return publisher


def get_pricing_engine(catalog: PricingCatalog = Depends(get_catalog)) -> PricingEngine:
    return PricingEngine(catalog)


def get_lifecycle(
    db=Depends(get_db),
    catalog: PricingCatalog = Depends(get_catalog),
    events: EventPublisher = Depends(get_publisher),
) -> BookingLifecycleService:
    return BookingLifecycleService(db, catalog, events)


def get_dashboard(db=Depends(get_db), cache: RedisService = Depends(get_redis)) -> DashboardService:
    return DashboardService(db, cache)


def get_drivers(db=Depends(get_db)) -> DriverDirectory:
    return DriverDirectory(db)


def get_vehicles(db=Depends(get_db)) -> VehicleDirectory:
    return VehicleDirectory(db)


def get_customers(db=Depends(get_db)) -> CustomerDirectory:
    return CustomerDirectory(db)


def get_packages(db=Depends(get_db)) -> PackageDirectory:
    return PackageDirectory(db)
