"""
Pricing API: fare quotes, cancellation fees, categories and package prices.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ...models import CancellationFeeRequest, FareQuoteRequest, PackagePriceRequest
from ...pricing.catalog import PricingCatalog
from ...pricing.quoting import PricingEngine, calculate_package_price
from ...services.directory import PackageDirectory
from ..deps import get_catalog, get_packages, get_pricing_engine

router = APIRouter(prefix="/api", tags=["Pricing"])


@router.post("/pricing/quote", response_model=Dict[str, Any])
async def quote_fare(request: FareQuoteRequest, engine: PricingEngine = Depends(get_pricing_engine)):
    breakdown = engine.quote(
        request.category,
        request.distanceKm,
        duration_hours=request.durationHours,
        booking_type=request.bookingType,
        trip_type=request.tripType,
        pickup_at=request.pickupAt,
        is_night_trip=request.isNightTrip,
        is_peak_hour=request.isPeakHour,
        passengers=request.passengers,
    )
    return breakdown.model_dump(mode="json")


@router.post("/pricing/cancellation-fee", response_model=Dict[str, Any])
async def quote_cancellation_fee(
    request: CancellationFeeRequest,
    engine: PricingEngine = Depends(get_pricing_engine),
):
    return engine.cancellation_fee(request.category, request.minutesBeforePickup).model_dump()


@router.get("/pricing/categories", response_model=List[Dict[str, Any]])
async def list_categories(catalog: PricingCatalog = Depends(get_catalog)):
    return [category.model_dump(mode="json") for category in catalog if category.isActive]


@router.post("/packages/{package_id}/pricing", response_model=Dict[str, Any])
async def price_package(
    package_id: str,
    request: PackagePriceRequest,
    packages: PackageDirectory = Depends(get_packages),
):
    package = await packages.get(package_id)
    breakdown = calculate_package_price(
        package,
        adults=request.adults,
        children=request.children,
        infants=request.infants,
        travel_date=request.travelDate,
        vehicle_type=request.vehicleType,
    )
    return {"packageId": package.id, "packageName": package.name, "pricing": breakdown.model_dump(mode="json")}
