"""
Quoting Engine for Tour & Travels bookings
Tiered outstation fares, flat city fares, time-of-day multipliers,
round trip discounts, cancellation fees and package tour pricing
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from pydantic import BaseModel

from ..errors import InvalidCategory, InvalidInput
from ..models import (
    BookingType,
    OutstationRate,
    Package,
    Passengers,
    PricingBreakdown,
    TripType,
    VehicleCategory,
    to_utc,
)
from .catalog import PricingCatalog

logger = logging.getLogger(__name__)

# Booking types priced from the distance brackets; the rest use flat city rates
OUTSTATION_TYPES = frozenset({BookingType.OUTSTATION, BookingType.PACKAGE_TOUR})

# (tier, minutes before pickup at which the tier starts); last tier catches the rest
CANCELLATION_TIERS: Tuple[Tuple[str, Optional[float]], ...] = (
    ("before_1_hour", 60),
    ("before_30_min", 30),
    ("after_arrival", None),
)


class CancellationFee(BaseModel):
    category: str
    tier: str
    fee: float
    minutesBeforePickup: float


def round_currency(amount: float) -> float:
    """Round half-up to whole currency units."""
    return float(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_night_time(moment: datetime) -> bool:
    """Night charges apply from 10 PM to 6 AM."""
    return moment.hour >= 22 or moment.hour < 6


def is_peak_time(moment: datetime) -> bool:
    """Weekday rush hours: 8-10 AM and 6-8 PM."""
    if moment.weekday() >= 5:
        return False
    return 8 <= moment.hour <= 10 or 18 <= moment.hour <= 20


def select_bracket(profile: VehicleCategory, distance_km: float) -> Optional[OutstationRate]:
    for bracket in profile.outstationRates:
        if bracket.contains(distance_km):
            return bracket
    return None


def calculate_fare(
    profile: VehicleCategory,
    distance_km: float,
    duration_hours: float = 0,
    trip_type: TripType = TripType.ONE_WAY,
    is_round_trip: Optional[bool] = None,
    is_night_trip: bool = False,
    is_peak_hour: bool = False,
    passengers: Optional[Passengers] = None,
    outstation: bool = True,
) -> PricingBreakdown:
    """
    Calculate a deterministic fare breakdown for one trip.

    Outstation trips use the distance bracket (per km + driver allowance,
    floored at the bracket minimum fare). City trips use base price plus
    per km and per hour rates, floored at the base price. Multipliers apply
    night (or else peak), then multi-city; the round trip discount comes
    off the multiplied subtotal and the total is rounded half-up.
    """
    if profile is None:
        raise InvalidCategory(None)
    if distance_km is None or distance_km < 0:
        raise InvalidInput(f"Distance must be non-negative, got {distance_km}")
    duration_hours = duration_hours or 0
    if duration_hours < 0:
        raise InvalidInput(f"Duration must be non-negative, got {duration_hours}")
    if passengers is not None and passengers.computed_total > profile.seatingCapacity:
        raise InvalidInput(
            f"{passengers.computed_total} passengers exceed {profile.name} capacity of {profile.seatingCapacity}"
        )
    if is_round_trip is None:
        is_round_trip = trip_type == TripType.ROUND_TRIP

    bracket = select_bracket(profile, distance_km) if outstation else None

    if bracket is not None:
        base_price = 0.0
        distance_charge = distance_km * bracket.perKm
        time_charge = 0.0
        driver_allowance = bracket.driverAllowance
        minimum_fare = bracket.minimumFare
    else:
        base_price = profile.basePrice
        distance_charge = distance_km * profile.perKm
        time_charge = duration_hours * profile.perHour
        driver_allowance = 0.0
        minimum_fare = profile.basePrice

    raw = base_price + distance_charge + time_charge + driver_allowance
    subtotal = max(raw, minimum_fare)

    # Night and peak never stack; peak hours are daytime only
    multipliers = {}
    if is_night_trip:
        multipliers["night"] = profile.nightChargeMultiplier
    elif is_peak_hour:
        multipliers["peak"] = profile.peakHourMultiplier
    if trip_type == TripType.MULTI_CITY:
        multipliers["multiCity"] = profile.multiCityMultiplier

    adjusted = subtotal
    for factor in multipliers.values():
        adjusted *= factor

    discount = adjusted * profile.roundTripDiscount / 100 if is_round_trip else 0.0
    total = round_currency(adjusted - discount)

    return PricingBreakdown(
        category=profile.name,
        bracket=bracket.label if bracket else None,
        basePrice=round(base_price, 2),
        distanceCharge=round(distance_charge, 2),
        timeCharge=round(time_charge, 2),
        driverAllowance=round(driver_allowance, 2),
        minimumFareAdjustment=round(subtotal - raw, 2),
        subtotal=round(subtotal, 2),
        multipliers=multipliers,
        multiplierAdjustments=round(adjusted - subtotal, 2),
        discount=round(discount, 2),
        totalAmount=max(total, 0.0),
    )


def cancellation_fee(profile: VehicleCategory, minutes_before_pickup: float) -> CancellationFee:
    """Flat fee from the first tier whose threshold has not been crossed yet."""
    charges = profile.cancellationCharges
    for tier, threshold in CANCELLATION_TIERS:
        if threshold is None or minutes_before_pickup >= threshold:
            return CancellationFee(
                category=profile.name,
                tier=tier,
                fee=getattr(charges, tier),
                minutesBeforePickup=minutes_before_pickup,
            )
    raise AssertionError("cancellation tiers must end with a catch-all")


def calculate_package_price(
    package: Package,
    adults: int = 1,
    children: int = 0,
    infants: int = 0,
    travel_date: Optional[datetime] = None,
    vehicle_type: Optional[str] = None,
) -> PricingBreakdown:
    """Per-person package pricing with seasonal multiplier, group discount and vehicle option cost."""
    pricing = package.pricing
    child_price = pricing.childPrice if pricing.childPrice is not None else pricing.pricePerPerson
    infant_price = pricing.infantPrice or 0

    base_price = (
        pricing.basePrice
        + adults * pricing.pricePerPerson
        + children * child_price
        + infants * infant_price
    )

    multipliers = {}
    travel_date = to_utc(travel_date)
    if travel_date is not None:
        for season in pricing.seasonalPricing:
            if to_utc(season.startDate) <= travel_date <= to_utc(season.endDate):
                multipliers["seasonal"] = season.multiplier
                break
    adjusted = base_price * multipliers.get("seasonal", 1.0)

    discount = 0.0
    head_count = adults + children
    for group in pricing.groupDiscounts:
        if group.minPeople <= head_count <= group.maxPeople:
            discount = adjusted * group.discountPercentage / 100
            break

    vehicle_cost = 0.0
    if vehicle_type:
        for option in package.vehicleOptions:
            if option.vehicleType.lower() == vehicle_type.lower():
                vehicle_cost = option.additionalCost
                break

    total = round_currency(adjusted - discount + vehicle_cost)
    return PricingBreakdown(
        category=vehicle_type,
        basePrice=round(base_price, 2),
        subtotal=round(base_price, 2),
        multipliers=multipliers,
        multiplierAdjustments=round(adjusted - base_price, 2),
        discount=round(discount, 2),
        extraCharges=round(vehicle_cost, 2),
        totalAmount=max(total, 0.0),
    )


class PricingEngine:
    """Catalog-bound pricing used by the booking lifecycle and pricing routes"""

    def __init__(self, catalog: PricingCatalog):
        self.catalog = catalog

    def quote(
        self,
        category: str,
        distance_km: float,
        duration_hours: float = 0,
        booking_type: BookingType = BookingType.OUTSTATION,
        trip_type: TripType = TripType.ONE_WAY,
        pickup_at: Optional[datetime] = None,
        is_night_trip: Optional[bool] = None,
        is_peak_hour: Optional[bool] = None,
        passengers: Optional[Passengers] = None,
    ) -> PricingBreakdown:
        profile = self.catalog.get(category)

        # Time-of-day flags come from the pickup wall clock unless given explicitly
        if pickup_at is not None:
            if is_night_trip is None:
                is_night_trip = is_night_time(pickup_at)
            if is_peak_hour is None:
                is_peak_hour = is_peak_time(pickup_at)

        breakdown = calculate_fare(
            profile,
            distance_km,
            duration_hours=duration_hours,
            trip_type=trip_type,
            is_night_trip=bool(is_night_trip),
            is_peak_hour=bool(is_peak_hour),
            passengers=passengers,
            outstation=booking_type in OUTSTATION_TYPES,
        )
        logger.info(
            f"Quoted {profile.name} {distance_km}km {trip_type.value}: {breakdown.totalAmount} "
            f"(bracket={breakdown.bracket}, multipliers={breakdown.multipliers})"
        )
        return breakdown

    def cancellation_fee(self, category: str, minutes_before_pickup: float) -> CancellationFee:
        return cancellation_fee(self.catalog.get(category), minutes_before_pickup)
