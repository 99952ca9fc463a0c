import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Enums
class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class BookingType(str, Enum):
    LOCAL_TRIP = "Local Trip"
    OUTSTATION = "Outstation Transfer"
    PACKAGE_TOUR = "Package Tour"
    AIRPORT_TRANSFER = "Airport Transfer"


class TripType(str, Enum):
    ONE_WAY = "One-way"
    ROUND_TRIP = "Round trip"
    MULTI_CITY = "Multi-city"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"
    REFUNDED = "Refunded"
    FAILED = "Failed"


class KycStatus(str, Enum):
    PENDING = "Pending"
    UNDER_REVIEW = "Under Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"


# Pricing profiles
class OutstationRate(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    minKm: float = Field(ge=0)
    maxKm: Optional[float] = None
    perKm: float = Field(ge=0)
    driverAllowance: float = Field(default=0, ge=0)
    minimumFare: float = Field(default=0, ge=0)

    def contains(self, distance_km: float) -> bool:
        if distance_km < self.minKm:
            return False
        if self.minKm > 0 and distance_km == self.minKm:
            return False
        return self.maxKm is None or distance_km <= self.maxKm


class CancellationCharges(BaseModel):
    model_config = ConfigDict(frozen=True)

    before_1_hour: float = Field(default=0, ge=0)
    before_30_min: float = Field(default=50, ge=0)
    after_arrival: float = Field(default=100, ge=0)

    @model_validator(mode="after")
    def check_monotonic(self):
        if not (self.before_1_hour <= self.before_30_min <= self.after_arrival):
            raise ValueError("cancellation charges must not decrease as pickup approaches")
        return self


_BRACKET_LABEL = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:-\s*(\d+(?:\.\d+)?))?\s*km\s*(\+)?\s*$", re.IGNORECASE)


def parse_bracket_label(label: str) -> Tuple[float, Optional[float]]:
    """'0-100km' -> (0, 100); '300km+' -> (300, None)"""
    match = _BRACKET_LABEL.match(label)
    if not match:
        raise ValueError(f"Unrecognised outstation bracket label: {label}")
    low, high, open_ended = match.groups()
    if high is None and not open_ended:
        raise ValueError(f"Bracket {label} needs an upper bound or '+'")
    return float(low), (float(high) if high else None)


class VehicleCategory(BaseModel):
    """Immutable pricing profile for a vehicle category."""

    model_config = ConfigDict(frozen=True)

    name: str
    displayName: Optional[str] = None
    description: Optional[str] = None
    seatingCapacity: int = Field(ge=1)
    luggageCapacity: int = Field(default=0, ge=0)
    basePrice: float = Field(ge=0)
    perKm: float = Field(ge=0)
    perHour: float = Field(default=0, ge=0)
    outstationRates: Tuple[OutstationRate, ...] = ()
    roundTripDiscount: float = Field(default=10, ge=0, le=100)
    multiCityMultiplier: float = Field(default=1.2, ge=1.0)
    nightChargeMultiplier: float = Field(default=1.25, ge=1.0)
    peakHourMultiplier: float = Field(default=1.15, ge=1.0)
    cancellationCharges: CancellationCharges = Field(default_factory=CancellationCharges)
    isActive: bool = True
    sortOrder: int = 0

    @model_validator(mode="before")
    @classmethod
    def flatten_seed_document(cls, data: Any):
        # Seeded documents keep rates under "pricing" and brackets keyed by label
        if not isinstance(data, dict):
            return data
        data = dict(data)
        pricing = data.pop("pricing", None)
        if isinstance(pricing, dict):
            for key, value in pricing.items():
                data.setdefault(key, value)
        rates = data.get("outstationRates")
        if isinstance(rates, dict):
            brackets = []
            for label, rate in rates.items():
                if rate is None:
                    continue
                low, high = parse_bracket_label(label)
                brackets.append({"label": label, "minKm": low, "maxKm": high, **rate})
            data["outstationRates"] = sorted(brackets, key=lambda b: b["minKm"])
        return data

    @model_validator(mode="after")
    def check_brackets(self):
        previous = None
        for bracket in self.outstationRates:
            if previous is None:
                if bracket.minKm != 0:
                    raise ValueError(f"{self.name}: first bracket must start at 0km")
            elif previous.maxKm is None or previous.maxKm != bracket.minKm:
                raise ValueError(f"{self.name}: brackets must be contiguous and ordered ({previous.label} -> {bracket.label})")
            if bracket.maxKm is not None and bracket.maxKm <= bracket.minKm:
                raise ValueError(f"{self.name}: bracket {bracket.label} is empty")
            previous = bracket
        if previous is not None and previous.maxKm is not None:
            raise ValueError(f"{self.name}: last bracket must be open-ended")
        return self


# Booking parts
class Location(BaseModel):
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    landmark: Optional[str] = None
    contactPerson: Optional[str] = None
    contactPhone: Optional[str] = None


class Stop(BaseModel):
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    stopDuration: Optional[int] = None  # minutes
    purpose: Optional[str] = None


class Schedule(BaseModel):
    startDate: datetime
    endDate: Optional[datetime] = None
    startTime: Optional[str] = None  # HH:MM, overrides the clock of startDate
    duration: Optional[float] = None  # hours

    @field_validator("startTime")
    @classmethod
    def check_clock(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not re.match(r"^([01]?\d|2[0-3]):[0-5]\d$", value):
            raise ValueError("startTime must be HH:MM")
        return value

    def pickup_at(self) -> datetime:
        if not self.startTime:
            return self.startDate
        hour, _, minute = self.startTime.partition(":")
        return self.startDate.replace(hour=int(hour), minute=int(minute or 0), second=0, microsecond=0)


class Passengers(BaseModel):
    adults: int = 1
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    totalCount: Optional[int] = None

    @property
    def computed_total(self) -> int:
        return self.adults + self.children + self.infants


class PricingBreakdown(BaseModel):
    category: Optional[str] = None
    bracket: Optional[str] = None
    basePrice: float = 0
    distanceCharge: float = 0
    timeCharge: float = 0
    driverAllowance: float = 0
    minimumFareAdjustment: float = 0
    subtotal: float = 0
    multipliers: Dict[str, float] = {}
    multiplierAdjustments: float = 0
    discount: float = 0
    extraCharges: float = 0
    totalAmount: float = Field(default=0, ge=0)
    currency: str = "INR"


class PaymentTransaction(BaseModel):
    transactionId: str
    amount: float
    method: str
    status: str
    timestamp: datetime = Field(default_factory=utc_now)


class PaymentInfo(BaseModel):
    status: PaymentStatus = PaymentStatus.PENDING
    method: Optional[str] = None
    paidAmount: float = Field(default=0, ge=0)
    transactions: List[PaymentTransaction] = []


class TripDetails(BaseModel):
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    totalDistance: Optional[float] = None


class Cancellation(BaseModel):
    reason: str
    fee: float = 0
    refundAmount: float = 0
    minutesBeforePickup: Optional[float] = None
    cancelledAt: datetime = Field(default_factory=utc_now)


class PackageDetails(BaseModel):
    packageId: str
    inclusions: List[str] = []
    exclusions: List[str] = []


class BookingNotes(BaseModel):
    customerNotes: Optional[str] = None
    adminNotes: Optional[str] = None
    driverNotes: Optional[str] = None


class StatusChange(BaseModel):
    """Lifecycle transition event."""

    bookingId: str
    fromStatus: Optional[BookingStatus] = None
    toStatus: BookingStatus
    timestamp: datetime = Field(default_factory=utc_now)


class Booking(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    bookingId: str
    customer: str
    bookingType: BookingType
    tripType: TripType
    pickup: Location
    dropoff: Location
    intermediateStops: List[Stop] = []
    schedule: Schedule
    passengers: Passengers
    vehiclePreference: Optional[str] = None
    distanceKm: float = 0
    assignedDriver: Optional[str] = None
    assignedVehicle: Optional[str] = None
    packageDetails: Optional[PackageDetails] = None
    pricing: PricingBreakdown
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
    status: BookingStatus = BookingStatus.PENDING
    tripDetails: TripDetails = Field(default_factory=TripDetails)
    cancellation: Optional[Cancellation] = None
    specialRequests: List[str] = []
    notes: BookingNotes = Field(default_factory=BookingNotes)
    statusHistory: List[StatusChange] = []
    version: int = 1
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_passenger_total(self):
        if self.passengers.totalCount != self.passengers.computed_total:
            raise ValueError("passengers.totalCount must equal adults + children + infants")
        return self


# Directories
class Driver(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    email: str
    phone: str
    licenseNumber: Optional[str] = None
    licenseType: Optional[str] = None
    experience: Optional[int] = None
    kycStatus: KycStatus = KycStatus.PENDING
    isActive: bool = True
    isAvailable: bool = True
    currentBookingId: Optional[str] = None
    kycNotes: Optional[str] = None
    languages: List[str] = []
    totalTrips: int = 0
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.strip().lower()


class Vehicle(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    vehicleNumber: str
    make: str
    model: str
    year: Optional[int] = None
    vehicleType: str
    fuelType: Optional[str] = None
    seatingCapacity: int = Field(ge=1)
    color: Optional[str] = None
    owner: Optional[str] = None
    isActive: bool = True
    isAvailable: bool = True
    currentBookingId: Optional[str] = None
    features: List[str] = []
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @field_validator("vehicleNumber")
    @classmethod
    def upper_number(cls, value: str) -> str:
        return value.strip().upper()


class Customer(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    email: str
    phone: str
    isVerified: bool = False
    isActive: bool = True
    loyaltyPoints: int = 0
    totalBookings: int = 0
    registrationSource: str = "Admin Portal"
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)


class SeasonalPrice(BaseModel):
    season: str
    startDate: datetime
    endDate: datetime
    multiplier: float = Field(default=1.0, gt=0)


class GroupDiscount(BaseModel):
    minPeople: int
    maxPeople: int
    discountPercentage: float = Field(ge=0, le=100)


class PackagePricing(BaseModel):
    basePrice: float = Field(default=0, ge=0)
    pricePerPerson: float = Field(ge=0)
    childPrice: Optional[float] = None
    infantPrice: Optional[float] = None
    seasonalPricing: List[SeasonalPrice] = []
    groupDiscounts: List[GroupDiscount] = []


class PackageDuration(BaseModel):
    days: int = Field(ge=1)
    nights: int = Field(ge=0)


class VehicleOption(BaseModel):
    vehicleType: str
    capacity: Optional[int] = None
    additionalCost: float = 0


class Package(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    duration: PackageDuration
    pricing: PackagePricing
    vehicleOptions: List[VehicleOption] = []
    inclusions: List[str] = []
    exclusions: List[str] = []
    isActive: bool = True
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)


# Request Models
class BookingCreate(BaseModel):
    customer: str
    bookingType: BookingType
    tripType: TripType = TripType.ONE_WAY
    pickup: Location
    dropoff: Location
    intermediateStops: List[Stop] = []
    schedule: Schedule
    passengers: Passengers = Field(default_factory=Passengers)
    vehiclePreference: Optional[str] = None
    distanceKm: float = 0
    durationHours: Optional[float] = None
    packageId: Optional[str] = None
    paidAmount: float = 0
    specialRequests: List[str] = []
    customerNotes: Optional[str] = None


class AssignRequest(BaseModel):
    driverId: str
    vehicleId: str


class StatusUpdate(BaseModel):
    status: BookingStatus
    completedAt: Optional[datetime] = None
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1)
    refundAmount: Optional[float] = Field(default=None, ge=0)


class FareQuoteRequest(BaseModel):
    category: str
    distanceKm: float
    durationHours: float = 0
    bookingType: BookingType = BookingType.OUTSTATION
    tripType: TripType = TripType.ONE_WAY
    pickupAt: Optional[datetime] = None
    isNightTrip: Optional[bool] = None
    isPeakHour: Optional[bool] = None
    passengers: Passengers = Field(default_factory=Passengers)


class CancellationFeeRequest(BaseModel):
    category: str
    minutesBeforePickup: float


class PackagePriceRequest(BaseModel):
    travelDate: datetime
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    vehicleType: Optional[str] = None


class KycUpdate(BaseModel):
    kycStatus: KycStatus
    notes: Optional[str] = None


class AvailabilityUpdate(BaseModel):
    isAvailable: bool
