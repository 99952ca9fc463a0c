"""
Shared fixtures: an in-memory Mongo, the default pricing catalog and seeded directory records.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from backend.database import ensure_indexes, prepare_for_mongo
from backend.events import EventPublisher
from backend.models import Booking, BookingStatus, PricingBreakdown, TripDetails
from backend.pricing.catalog import PricingCatalog
from backend.services.directory import CustomerDirectory, DriverDirectory, PackageDirectory, VehicleDirectory
from backend.services.lifecycle import BookingLifecycleService

# Wednesday noon: neither night nor peak
TRIP_START = datetime(2030, 1, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog():
    return PricingCatalog.defaults()


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["tour_travels_test"]
    await ensure_indexes(database)
    yield database


@pytest.fixture
def events():
    return []


@pytest.fixture
def publisher(events):
    pub = EventPublisher()

    async def record(event):
        events.append(event)

    pub.subscribe(record)
    return pub


@pytest.fixture
def lifecycle(db, catalog, publisher):
    return BookingLifecycleService(db, catalog, publisher)


@pytest_asyncio.fixture
async def customer(db):
    return await CustomerDirectory(db).create({
        "name": "Priya Sharma",
        "email": "priya@example.com",
        "phone": "+91-9812300001",
    })


@pytest_asyncio.fixture
async def driver(db):
    return await DriverDirectory(db).create({
        "name": "Rajesh Kumar",
        "email": "rajesh@example.com",
        "phone": "+91-9876500001",
        "licenseNumber": "DL-001",
    })


@pytest_asyncio.fixture
async def vehicle(db, driver):
    return await VehicleDirectory(db).create({
        "vehicleNumber": "dl01ab1234",
        "make": "Maruti Suzuki",
        "model": "Dzire",
        "vehicleType": "Sedan",
        "seatingCapacity": 4,
        "owner": driver.id,
    })


@pytest_asyncio.fixture
async def package(db):
    return await PackageDirectory(db).create({
        "name": "Golden Triangle Tour",
        "category": "Heritage",
        "duration": {"days": 3, "nights": 2},
        "pricing": {
            "pricePerPerson": 15000,
            "childPrice": 7500,
            "groupDiscounts": [{"minPeople": 4, "maxPeople": 6, "discountPercentage": 5}],
        },
        "vehicleOptions": [{"vehicleType": "SUV", "capacity": 7, "additionalCost": 3000}],
        "inclusions": ["Hotel accommodation"],
    })


@pytest.fixture
def booking_request(customer):
    def make(**overrides):
        data = {
            "customer": customer.id,
            "bookingType": "Outstation Transfer",
            "tripType": "Round trip",
            "pickup": {"address": "Connaught Place, Delhi"},
            "dropoff": {"address": "Agra Fort, Agra"},
            "schedule": {"startDate": TRIP_START.isoformat()},
            "passengers": {"adults": 2},
            "vehiclePreference": "Sedan",
            "distanceKm": 150,
        }
        data.update(overrides)
        return data
    return make


@pytest.fixture
def stored_booking(db):
    """Insert a booking document directly, bypassing the lifecycle"""
    async def insert(status=BookingStatus.PENDING, total=1000.0, created_at=None, **fields):
        created_at = created_at or datetime.now(timezone.utc)
        booking = Booking(
            bookingId=fields.pop("bookingId", f"TT{uuid.uuid4().int % 10**11:011d}"),
            customer=fields.pop("customer", "cus_test"),
            bookingType=fields.pop("bookingType", "Outstation Transfer"),
            tripType=fields.pop("tripType", "One-way"),
            pickup={"address": "Delhi"},
            dropoff={"address": "Jaipur"},
            schedule=fields.pop("schedule", {"startDate": TRIP_START, "endDate": TRIP_START + timedelta(hours=6)}),
            passengers={"adults": 1, "totalCount": 1},
            vehiclePreference="Sedan",
            pricing=PricingBreakdown(totalAmount=total),
            status=status,
            tripDetails=fields.pop("tripDetails", TripDetails()),
            createdAt=created_at,
            updatedAt=fields.pop("updatedAt", created_at),
            **fields,
        )
        await db.bookings.insert_one(prepare_for_mongo(booking))
        return booking
    return insert
