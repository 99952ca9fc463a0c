#!/usr/bin/env python3
"""
Tour & Travels Database Seeder
Seeds vehicle categories plus sample drivers, vehicles, customers and packages
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict

from .database import close_client, ensure_indexes, get_database, prepare_for_mongo
from .models import Customer, Driver, KycStatus, Package, Vehicle, VehicleCategory
from .pricing.catalog import DEFAULT_CATEGORIES

SEED_COLLECTIONS = ['vehicle_categories', 'drivers', 'vehicles', 'customers', 'packages']

DRIVERS = [
    {
        "id": "drv_rajesh",
        "name": "Rajesh Kumar",
        "email": "rajesh.kumar@tourtravels.com",
        "phone": "+91-9876500001",
        "licenseNumber": "DL-0420110012345",
        "licenseType": "Commercial",
        "experience": 8,
        "kycStatus": KycStatus.APPROVED,
        "languages": ["Hindi", "English"],
    },
    {
        "id": "drv_suresh",
        "name": "Suresh Patel",
        "email": "suresh.patel@tourtravels.com",
        "phone": "+91-9876500002",
        "licenseNumber": "GJ-0120150067890",
        "licenseType": "Commercial",
        "experience": 5,
        "kycStatus": KycStatus.APPROVED,
        "languages": ["Gujarati", "Hindi"],
    },
    {
        "id": "drv_anil",
        "name": "Anil Menon",
        "email": "anil.menon@tourtravels.com",
        "phone": "+91-9876500003",
        "licenseNumber": "KL-0720180054321",
        "licenseType": "Commercial",
        "experience": 3,
        "kycStatus": KycStatus.UNDER_REVIEW,
        "isActive": False,
        "languages": ["Malayalam", "English"],
    },
]

VEHICLES = [
    {
        "id": "veh_dzire",
        "vehicleNumber": "DL01AB1234",
        "make": "Maruti Suzuki",
        "model": "Dzire",
        "year": 2022,
        "vehicleType": "Sedan",
        "fuelType": "CNG",
        "seatingCapacity": 4,
        "color": "White",
        "owner": "drv_rajesh",
        "features": ["AC", "GPS"],
    },
    {
        "id": "veh_innova",
        "vehicleNumber": "GJ01CD5678",
        "make": "Toyota",
        "model": "Innova Crysta",
        "year": 2021,
        "vehicleType": "SUV",
        "fuelType": "Diesel",
        "seatingCapacity": 7,
        "color": "Silver",
        "owner": "drv_suresh",
        "features": ["AC", "GPS", "Extra Legroom"],
    },
    {
        "id": "veh_tempo",
        "vehicleNumber": "KL07EF9012",
        "make": "Force",
        "model": "Traveller",
        "year": 2020,
        "vehicleType": "Tempo Traveller",
        "fuelType": "Diesel",
        "seatingCapacity": 12,
        "color": "White",
        "owner": "drv_anil",
        "features": ["AC", "Reading Lights"],
    },
]

CUSTOMERS = [
    {
        "id": "cus_priya",
        "name": "Priya Sharma",
        "email": "priya.sharma@example.com",
        "phone": "+91-9812300001",
        "isVerified": True,
    },
    {
        "id": "cus_arjun",
        "name": "Arjun Nair",
        "email": "arjun.nair@example.com",
        "phone": "+91-9812300002",
        "isVerified": True,
    },
]


def _season(name: str, start: str, end: str, multiplier: float) -> Dict:
    return {
        "season": name,
        "startDate": datetime.fromisoformat(start).replace(tzinfo=timezone.utc),
        "endDate": datetime.fromisoformat(end).replace(tzinfo=timezone.utc),
        "multiplier": multiplier,
    }


GROUP_DISCOUNTS = [
    {"minPeople": 4, "maxPeople": 6, "discountPercentage": 5},
    {"minPeople": 7, "maxPeople": 12, "discountPercentage": 10},
]

PACKAGES = [
    {
        "id": "pkg_golden_triangle",
        "name": "Golden Triangle Tour",
        "description": "Delhi, Agra, Jaipur - 3 Days",
        "category": "Heritage",
        "duration": {"days": 3, "nights": 2},
        "pricing": {
            "pricePerPerson": 15000,
            "childPrice": 7500,
            "infantPrice": 0,
            "seasonalPricing": [_season("Winter Peak", "2025-12-15", "2026-01-15", 1.2)],
            "groupDiscounts": GROUP_DISCOUNTS,
        },
        "vehicleOptions": [
            {"vehicleType": "Sedan", "capacity": 4, "additionalCost": 0},
            {"vehicleType": "SUV", "capacity": 7, "additionalCost": 3000},
        ],
        "inclusions": ["AC Transportation", "Hotel accommodation", "Daily breakfast", "Professional guide"],
        "exclusions": ["Personal expenses", "Tips and gratuities", "Travel insurance"],
    },
    {
        "id": "pkg_goa_beach",
        "name": "Goa Beach Paradise",
        "description": "North & South Goa - 4 Days",
        "category": "Beach",
        "duration": {"days": 4, "nights": 3},
        "pricing": {
            "pricePerPerson": 18000,
            "childPrice": 9000,
            "seasonalPricing": [_season("Holiday Season", "2025-12-20", "2026-01-05", 1.3)],
            "groupDiscounts": GROUP_DISCOUNTS,
        },
        "vehicleOptions": [
            {"vehicleType": "Sedan", "capacity": 4, "additionalCost": 0},
            {"vehicleType": "SUV", "capacity": 7, "additionalCost": 3500},
        ],
        "inclusions": ["Airport transfers", "Beach resort stay", "Daily breakfast"],
        "exclusions": ["Water sports", "Personal expenses"],
    },
    {
        "id": "pkg_kerala_backwaters",
        "name": "Kerala Backwaters",
        "description": "Kochi, Munnar, Alleppey - 3 Days",
        "category": "Nature",
        "duration": {"days": 3, "nights": 2},
        "pricing": {
            "pricePerPerson": 22000,
            "childPrice": 11000,
            "groupDiscounts": GROUP_DISCOUNTS,
        },
        "vehicleOptions": [
            {"vehicleType": "SUV", "capacity": 7, "additionalCost": 0},
            {"vehicleType": "Tempo Traveller", "capacity": 12, "additionalCost": 6000},
        ],
        "inclusions": ["Houseboat stay", "All meals on houseboat", "Tea garden visit"],
        "exclusions": ["Ayurvedic treatments", "Personal expenses"],
    },
    {
        "id": "pkg_rajasthan_royal",
        "name": "Rajasthan Royal Tour",
        "description": "Jaipur, Udaipur, Jodhpur - 5 Days",
        "category": "Heritage",
        "duration": {"days": 5, "nights": 4},
        "pricing": {
            "pricePerPerson": 28000,
            "childPrice": 14000,
            "groupDiscounts": GROUP_DISCOUNTS,
        },
        "vehicleOptions": [
            {"vehicleType": "SUV", "capacity": 7, "additionalCost": 0},
            {"vehicleType": "Luxury", "capacity": 4, "additionalCost": 12000},
        ],
        "inclusions": ["Heritage hotel stays", "Daily breakfast and dinner", "Desert safari"],
        "exclusions": ["Monument camera fees", "Personal expenses"],
    },
]


async def seed_database(db, reset: bool = True) -> Dict[str, int]:
    """Seed the database with categories and sample directory data"""

    print("🌱 Seeding Tour & Travels database...")

    if reset:
        for collection in SEED_COLLECTIONS:
            await db[collection].delete_many({})
            print(f"   Cleared {collection}")

    # Validate categories exactly as the pricing catalog will load them
    categories = [VehicleCategory.model_validate(c) for c in DEFAULT_CATEGORIES]
    await db.vehicle_categories.insert_many([prepare_for_mongo(c) for c in DEFAULT_CATEGORIES])
    print(f"   ✅ {len(categories)} vehicle categories")

    counts = {"vehicle_categories": len(categories)}
    for collection, model, records in (
        ("drivers", Driver, DRIVERS),
        ("vehicles", Vehicle, VEHICLES),
        ("customers", Customer, CUSTOMERS),
        ("packages", Package, PACKAGES),
    ):
        documents = [prepare_for_mongo(model.model_validate(r)) for r in records]
        await db[collection].insert_many(documents)
        counts[collection] = len(documents)
        print(f"   ✅ {len(documents)} {collection}")

    await ensure_indexes(db)
    print("🎉 Seeding complete!")
    return counts


async def main():
    try:
        await seed_database(get_database())
    finally:
        close_client()


if __name__ == "__main__":
    asyncio.run(main())
