"""
Vehicle category catalog
Immutable pricing profiles loaded once at startup and handed to the pricing engine
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..errors import InvalidCategory
from ..models import VehicleCategory

logger = logging.getLogger(__name__)


DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {
        "name": "Mini",
        "displayName": "Mini",
        "description": "Compact cars for city rides",
        "seatingCapacity": 4,
        "luggageCapacity": 2,
        "pricing": {
            "basePrice": 300,
            "perKm": 12,
            "perHour": 150,
            "outstationRates": {
                "0-100km": {"perKm": 10, "driverAllowance": 300, "minimumFare": 1000},
                "100-300km": {"perKm": 9, "driverAllowance": 500, "minimumFare": 2500},
                "300km+": {"perKm": 8, "driverAllowance": 800, "minimumFare": 5000},
            },
            "roundTripDiscount": 10,
            "multiCityMultiplier": 1.2,
            "nightChargeMultiplier": 1.25,
            "peakHourMultiplier": 1.15,
            "cancellationCharges": {"before_1_hour": 0, "before_30_min": 50, "after_arrival": 100},
        },
        "sortOrder": 1,
    },
    {
        "name": "Sedan",
        "displayName": "Sedan",
        "description": "Comfortable sedans for longer trips",
        "seatingCapacity": 4,
        "luggageCapacity": 3,
        "pricing": {
            "basePrice": 500,
            "perKm": 15,
            "perHour": 200,
            "outstationRates": {
                "0-100km": {"perKm": 13, "driverAllowance": 400, "minimumFare": 1500},
                "100-300km": {"perKm": 12, "driverAllowance": 600, "minimumFare": 3000},
                "300km+": {"perKm": 11, "driverAllowance": 1000, "minimumFare": 6000},
            },
            "roundTripDiscount": 10,
            "multiCityMultiplier": 1.2,
            "nightChargeMultiplier": 1.25,
            "peakHourMultiplier": 1.15,
            "cancellationCharges": {"before_1_hour": 0, "before_30_min": 75, "after_arrival": 150},
        },
        "sortOrder": 2,
    },
    {
        "name": "SUV",
        "displayName": "SUV",
        "description": "Spacious SUVs for families and groups",
        "seatingCapacity": 7,
        "luggageCapacity": 5,
        "pricing": {
            "basePrice": 800,
            "perKm": 20,
            "perHour": 300,
            "outstationRates": {
                "0-100km": {"perKm": 18, "driverAllowance": 500, "minimumFare": 2000},
                "100-300km": {"perKm": 16, "driverAllowance": 800, "minimumFare": 4000},
                "300km+": {"perKm": 15, "driverAllowance": 1200, "minimumFare": 8000},
            },
            "roundTripDiscount": 12,
            "multiCityMultiplier": 1.3,
            "nightChargeMultiplier": 1.25,
            "peakHourMultiplier": 1.15,
            "cancellationCharges": {"before_1_hour": 0, "before_30_min": 100, "after_arrival": 200},
        },
        "sortOrder": 3,
    },
    {
        "name": "Luxury",
        "displayName": "Luxury",
        "description": "Premium cars for business and special occasions",
        "seatingCapacity": 4,
        "luggageCapacity": 3,
        "pricing": {
            "basePrice": 1500,
            "perKm": 35,
            "perHour": 500,
            "outstationRates": {
                "0-100km": {"perKm": 30, "driverAllowance": 800, "minimumFare": 3500},
                "100-300km": {"perKm": 28, "driverAllowance": 1200, "minimumFare": 7000},
                "300km+": {"perKm": 25, "driverAllowance": 1800, "minimumFare": 12000},
            },
            "roundTripDiscount": 15,
            "multiCityMultiplier": 1.4,
            "nightChargeMultiplier": 1.3,
            "peakHourMultiplier": 1.2,
            "cancellationCharges": {"before_1_hour": 0, "before_30_min": 200, "after_arrival": 500},
        },
        "sortOrder": 4,
    },
    {
        "name": "Tempo Traveller",
        "displayName": "Tempo Traveller",
        "description": "Group travel for up to 12 passengers",
        "seatingCapacity": 12,
        "luggageCapacity": 10,
        "pricing": {
            "basePrice": 2000,
            "perKm": 25,
            "perHour": 400,
            "outstationRates": {
                "0-100km": {"perKm": 22, "driverAllowance": 600, "minimumFare": 3000},
                "100-300km": {"perKm": 20, "driverAllowance": 1000, "minimumFare": 6000},
                "300km+": {"perKm": 18, "driverAllowance": 1500, "minimumFare": 10000},
            },
            "roundTripDiscount": 15,
            "multiCityMultiplier": 1.3,
            "nightChargeMultiplier": 1.25,
            "peakHourMultiplier": 1.15,
            "cancellationCharges": {"before_1_hour": 0, "before_30_min": 300, "after_arrival": 600},
        },
        "sortOrder": 5,
    },
]


class PricingCatalog:
    """Read-only lookup of vehicle categories by (case-insensitive) name."""

    def __init__(self, categories: Iterable[VehicleCategory]):
        ordered = sorted(categories, key=lambda c: (c.sortOrder, c.name))
        self._categories = MappingProxyType({c.name.lower(): c for c in ordered})

    @classmethod
    def from_documents(cls, documents: Iterable[Dict[str, Any]]) -> "PricingCatalog":
        categories = []
        for doc in documents:
            doc = {k: v for k, v in doc.items() if k != "_id"}
            categories.append(VehicleCategory.model_validate(doc))
        return cls(categories)

    @classmethod
    def defaults(cls) -> "PricingCatalog":
        return cls.from_documents(DEFAULT_CATEGORIES)

    def get(self, name: Optional[str]) -> VehicleCategory:
        category = self._categories.get((name or "").strip().lower())
        if category is None or not category.isActive:
            raise InvalidCategory(name)
        return category

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        category = self._categories.get(name.strip().lower())
        return category is not None and category.isActive

    def __iter__(self) -> Iterator[VehicleCategory]:
        return iter(self._categories.values())

    def __len__(self) -> int:
        return len(self._categories)

    def names(self) -> List[str]:
        return [c.name for c in self if c.isActive]


async def load_catalog(db) -> PricingCatalog:
    """Load categories from the vehicle_categories collection, or fall back to defaults."""
    documents = await db.vehicle_categories.find({}).to_list(100)
    if not documents:
        logger.warning("No vehicle categories in database, using built-in pricing defaults")
        return PricingCatalog.defaults()

    catalog = PricingCatalog.from_documents(documents)
    logger.info(f"✅ Loaded {len(catalog)} vehicle categories")
    return catalog
