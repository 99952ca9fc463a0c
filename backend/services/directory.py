"""
Resource directories for drivers, vehicles, customers and packages.
"""
import logging
import re
from typing import Any, Dict, Iterable, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..database import mongo_datetime, parse_from_mongo, prepare_for_mongo
from ..errors import NotFound, ValidationError, violations_from_errors
from ..models import Customer, Driver, KycStatus, Package, Vehicle, utc_now

logger = logging.getLogger(__name__)

# Fields only the directory itself (or the booking lifecycle) may write
PROTECTED_FIELDS = frozenset({"id", "_id", "currentBookingId", "isAvailable", "createdAt", "updatedAt"})


def paginate(page: int, limit: int, total: int) -> Dict[str, int]:
    pages = (total + limit - 1) // limit if limit else 0
    return {"current": page, "pages": pages, "total": total, "limit": limit}


class ResourceDirectory:
    """Async CRUD over one collection of directory records."""

    collection_name: str = ""
    resource: str = ""
    model: Type[BaseModel] = BaseModel
    search_fields: Iterable[str] = ("name",)
    unique_fields: Iterable[str] = ()

    def __init__(self, db):
        self.db = db
        self.collection = db[self.collection_name]

    def _validate(self, data: Dict[str, Any]) -> BaseModel:
        try:
            return self.model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(violations_from_errors(e.errors()))

    async def _check_unique(self, record: BaseModel, exclude_id: Optional[str] = None):
        violations = []
        stored = prepare_for_mongo(record)
        for field in self.unique_fields:
            value = stored.get(field)
            if value is None:
                continue
            query = {field: value}
            if exclude_id:
                query["_id"] = {"$ne": exclude_id}
            if await self.collection.find_one(query):
                violations.append({"field": field, "message": f"{self.resource} with this {field} already exists"})
        if violations:
            raise ValidationError(violations)

    async def create(self, data: Dict[str, Any]):
        data = {k: v for k, v in data.items() if k not in ("_id", "currentBookingId")}
        record = self._validate(data)
        await self._check_unique(record)
        await self.collection.insert_one(prepare_for_mongo(record))
        logger.info(f"✅ Created {self.resource} {record.id}")
        return record

    async def get(self, resource_id: str):
        doc = await self.collection.find_one({"_id": resource_id})
        if not doc:
            raise NotFound(self.resource, resource_id)
        return self.model.model_validate(parse_from_mongo(doc))

    async def list(
        self,
        filters: Optional[Dict[str, Any]] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        query = {k: v for k, v in (filters or {}).items() if v is not None}
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{field: pattern} for field in self.search_fields]

        page = max(page, 1)
        total = await self.collection.count_documents(query)
        cursor = self.collection.find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit)
        items = [self.model.model_validate(parse_from_mongo(doc)) for doc in await cursor.to_list(length=limit)]
        return {"items": items, "pagination": paginate(page, limit, total)}

    async def update(self, resource_id: str, changes: Dict[str, Any]):
        """Partial update; markers and identity fields are ignored."""
        current = await self.get(resource_id)
        changes = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
        merged = {**current.model_dump(), **changes, "updatedAt": utc_now()}
        record = self._validate(merged)
        await self._check_unique(record, exclude_id=resource_id)

        stored = prepare_for_mongo(record)
        update = {k: stored[k] for k in list(changes) + ["updatedAt"] if k in stored}
        await self.collection.update_one({"_id": resource_id}, {"$set": update})
        logger.info(f"📝 Updated {self.resource} {resource_id}: {sorted(changes)}")
        return await self.get(resource_id)

    async def claim(self, resource_id: str, booking_id: str) -> bool:
        """Mark an active, available record as busy with a booking. False if someone got there first."""
        result = await self.collection.find_one_and_update(
            {"_id": resource_id, "isActive": True, "isAvailable": True},
            {"$set": {
                "isAvailable": False,
                "currentBookingId": booking_id,
                "updatedAt": mongo_datetime(utc_now()),
            }},
        )
        return result is not None

    async def release(self, resource_id: Optional[str], booking_id: str) -> bool:
        """Free a record, but only if it is still held by this booking."""
        if not resource_id:
            return False
        result = await self.collection.update_one(
            {"_id": resource_id, "currentBookingId": booking_id},
            {"$set": {
                "isAvailable": True,
                "currentBookingId": None,
                "updatedAt": mongo_datetime(utc_now()),
            }},
        )
        return result.modified_count > 0


class DriverDirectory(ResourceDirectory):
    collection_name = "drivers"
    resource = "Driver"
    model = Driver
    search_fields = ("name", "email", "phone", "licenseNumber")
    unique_fields = ("email", "licenseNumber")

    async def set_kyc_status(self, driver_id: str, status: KycStatus, notes: Optional[str] = None) -> Driver:
        await self.get(driver_id)
        update: Dict[str, Any] = {"kycStatus": KycStatus(status).value, "updatedAt": utc_now()}
        if notes:
            update["kycNotes"] = notes
        # Approval is what lets a driver take bookings
        if status == KycStatus.APPROVED:
            update["isActive"] = True
        await self.collection.update_one({"_id": driver_id}, {"$set": prepare_for_mongo(update)})
        logger.info(f"🪪 Driver {driver_id} KYC -> {KycStatus(status).value}")
        return await self.get(driver_id)

    async def set_availability(self, driver_id: str, is_available: bool) -> Driver:
        driver = await self.get(driver_id)
        update: Dict[str, Any] = {"isAvailable": is_available, "updatedAt": utc_now()}
        if is_available and driver.currentBookingId:
            # Manual release of a driver still bound to a booking is not allowed
            raise ValidationError([{
                "field": "isAvailable",
                "message": f"Driver is assigned to booking {driver.currentBookingId}",
            }])
        await self.collection.update_one({"_id": driver_id}, {"$set": prepare_for_mongo(update)})
        return await self.get(driver_id)


class VehicleDirectory(ResourceDirectory):
    collection_name = "vehicles"
    resource = "Vehicle"
    model = Vehicle
    search_fields = ("vehicleNumber", "make", "model", "vehicleType")
    unique_fields = ("vehicleNumber",)


class CustomerDirectory(ResourceDirectory):
    collection_name = "customers"
    resource = "Customer"
    model = Customer
    search_fields = ("name", "email", "phone")
    unique_fields = ("email",)


class PackageDirectory(ResourceDirectory):
    collection_name = "packages"
    resource = "Package"
    model = Package
    search_fields = ("name", "category", "description")
