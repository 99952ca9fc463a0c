import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING

from .models import to_utc

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Database Configuration
MONGO_URL = os.getenv('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.getenv('DB_NAME', 'tour_travels')

client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    global client
    if client is None:
        client = AsyncIOMotorClient(MONGO_URL)
    return client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[DB_NAME]


def close_client():
    global client
    if client is not None:
        client.close()
        client = None


# Dependency for database access
async def get_db():
    yield get_database()


async def ensure_indexes(db):
    """Create the indexes the booking queries rely on"""
    await db.bookings.create_index("bookingId", unique=True)
    await db.bookings.create_index([("status", ASCENDING), ("schedule.startDate", ASCENDING)])
    await db.bookings.create_index([("assignedDriver", ASCENDING), ("assignedVehicle", ASCENDING)])
    await db.bookings.create_index([("createdAt", DESCENDING)])
    await db.drivers.create_index("email", unique=True)
    await db.vehicles.create_index("vehicleNumber", unique=True)
    await db.customers.create_index("email")


def mongo_datetime(value: Optional[datetime]) -> Optional[str]:
    """Stored timestamp format: UTC ISO-8601, so string comparison follows time order"""
    value = to_utc(value)
    return value.isoformat() if value is not None else None


def _to_storage(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _to_storage(value.model_dump())
    if isinstance(value, datetime):
        return mongo_datetime(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_storage(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_storage(v) for v in value]
    return value


def prepare_for_mongo(data):
    """Prepare a model or dict for MongoDB storage"""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    data = _to_storage(data)
    if isinstance(data, dict) and 'id' in data:
        data['_id'] = data.pop('id')
    return data


def parse_from_mongo(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Parse data from MongoDB"""
    if item is None:
        return None
    item = dict(item)
    if '_id' in item:
        item['id'] = str(item.pop('_id'))
    return item
