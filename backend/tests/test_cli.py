"""
Admin CLI tests
"""
import asyncio
import json
from datetime import datetime, timezone

import pytest
from click.testing import CliRunner
from mongomock_motor import AsyncMongoMockClient

from backend import cli as admin_cli
from backend.database import prepare_for_mongo
from backend.models import Booking, BookingStatus, PricingBreakdown, TripDetails

ENDED = datetime(2030, 1, 2, 18, 0, tzinfo=timezone.utc)


class RecordingCache:
    def __init__(self):
        self.invalidations = 0

    async def connect(self):
        pass

    async def disconnect(self):
        pass

    async def invalidate_dashboard_cache(self, event=None):
        self.invalidations += 1
        return 0


@pytest.fixture
def cli_db(monkeypatch):
    database = AsyncMongoMockClient()["tour_travels_cli"]
    monkeypatch.setattr(admin_cli, "get_database", lambda: database)
    monkeypatch.setattr(admin_cli, "close_client", lambda: None)
    return database


@pytest.fixture
def cache(monkeypatch):
    recorder = RecordingCache()
    monkeypatch.setattr(admin_cli, "redis_service", recorder)
    return recorder


class TestAdminCli:
    def test_seed_then_summary(self, cli_db):
        runner = CliRunner()

        seeded = runner.invoke(admin_cli.cli, ["seed"])
        assert seeded.exit_code == 0, seeded.output
        assert "vehicle_categories: 5" in seeded.output
        assert "packages: 4" in seeded.output

        summary = runner.invoke(admin_cli.cli, ["summary"])
        assert summary.exit_code == 0, summary.output
        data = json.loads(summary.output)
        assert data["periodCount"] == 0
        assert data["revenueTotals"]["totalRevenue"] == 0

    def test_backfill_dry_run_lists_bookings(self, cli_db):
        asyncio.run(cli_db.bookings.insert_one({
            "_id": "b1",
            "bookingId": "TT12345678001",
            "status": "Completed",
            "tripDetails": {},
        }))

        result = CliRunner().invoke(admin_cli.cli, ["backfill-completed", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Would repair 1 booking(s)" in result.output
        assert "TT12345678001" in result.output

    def test_backfill_nothing_to_do(self, cli_db):
        result = CliRunner().invoke(admin_cli.cli, ["backfill-completed"])
        assert result.exit_code == 0, result.output
        assert "Nothing to repair" in result.output

    def test_backfill_skips_unreadable_records(self, cli_db, cache):
        legacy = Booking(
            bookingId="TT12345678002",
            customer="cus_legacy",
            bookingType="Outstation Transfer",
            tripType="One-way",
            pickup={"address": "Delhi"},
            dropoff={"address": "Jaipur"},
            schedule={"startDate": datetime(2030, 1, 2, 9, 0, tzinfo=timezone.utc)},
            passengers={"adults": 1, "totalCount": 1},
            vehiclePreference="Sedan",
            pricing=PricingBreakdown(totalAmount=3000),
            status=BookingStatus.COMPLETED,
            tripDetails=TripDetails(endTime=ENDED),
        )
        document = prepare_for_mongo(legacy)
        del document["version"]
        asyncio.run(cli_db.bookings.insert_many([
            {"_id": "b1", "bookingId": "TT12345678001", "status": "Completed", "tripDetails": {}},
            document,
        ]))

        result = CliRunner().invoke(admin_cli.cli, ["backfill-completed"])

        assert result.exit_code == 0, result.output
        assert "Repaired 1 booking(s)" in result.output
        assert "TT12345678002" in result.output
        assert "TT12345678001" not in result.output.split("Repaired")[1]
        assert cache.invalidations == 1

        stored = asyncio.run(cli_db.bookings.find_one({"_id": legacy.id}))
        assert stored["tripDetails"]["completedAt"] == ENDED.isoformat()
        assert stored["version"] == 2

    def test_dry_run_leaves_cache_alone(self, cli_db, cache):
        asyncio.run(cli_db.bookings.insert_one({
            "_id": "b1",
            "bookingId": "TT12345678001",
            "status": "Completed",
            "tripDetails": {},
        }))
        CliRunner().invoke(admin_cli.cli, ["backfill-completed", "--dry-run"])
        assert cache.invalidations == 0
