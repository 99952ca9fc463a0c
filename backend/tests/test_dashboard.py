"""
Dashboard summary and trip report tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from backend.errors import InvalidInput
from backend.models import BookingStatus
from backend.redis_service import RedisService
from backend.services.dashboard import DashboardService

NOW = datetime(2030, 3, 15, 10, 0, tzinfo=timezone.utc)


class FakeCache(RedisService):
    """In-memory stand-in for the Redis JSON cache."""

    def __init__(self):
        super().__init__(enabled=True)
        self.store = {}

    @property
    def available(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, expire=None):
        self.store[key] = value
        return True

    async def invalidate_dashboard_cache(self, event=None):
        count = len(self.store)
        self.store.clear()
        return count


class TestSummarize:
    @pytest.mark.asyncio
    async def test_revenue_counts_completed_only(self, db, stored_booking):
        await stored_booking(status=BookingStatus.COMPLETED, total=1000, created_at=NOW)
        await stored_booking(status=BookingStatus.PENDING, total=500, created_at=NOW)

        summary = await DashboardService(db).summarize(now=NOW)

        assert summary["revenueTotals"] == {"totalRevenue": 1000, "completedCount": 1, "avgBookingValue": 1000}
        assert summary["statusDistribution"]["Completed"] == 1
        assert summary["statusDistribution"]["Pending"] == 1
        assert summary["statusDistribution"]["Cancelled"] == 0
        assert summary["typeDistribution"]["Outstation Transfer"] == 2
        assert summary["periodCount"] == 2
        assert summary["todayCount"] == 2

    @pytest.mark.asyncio
    async def test_no_completed_bookings_average_is_zero(self, db, stored_booking):
        await stored_booking(status=BookingStatus.CANCELLED, total=800, created_at=NOW)

        summary = await DashboardService(db).summarize(now=NOW)

        assert summary["revenueTotals"] == {"totalRevenue": 0, "completedCount": 0, "avgBookingValue": 0}

    @pytest.mark.asyncio
    async def test_empty_store(self, db):
        summary = await DashboardService(db).summarize(now=NOW)
        assert summary["periodCount"] == 0
        assert summary["todayCount"] == 0
        assert set(summary["statusDistribution"].values()) == {0}

    @pytest.mark.asyncio
    async def test_period_filter_spares_today_count(self, db, stored_booking):
        await stored_booking(status=BookingStatus.COMPLETED, total=1200, created_at=NOW - timedelta(days=40))
        await stored_booking(status=BookingStatus.COMPLETED, total=2000, created_at=NOW - timedelta(days=5))
        await stored_booking(status=BookingStatus.PENDING, total=900, created_at=NOW)

        summary = await DashboardService(db).summarize(
            start=NOW - timedelta(days=60), end=NOW - timedelta(days=30), now=NOW,
        )

        assert summary["periodCount"] == 1
        assert summary["revenueTotals"]["totalRevenue"] == 1200
        assert summary["statusDistribution"]["Pending"] == 0
        assert summary["todayCount"] == 1

    @pytest.mark.asyncio
    async def test_inverted_range(self, db):
        with pytest.raises(InvalidInput):
            await DashboardService(db).summarize(start=NOW, end=NOW - timedelta(days=1))

    @pytest.mark.asyncio
    async def test_summary_is_read_only(self, db, stored_booking):
        booking = await stored_booking(status=BookingStatus.ASSIGNED, created_at=NOW)
        before = await db.bookings.find_one({"_id": booking.id})

        await DashboardService(db).summarize(now=NOW)

        assert await db.bookings.find_one({"_id": booking.id}) == before

    @pytest.mark.asyncio
    async def test_cached_until_invalidated(self, db, stored_booking):
        cache = FakeCache()
        dashboard = DashboardService(db, cache)
        await stored_booking(status=BookingStatus.COMPLETED, total=1000)

        first = await dashboard.summarize()
        await stored_booking(status=BookingStatus.COMPLETED, total=3000)
        cached = await dashboard.summarize()
        assert cached["revenueTotals"]["totalRevenue"] == first["revenueTotals"]["totalRevenue"] == 1000

        await cache.invalidate_dashboard_cache()
        fresh = await dashboard.summarize()
        assert fresh["revenueTotals"]["totalRevenue"] == 4000


class TestTripReport:
    @pytest.mark.asyncio
    async def test_daily_buckets(self, db, stored_booking):
        day_one = datetime(2030, 3, 1, 9, 0, tzinfo=timezone.utc)
        day_two = datetime(2030, 3, 2, 18, 0, tzinfo=timezone.utc)
        await stored_booking(status=BookingStatus.COMPLETED, total=1000, created_at=day_one)
        await stored_booking(status=BookingStatus.CANCELLED, total=700, created_at=day_one)
        await stored_booking(status=BookingStatus.COMPLETED, total=2500, created_at=day_two)

        report = await DashboardService(db).trip_report(report_type="daily")

        assert report["data"] == [
            {"period": "2030-03-01", "totalTrips": 2, "completedTrips": 1, "cancelledTrips": 1, "totalRevenue": 1000},
            {"period": "2030-03-02", "totalTrips": 1, "completedTrips": 1, "cancelledTrips": 0, "totalRevenue": 2500},
        ]
        assert report["totals"]["totalRevenue"] == 3500

    @pytest.mark.asyncio
    async def test_monthly_with_range(self, db, stored_booking):
        await stored_booking(status=BookingStatus.COMPLETED, total=1000, created_at=datetime(2030, 1, 20, tzinfo=timezone.utc))
        await stored_booking(status=BookingStatus.COMPLETED, total=2000, created_at=datetime(2030, 2, 10, tzinfo=timezone.utc))
        await stored_booking(status=BookingStatus.PENDING, created_at=datetime(2030, 2, 11, tzinfo=timezone.utc))

        report = await DashboardService(db).trip_report(
            start=datetime(2030, 2, 1, tzinfo=timezone.utc), report_type="monthly",
        )

        assert [row["period"] for row in report["data"]] == ["2030-02"]
        assert report["data"][0]["totalTrips"] == 2
        assert report["data"][0]["totalRevenue"] == 2000

    @pytest.mark.asyncio
    async def test_unknown_report_type(self, db):
        with pytest.raises(InvalidInput):
            await DashboardService(db).trip_report(report_type="hourly")
