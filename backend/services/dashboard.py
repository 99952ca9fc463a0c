"""
Dashboard and trip report aggregation over stored bookings. Read-only.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..database import mongo_datetime
from ..errors import InvalidInput
from ..models import BookingStatus, BookingType, to_utc, utc_now
from ..redis_service import RedisService

logger = logging.getLogger(__name__)

REPORT_BUCKETS = {
    "daily": "%Y-%m-%d",
    "weekly": "%Y-W%U",
    "monthly": "%Y-%m",
}


def created_between(start: Optional[datetime], end: Optional[datetime]) -> Dict[str, Any]:
    if not start and not end:
        return {}
    created: Dict[str, str] = {}
    if start:
        created["$gte"] = mongo_datetime(start)
    if end:
        created["$lte"] = mongo_datetime(end)
    return {"createdAt": created}


class DashboardService:
    """Summary statistics for the admin dashboard."""

    def __init__(self, db, cache: Optional[RedisService] = None):
        self.db = db
        self.bookings = db.bookings
        self.cache = cache

    async def summarize(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Counts, distributions and revenue for bookings created in [start, end].

        todayCount always covers the current UTC day regardless of the range.
        Revenue counts Completed bookings only.
        """
        start, end = to_utc(start), to_utc(end)
        if start and end and end < start:
            raise InvalidInput("End of range must not be before its start")

        cache_key = None
        if now is None and self.cache is not None and self.cache.available:
            cache_key = self.cache.summary_key(mongo_datetime(start), mongo_datetime(end))
            cached = await self.cache.get_cached_summary(cache_key)
            if cached is not None:
                return cached

        now = to_utc(now) or utc_now()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1) - timedelta(microseconds=1)
        today_count = await self.bookings.count_documents(created_between(start_of_day, end_of_day))

        period = created_between(start, end)
        period_count = await self.bookings.count_documents(period)

        status_distribution = {status.value: 0 for status in BookingStatus}
        for row in await self.bookings.aggregate([
            {"$match": period},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ]).to_list(length=None):
            status_distribution[row["_id"]] = row["count"]

        type_distribution = {booking_type.value: 0 for booking_type in BookingType}
        for row in await self.bookings.aggregate([
            {"$match": period},
            {"$group": {"_id": "$bookingType", "count": {"$sum": 1}}},
        ]).to_list(length=None):
            type_distribution[row["_id"]] = row["count"]

        total_revenue = 0.0
        completed_count = 0
        for row in await self.bookings.aggregate([
            {"$match": {**period, "status": BookingStatus.COMPLETED.value}},
            {"$group": {"_id": None, "totalRevenue": {"$sum": "$pricing.totalAmount"}, "count": {"$sum": 1}}},
        ]).to_list(length=None):
            total_revenue = float(row["totalRevenue"] or 0)
            completed_count = row["count"]

        summary = {
            "todayCount": today_count,
            "periodCount": period_count,
            "statusDistribution": status_distribution,
            "revenueTotals": {
                "totalRevenue": round(total_revenue, 2),
                "completedCount": completed_count,
                "avgBookingValue": round(total_revenue / completed_count, 2) if completed_count else 0,
            },
            "typeDistribution": type_distribution,
            "range": {"start": mongo_datetime(start), "end": mongo_datetime(end)},
            "generatedAt": mongo_datetime(now),
        }

        if cache_key:
            await self.cache.cache_summary(cache_key, summary)
        return summary

    async def trip_report(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        report_type: str = "daily",
    ) -> Dict[str, Any]:
        """Trips grouped by day, week or month of creation"""
        if report_type not in REPORT_BUCKETS:
            raise InvalidInput(f"Unknown report type {report_type}, expected one of {sorted(REPORT_BUCKETS)}")
        start, end = to_utc(start), to_utc(end)
        bucket_format = REPORT_BUCKETS[report_type]

        buckets: Dict[str, Dict[str, Any]] = {}
        cursor = self.bookings.find(
            created_between(start, end),
            {"status": 1, "createdAt": 1, "pricing.totalAmount": 1},
        )
        for doc in await cursor.to_list(length=None):
            created = to_utc(datetime.fromisoformat(doc["createdAt"]))
            key = created.strftime(bucket_format)
            bucket = buckets.setdefault(key, {
                "period": key,
                "totalTrips": 0,
                "completedTrips": 0,
                "cancelledTrips": 0,
                "totalRevenue": 0.0,
            })
            bucket["totalTrips"] += 1
            if doc.get("status") == BookingStatus.COMPLETED.value:
                bucket["completedTrips"] += 1
                bucket["totalRevenue"] += float((doc.get("pricing") or {}).get("totalAmount") or 0)
            elif doc.get("status") == BookingStatus.CANCELLED.value:
                bucket["cancelledTrips"] += 1

        rows = [buckets[key] for key in sorted(buckets)]
        for row in rows:
            row["totalRevenue"] = round(row["totalRevenue"], 2)

        logger.info(f"📊 Trip report ({report_type}): {len(rows)} periods")
        return {
            "reportType": report_type,
            "range": {"start": mongo_datetime(start), "end": mongo_datetime(end)},
            "data": rows,
            "totals": {
                "totalTrips": sum(r["totalTrips"] for r in rows),
                "completedTrips": sum(r["completedTrips"] for r in rows),
                "cancelledTrips": sum(r["cancelledTrips"] for r in rows),
                "totalRevenue": round(sum(r["totalRevenue"] for r in rows), 2),
            },
        }
