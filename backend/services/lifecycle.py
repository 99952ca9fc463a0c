"""
Booking lifecycle service.

Owns the booking state machine: creation with full validation and pricing,
driver/vehicle assignment, status advancement, cancellation with refunds.
Every write is a conditional update on (status, version) so concurrent
callers cannot both win a transition.
"""
import logging
import os
import random
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..database import mongo_datetime, parse_from_mongo, prepare_for_mongo
from ..errors import (
    BookingError,
    InvalidTransition,
    NotFound,
    ResourceUnavailable,
    ValidationError,
    violations_from_errors,
)
from ..events import EventPublisher
from ..models import (
    Booking,
    BookingCreate,
    BookingNotes,
    BookingStatus,
    BookingType,
    Cancellation,
    PackageDetails,
    Passengers,
    PaymentInfo,
    PaymentStatus,
    PaymentTransaction,
    StatusChange,
    to_utc,
    utc_now,
)
from ..pricing.catalog import PricingCatalog
from ..pricing.quoting import PricingEngine, calculate_package_price, cancellation_fee
from .directory import CustomerDirectory, DriverDirectory, PackageDirectory, VehicleDirectory, paginate

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
    BookingStatus.ASSIGNED: {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

ASSIGNABLE = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
CANCELLABLE = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.ASSIGNED)
# Statuses during which a driver and vehicle are committed to a booking
OCCUPYING = (BookingStatus.ASSIGNED, BookingStatus.IN_PROGRESS)

BOOKING_ID_ATTEMPTS = 5


def generate_booking_id(prefix: str = "TT") -> str:
    """Prefix + last 8 digits of epoch millis + 3 random digits, e.g. TT12345678042"""
    millis = str(int(time.time() * 1000))[-8:]
    return f"{prefix}{millis}{random.randint(0, 999):03d}"


class BookingLifecycleService:
    """Create, assign, advance and cancel bookings."""

    def __init__(self, db, catalog: PricingCatalog, publisher: Optional[EventPublisher] = None,
                 id_prefix: Optional[str] = None):
        self.db = db
        self.bookings = db.bookings
        self.catalog = catalog
        self.engine = PricingEngine(catalog)
        self.publisher = publisher
        self.id_prefix = id_prefix or os.getenv("BOOKING_ID_PREFIX", "TT")
        self.customers = CustomerDirectory(db)
        self.drivers = DriverDirectory(db)
        self.vehicles = VehicleDirectory(db)
        self.packages = PackageDirectory(db)

    # Reads

    async def get(self, booking_id: str) -> Booking:
        """Look up by internal id or by the human-readable bookingId code"""
        doc = await self.bookings.find_one({"$or": [{"_id": booking_id}, {"bookingId": booking_id}]})
        if not doc:
            raise NotFound("Booking", booking_id)
        return self._parse(doc)

    async def list(
        self,
        status: Optional[BookingStatus] = None,
        booking_type: Optional[BookingType] = None,
        search: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = BookingStatus(status).value
        if booking_type:
            query["bookingType"] = BookingType(booking_type).value
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [
                {"bookingId": pattern},
                {"pickup.address": pattern},
                {"dropoff.address": pattern},
            ]
        if start_date or end_date:
            date_range = {}
            if start_date:
                date_range["$gte"] = mongo_datetime(start_date)
            if end_date:
                date_range["$lte"] = mongo_datetime(end_date)
            query["schedule.startDate"] = date_range

        page = max(page, 1)
        total = await self.bookings.count_documents(query)
        cursor = self.bookings.find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit)
        bookings = [self._parse(doc) for doc in await cursor.to_list(length=limit)]
        return {"bookings": bookings, "pagination": paginate(page, limit, total)}

    # Create

    async def create(self, request: Union[BookingCreate, Dict[str, Any]], now: Optional[datetime] = None) -> Booking:
        """
        Validate, price and persist a new Pending booking.

        All violations are collected and raised together as one ValidationError.
        """
        if not isinstance(request, BookingCreate):
            try:
                request = BookingCreate.model_validate(request)
            except PydanticValidationError as e:
                raise ValidationError(violations_from_errors(e.errors()))

        violations: List[Dict[str, str]] = []

        def violation(field: str, message: str):
            violations.append({"field": field, "message": message})

        try:
            customer = await self.customers.get(request.customer)
            if not customer.isActive:
                violation("customer", "Customer account is not active")
        except NotFound:
            violation("customer", f"Customer {request.customer} does not exist")

        if not request.pickup.address.strip():
            violation("pickup.address", "Pickup address is required")
        if not request.dropoff.address.strip():
            violation("dropoff.address", "Drop-off address is required")

        schedule = request.schedule.model_copy()
        if schedule.endDate is None:
            schedule.endDate = schedule.startDate
        elif to_utc(schedule.endDate) < to_utc(schedule.startDate):
            violation("schedule.endDate", "End date must not be before start date")

        passengers = request.passengers
        if passengers.adults < 1:
            violation("passengers.adults", "At least one adult passenger is required")
        if passengers.totalCount is not None and passengers.totalCount != passengers.computed_total:
            violation(
                "passengers.totalCount",
                f"Total count {passengers.totalCount} does not match {passengers.computed_total} passengers",
            )

        if request.distanceKm < 0:
            violation("distanceKm", "Distance cannot be negative")
        if request.durationHours is not None and request.durationHours < 0:
            violation("durationHours", "Duration cannot be negative")
        if request.paidAmount < 0:
            violation("paidAmount", "Paid amount cannot be negative")

        package = None
        if request.packageId:
            try:
                package = await self.packages.get(request.packageId)
                if not package.isActive:
                    violation("packageId", "Package is not active")
            except NotFound:
                violation("packageId", f"Package {request.packageId} does not exist")

        # Package tours are priced from the package; everything else needs a known category
        if request.bookingType == BookingType.PACKAGE_TOUR and not request.packageId:
            violation("packageId", "Package tours must reference a package")
        elif not request.packageId:
            if not request.vehiclePreference:
                violation("vehiclePreference", "Vehicle category is required")
            elif request.vehiclePreference not in self.catalog:
                violation("vehiclePreference", f"Unknown vehicle category: {request.vehiclePreference}")
            else:
                capacity = self.catalog.get(request.vehiclePreference).seatingCapacity
                if passengers.computed_total > capacity:
                    violation(
                        "passengers",
                        f"{passengers.computed_total} passengers exceed {request.vehiclePreference} capacity of {capacity}",
                    )

        if violations:
            logger.warning(f"⚠️ Rejected booking request: {[v['field'] for v in violations]}")
            raise ValidationError(violations)

        if package is not None:
            pricing = calculate_package_price(
                package,
                adults=passengers.adults,
                children=passengers.children,
                infants=passengers.infants,
                travel_date=schedule.startDate,
                vehicle_type=request.vehiclePreference,
            )
        else:
            pricing = self.engine.quote(
                request.vehiclePreference,
                request.distanceKm,
                duration_hours=request.durationHours or schedule.duration or 0,
                booking_type=request.bookingType,
                trip_type=request.tripType,
                pickup_at=schedule.pickup_at(),
                passengers=passengers,
            )

        if request.paidAmount > pricing.totalAmount:
            raise ValidationError([{
                "field": "paidAmount",
                "message": f"Paid amount {request.paidAmount} exceeds total {pricing.totalAmount}",
            }])

        now = to_utc(now) or utc_now()
        payment = PaymentInfo()
        if request.paidAmount > 0:
            payment = PaymentInfo(
                status=PaymentStatus.PAID if request.paidAmount >= pricing.totalAmount else PaymentStatus.PARTIAL,
                method="Cash",
                paidAmount=request.paidAmount,
                transactions=[PaymentTransaction(
                    transactionId=f"PAY_{int(now.timestamp() * 1000)}",
                    amount=request.paidAmount,
                    method="Cash",
                    status="Completed",
                    timestamp=now,
                )],
            )

        for _ in range(BOOKING_ID_ATTEMPTS):
            code = generate_booking_id(self.id_prefix)
            if await self.bookings.find_one({"bookingId": code}):
                continue
            event = StatusChange(bookingId=code, fromStatus=None, toStatus=BookingStatus.PENDING, timestamp=now)
            booking = Booking(
                bookingId=code,
                customer=request.customer,
                bookingType=request.bookingType,
                tripType=request.tripType,
                pickup=request.pickup,
                dropoff=request.dropoff,
                intermediateStops=request.intermediateStops,
                schedule=schedule,
                passengers=Passengers(
                    adults=passengers.adults,
                    children=passengers.children,
                    infants=passengers.infants,
                    totalCount=passengers.computed_total,
                ),
                vehiclePreference=request.vehiclePreference,
                distanceKm=request.distanceKm,
                packageDetails=PackageDetails(
                    packageId=package.id,
                    inclusions=package.inclusions,
                    exclusions=package.exclusions,
                ) if package else None,
                pricing=pricing,
                payment=payment,
                specialRequests=request.specialRequests,
                notes=BookingNotes(customerNotes=request.customerNotes),
                statusHistory=[event],
                createdAt=now,
                updatedAt=now,
            )
            try:
                await self.bookings.insert_one(prepare_for_mongo(booking))
            except DuplicateKeyError:
                continue
            logger.info(f"✅ Created booking {code} ({booking.bookingType.value}) total {pricing.totalAmount}")
            self._publish(event)
            return booking

        raise ResourceUnavailable("Could not allocate a unique booking id, please retry")

    # Assign

    async def assign(self, booking_id: str, driver_id: str, vehicle_id: str) -> Booking:
        """
        Attach a driver and vehicle to a Pending or Confirmed booking.

        The driver and vehicle availability markers are claimed first, then the
        booking itself is swapped on (status, version). Losing any of these races
        undoes the claims and raises ResourceUnavailable.
        """
        booking = await self.get(booking_id)
        if booking.status not in ASSIGNABLE:
            raise InvalidTransition(booking.status.value, BookingStatus.ASSIGNED.value)

        driver = await self.drivers.get(driver_id)
        if not driver.isActive:
            raise ResourceUnavailable(f"Driver {driver.name} is not active")

        vehicle = await self.vehicles.get(vehicle_id)
        if not vehicle.isActive:
            raise ResourceUnavailable(f"Vehicle {vehicle.vehicleNumber} is not active")
        if vehicle.owner and vehicle.owner != driver.id:
            raise ResourceUnavailable(f"Vehicle {vehicle.vehicleNumber} is not assigned to driver {driver.name}")
        if vehicle.seatingCapacity < booking.passengers.computed_total:
            raise ResourceUnavailable(
                f"Vehicle {vehicle.vehicleNumber} seats {vehicle.seatingCapacity}, "
                f"booking has {booking.passengers.computed_total} passengers"
            )

        conflict = await self._find_overlap(booking, driver.id, vehicle.id)
        if conflict:
            logger.warning(f"⚠️ Assignment conflict for {booking.bookingId}: overlaps {conflict['bookingId']}")
            raise ResourceUnavailable(
                f"Driver or vehicle already committed to booking {conflict['bookingId']} for overlapping dates"
            )

        claimed = []
        try:
            if not await self.drivers.claim(driver.id, booking.bookingId):
                raise ResourceUnavailable(f"Driver {driver.name} is not available")
            claimed.append((self.drivers, driver.id))

            if not await self.vehicles.claim(vehicle.id, booking.bookingId):
                raise ResourceUnavailable(f"Vehicle {vehicle.vehicleNumber} is not available")
            claimed.append((self.vehicles, vehicle.id))

            event = StatusChange(
                bookingId=booking.bookingId,
                fromStatus=booking.status,
                toStatus=BookingStatus.ASSIGNED,
            )
            updated = await self._commit(
                booking,
                {"status": BookingStatus.ASSIGNED, "assignedDriver": driver.id, "assignedVehicle": vehicle.id},
                event=event,
            )
        except BookingError as e:
            for directory, resource_id in claimed:
                await directory.release(resource_id, booking.bookingId)
            if isinstance(e, ResourceUnavailable):
                raise
            logger.warning(f"⚠️ Lost assignment race for {booking.bookingId}: {e.message}")
            raise ResourceUnavailable(f"Booking {booking.bookingId} changed while assigning, please retry")

        logger.info(f"🚗 Assigned {booking.bookingId} to driver {driver.id} / vehicle {vehicle.vehicleNumber}")
        self._publish(event)
        return updated

    async def _find_overlap(self, booking: Booking, driver_id: str, vehicle_id: str) -> Optional[Dict[str, Any]]:
        start = booking.schedule.startDate
        end = booking.schedule.endDate or start
        return await self.bookings.find_one({
            "_id": {"$ne": booking.id},
            "status": {"$in": [s.value for s in OCCUPYING]},
            "$or": [{"assignedDriver": driver_id}, {"assignedVehicle": vehicle_id}],
            "schedule.startDate": {"$lte": mongo_datetime(end)},
            "schedule.endDate": {"$gte": mongo_datetime(start)},
        })

    # Advance

    async def advance_status(
        self,
        booking_id: str,
        target: BookingStatus,
        completed_at: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        target = BookingStatus(target)
        booking = await self.get(booking_id)
        current = booking.status

        if target == BookingStatus.CANCELLED:
            return await self.cancel(booking.id, reason or "Cancelled by admin")
        if target == BookingStatus.ASSIGNED:
            raise InvalidTransition(
                current.value, target.value,
                "Bookings are assigned by attaching a driver and vehicle",
            )
        if target == BookingStatus.COMPLETED and current == BookingStatus.COMPLETED:
            return await self._repair_completion(booking, completed_at)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        event = StatusChange(bookingId=booking.bookingId, fromStatus=current, toStatus=target)
        changes: Dict[str, Any] = {"status": target}
        if target == BookingStatus.IN_PROGRESS:
            changes["tripDetails.startTime"] = booking.tripDetails.startTime or event.timestamp
        elif target == BookingStatus.COMPLETED:
            done = to_utc(completed_at) or event.timestamp
            changes["tripDetails.completedAt"] = done
            changes["tripDetails.endTime"] = booking.tripDetails.endTime or done

        updated = await self._commit(booking, changes, event=event)

        if target == BookingStatus.COMPLETED:
            await self._release(updated)
        logger.info(f"📋 Booking {booking.bookingId}: {current.value} -> {target.value}")
        self._publish(event)
        return updated

    async def _repair_completion(self, booking: Booking, completed_at: Optional[datetime]) -> Booking:
        """Completed -> Completed is a no-op unless the completion timestamp is missing."""
        if booking.tripDetails.completedAt is not None:
            return booking

        done = to_utc(completed_at) or booking.tripDetails.endTime or booking.updatedAt or utc_now()
        changes: Dict[str, Any] = {"tripDetails.completedAt": done}
        if booking.tripDetails.endTime is None:
            changes["tripDetails.endTime"] = done
        updated = await self._commit(booking, changes)
        await self._release(updated)
        logger.info(f"🩹 Backfilled completion time for {booking.bookingId}: {done.isoformat()}")
        return updated

    async def repair_completed(self, dry_run: bool = False) -> List[str]:
        """Find Completed bookings without completedAt and repair them through advance_status"""
        docs = await self.bookings.find(
            {"status": BookingStatus.COMPLETED.value, "tripDetails.completedAt": None},
            {"bookingId": 1},
        ).to_list(length=None)
        codes = [doc["bookingId"] for doc in docs]
        if dry_run:
            return codes

        repaired = []
        for code in codes:
            try:
                await self.advance_status(code, BookingStatus.COMPLETED)
                repaired.append(code)
            except BookingError as e:
                logger.error(f"❌ Could not repair {code}: {e.message}")
        return repaired

    # Cancel

    async def cancel(
        self,
        booking_id: str,
        reason: str,
        refund_amount: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Cancel a booking that has not started.

        Without an explicit refund the fee comes from the vehicle category's
        cancellation schedule and the refund is whatever was paid beyond it.
        """
        if not reason or not reason.strip():
            raise ValidationError([{"field": "reason", "message": "Cancellation reason is required"}])

        booking = await self.get(booking_id)
        if booking.status not in CANCELLABLE:
            raise InvalidTransition(booking.status.value, BookingStatus.CANCELLED.value)

        now = to_utc(now) or utc_now()
        minutes_before = (to_utc(booking.schedule.pickup_at()) - now).total_seconds() / 60

        fee = 0.0
        if booking.vehiclePreference and booking.vehiclePreference in self.catalog:
            fee = cancellation_fee(self.catalog.get(booking.vehiclePreference), minutes_before).fee

        paid = booking.payment.paidAmount
        if refund_amount is None:
            refund = max(paid - fee, 0.0)
        else:
            # Only money actually received can be returned
            ceiling = min(paid, booking.pricing.totalAmount)
            if refund_amount < 0 or refund_amount > ceiling:
                raise ValidationError([{
                    "field": "refundAmount",
                    "message": f"Refund must be between 0 and the amount paid ({ceiling})",
                }])
            refund = float(refund_amount)

        event = StatusChange(
            bookingId=booking.bookingId,
            fromStatus=booking.status,
            toStatus=BookingStatus.CANCELLED,
            timestamp=now,
        )
        changes: Dict[str, Any] = {
            "status": BookingStatus.CANCELLED,
            "cancellation": Cancellation(
                reason=reason.strip(),
                fee=fee,
                refundAmount=refund,
                minutesBeforePickup=round(minutes_before, 2),
                cancelledAt=now,
            ),
        }
        push: Dict[str, Any] = {}
        if refund > 0:
            changes["payment.status"] = PaymentStatus.REFUNDED
            push["payment.transactions"] = PaymentTransaction(
                transactionId=f"REF_{int(now.timestamp() * 1000)}",
                amount=-refund,
                method=booking.payment.method or "Refund",
                status="Completed",
                timestamp=now,
            )

        updated = await self._commit(booking, changes, event=event, push=push)
        await self._release(booking)
        logger.info(f"🚫 Cancelled {booking.bookingId}: fee {fee}, refund {refund}")
        self._publish(event)
        return updated

    # Internals

    async def _commit(
        self,
        booking: Booking,
        changes: Dict[str, Any],
        event: Optional[StatusChange] = None,
        push: Optional[Dict[str, Any]] = None,
    ) -> Booking:
        """Apply changes only if the stored booking still has the status and version we read"""
        stamp = event.timestamp if event else utc_now()
        update: Dict[str, Any] = {
            "$set": prepare_for_mongo({**changes, "updatedAt": stamp, "version": booking.version + 1}),
        }
        pushes = dict(push or {})
        if event:
            pushes["statusHistory"] = event
        if pushes:
            update["$push"] = prepare_for_mongo(pushes)

        doc = await self.bookings.find_one_and_update(
            {"_id": booking.id, "status": booking.status.value, **self._version_filter(booking.version)},
            update,
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            await self._raise_conflict(booking, event.toStatus if event else booking.status)
        return self._parse(doc)

    @staticmethod
    def _version_filter(version: int) -> Dict[str, Any]:
        # Documents written before versioning carry no version field and read back as 1
        if version == 1:
            return {"$or": [{"version": 1}, {"version": {"$exists": False}}]}
        return {"version": version}

    @staticmethod
    def _parse(doc: Dict[str, Any]) -> Booking:
        """Stored documents that no longer fit the booking model surface as ValidationError"""
        try:
            return Booking.model_validate(parse_from_mongo(doc))
        except PydanticValidationError as e:
            raise ValidationError(violations_from_errors(e.errors()))

    async def _raise_conflict(self, booking: Booking, target: BookingStatus):
        current = await self.bookings.find_one({"_id": booking.id}, {"status": 1})
        if current is None:
            raise NotFound("Booking", booking.bookingId)
        if current["status"] != booking.status.value:
            raise InvalidTransition(current["status"], BookingStatus(target).value)
        raise ResourceUnavailable(f"Booking {booking.bookingId} was modified concurrently, please retry")

    async def _release(self, booking: Booking):
        await self.drivers.release(booking.assignedDriver, booking.bookingId)
        await self.vehicles.release(booking.assignedVehicle, booking.bookingId)

    def _publish(self, event: StatusChange):
        if self.publisher is not None:
            self.publisher.publish(event)
