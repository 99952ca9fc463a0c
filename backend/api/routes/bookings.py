"""
Bookings API: list, create, assign, advance and cancel.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
import logging

from ...models import AssignRequest, BookingCreate, BookingStatus, BookingType, CancelRequest, StatusUpdate
from ...services.lifecycle import BookingLifecycleService
from ..deps import get_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


@router.get("", response_model=Dict[str, Any])
async def list_bookings(
    status: Optional[BookingStatus] = Query(None),
    bookingType: Optional[BookingType] = Query(None),
    search: Optional[str] = Query(None, description="Matches booking id, pickup or drop-off address"),
    startDate: Optional[datetime] = Query(None, description="Trip start on or after"),
    endDate: Optional[datetime] = Query(None, description="Trip start on or before"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    lifecycle: BookingLifecycleService = Depends(get_lifecycle),
):
    result = await lifecycle.list(
        status=status,
        booking_type=bookingType,
        search=search,
        start_date=startDate,
        end_date=endDate,
        page=page,
        limit=limit,
    )
    return {
        "bookings": [b.model_dump(mode="json") for b in result["bookings"]],
        "pagination": result["pagination"],
    }


@router.post("", response_model=Dict[str, Any], status_code=201)
async def create_booking(request: BookingCreate, lifecycle: BookingLifecycleService = Depends(get_lifecycle)):
    booking = await lifecycle.create(request)
    return {"message": "Booking created successfully", "booking": booking.model_dump(mode="json")}


@router.get("/{booking_id}", response_model=Dict[str, Any])
async def get_booking(booking_id: str, lifecycle: BookingLifecycleService = Depends(get_lifecycle)):
    booking = await lifecycle.get(booking_id)
    return booking.model_dump(mode="json")


@router.put("/{booking_id}/assign", response_model=Dict[str, Any])
async def assign_booking(
    booking_id: str,
    request: AssignRequest,
    lifecycle: BookingLifecycleService = Depends(get_lifecycle),
):
    booking = await lifecycle.assign(booking_id, request.driverId, request.vehicleId)
    return {"message": "Driver and vehicle assigned successfully", "booking": booking.model_dump(mode="json")}


@router.put("/{booking_id}/status", response_model=Dict[str, Any])
async def update_booking_status(
    booking_id: str,
    request: StatusUpdate,
    lifecycle: BookingLifecycleService = Depends(get_lifecycle),
):
    booking = await lifecycle.advance_status(
        booking_id,
        request.status,
        completed_at=request.completedAt,
        reason=request.reason,
    )
    return {"message": f"Booking status updated to {booking.status.value}", "booking": booking.model_dump(mode="json")}


@router.put("/{booking_id}/cancel", response_model=Dict[str, Any])
async def cancel_booking(
    booking_id: str,
    request: CancelRequest,
    lifecycle: BookingLifecycleService = Depends(get_lifecycle),
):
    booking = await lifecycle.cancel(booking_id, request.reason, refund_amount=request.refundAmount)
    return {"message": "Booking cancelled successfully", "booking": booking.model_dump(mode="json")}
