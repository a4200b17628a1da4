"""
Admin endpoints: trips, seat blocking, bookings, payments and statistics
"""

from typing import Any, Optional
import uuid
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.security import CurrentUser, require_admin
from app.models.booking import BookingStatus
from app.models.payment import PaymentMethod, PaymentStatus
from app.schemas.admin import DashboardStats
from app.schemas.booking import BookingResponse, BookingStatusUpdate
from app.schemas.payment import AdminPaymentResponse, PaymentDecisionResponse
from app.schemas.response import PaginatedData, PaginationMeta, success_response, warning_response
from app.schemas.seat import SeatBlockRequest, SeatBlockResponse, SeatMapResponse, SeatResponse
from app.schemas.trip import TripCreate, TripUpdate
from app.services.analytics_service import analytics_service
from app.services.booking_lifecycle import status_governor
from app.services.booking_service import booking_service
from app.services.payment_service import payment_service
from app.services.seat_inventory import seat_inventory
from app.services.trip_service import trip_service

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_admin)])


@router.post("/trips", status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Create a trip; its seats are generated from the bus capacity
    """
    trip = await trip_service.create_trip(
        db,
        route_id=trip_data.route_id,
        bus_id=trip_data.bus_id,
        departure_time=trip_data.departure_time,
        arrival_time=trip_data.arrival_time,
        last_booking_time=trip_data.last_booking_time,
        price=trip_data.price
    )
    counts = await seat_inventory.count_by_status(db, trip.id)
    return success_response(trip_service.serialize(trip, counts), "Trip created successfully")


@router.patch("/trips/{trip_id}")
async def update_trip(
    trip_id: uuid.UUID,
    trip_data: TripUpdate,
    db: AsyncSession = Depends(get_session)
) -> Any:
    trip = await trip_service.update_trip(db, trip_id, trip_data.model_dump(exclude_unset=True))
    return success_response(trip_service.serialize(trip), "Trip updated successfully")


@router.get("/trips/{trip_id}/seats")
async def get_trip_seats(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    seats = await seat_inventory.list_seats(db, trip_id)
    counts = await seat_inventory.count_by_status(db, trip_id)
    data = SeatMapResponse(
        trip_id=trip_id,
        seats=[SeatResponse.model_validate(seat) for seat in seats],
        counts=counts
    )
    return success_response(data, "Seats retrieved successfully")


@router.post("/trips/{trip_id}/block-seats")
async def block_seats(
    trip_id: uuid.UUID,
    request: SeatBlockRequest,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Take available seats out of sale
    """
    seats = await seat_inventory.block_seats(db, trip_id, request.seat_ids)
    data = SeatBlockResponse(
        trip_id=trip_id,
        count=len(seats),
        seats=[SeatResponse.model_validate(seat) for seat in seats]
    )
    return success_response(data, f"{len(seats)} seats blocked successfully")


@router.post("/trips/{trip_id}/unblock-seats")
async def unblock_seats(
    trip_id: uuid.UUID,
    request: SeatBlockRequest,
    db: AsyncSession = Depends(get_session)
) -> Any:
    seats = await seat_inventory.unblock_seats(db, trip_id, request.seat_ids)
    data = SeatBlockResponse(
        trip_id=trip_id,
        count=len(seats),
        seats=[SeatResponse.model_validate(seat) for seat in seats]
    )
    return success_response(data, f"{len(seats)} seats unblocked successfully")


@router.get("/bookings")
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    trip_id: Optional[uuid.UUID] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session)
) -> Any:
    bookings, total = await booking_service.list_bookings(
        db, user_id=user_id, trip_id=trip_id, status=status_filter, page=page, limit=limit
    )
    data = PaginatedData[BookingResponse](
        items=[BookingResponse.from_booking(b) for b in bookings],
        pagination=PaginationMeta.build(page, limit, total)
    )
    if not bookings:
        return warning_response("No bookings found", data=data)
    return success_response(data, "Bookings retrieved successfully")


@router.get("/bookings/{booking_id}")
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    admin_user: CurrentUser = Depends(require_admin)
) -> Any:
    booking = await booking_service.get_booking(db, admin_user, booking_id)
    return success_response(BookingResponse.from_booking(booking), "Booking retrieved successfully")


@router.put("/bookings/{booking_id}/status")
async def update_booking_status(
    booking_id: uuid.UUID,
    update: BookingStatusUpdate,
    db: AsyncSession = Depends(get_session),
    admin_user: CurrentUser = Depends(require_admin)
) -> Any:
    """
    Change any booking's status; confirmation does not require a paid bill
    """
    booking = await status_governor.update_status(
        db, admin_user, booking_id, update.status, update.reason, admin=True
    )
    return success_response(
        BookingResponse.from_booking(booking),
        f"Booking {booking.status.value} successfully"
    )


@router.delete("/bookings/{booking_id}")
async def delete_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    await status_governor.delete_booking(db, booking_id)
    return success_response({"booking_id": booking_id}, "Booking deleted successfully")


@router.get("/payments")
async def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    method: Optional[PaymentMethod] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session)
) -> Any:
    items, total = await payment_service.list_payments(
        db, status=status_filter, method=method, page=page, limit=limit
    )
    data = PaginatedData[AdminPaymentResponse](
        items=[AdminPaymentResponse(**item) for item in items],
        pagination=PaginationMeta.build(page, limit, total)
    )
    if not items:
        return warning_response("No payments found", data=data)
    return success_response(data, "Payments retrieved successfully")


@router.put("/payments/{payment_id}/confirm")
async def confirm_payment(
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Confirm a pending payment; a covered bill confirms the booking
    """
    result = await payment_service.confirm_payment(db, payment_id)
    return success_response(
        PaymentDecisionResponse.model_validate(result),
        "Payment confirmed successfully"
    )


@router.put("/payments/{payment_id}/reject")
async def reject_payment(
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    result = await payment_service.reject_payment(db, payment_id)
    return success_response(
        PaymentDecisionResponse.model_validate(result),
        "Payment rejected"
    )


@router.get("/stats")
async def dashboard_stats(
    period: str = Query("all", pattern="^(all|today|week|month|year)$"),
    limit: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Dashboard statistics
    """
    stats = await analytics_service.get_dashboard_stats(db, period=period, limit=limit)
    return success_response(DashboardStats(**stats), "Statistics retrieved successfully")
