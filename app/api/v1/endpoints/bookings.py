"""
Booking endpoints: seat locks, bookings, status and payments
"""

from typing import Any, Optional
import uuid
import logging
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.security import CurrentUser, get_current_user
from app.models.booking import BookingStatus
from app.models.payment import PaymentMethod
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusResponse,
    BookingStatusUpdate,
    SeatLockRequest,
    SeatLockResponse,
)
from app.schemas.payment import PaymentHistoryResponse, PaymentResponse
from app.schemas.response import PaginatedData, PaginationMeta, success_response, warning_response
from app.services.booking_lifecycle import status_governor
from app.services.booking_service import booking_service
from app.services.payment_gateway import PaymentGateway, get_payment_gateway
from app.services.payment_service import ReceiptUpload, payment_service
from app.services.receipt_storage import ReceiptStorage, get_receipt_storage
from app.services.seat_locks import seat_lock_manager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/lock-seats", status_code=status.HTTP_201_CREATED)
async def lock_seats(
    request: SeatLockRequest,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    """
    Temporarily hold seats while the customer completes the booking
    """
    lock = await seat_lock_manager.lock_seats(
        db, current_user, request.trip_id, request.seat_numbers, request.lock_duration
    )
    return success_response(SeatLockResponse(**lock), "Seats locked successfully")


@router.delete("/lock-seats/{lock_id}")
async def release_lock(
    lock_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    """
    Release a seat lock held by the current user
    """
    result = await seat_lock_manager.release_lock(db, current_user, lock_id)
    return success_response(result, "Seat lock released successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    """
    Create a booking for explicit seats or a number of seats
    """
    booking = await booking_service.create_booking(
        db,
        current_user,
        booking_data.trip_id,
        seat_numbers=booking_data.seat_numbers,
        seats_count=booking_data.seats_count
    )
    return success_response(BookingResponse.from_booking(booking), "Booking created successfully")


@router.get("")
async def list_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    """
    List the current user's bookings
    """
    bookings, total = await booking_service.list_user_bookings(
        db, current_user, status=status_filter, page=page, limit=limit
    )
    data = PaginatedData[BookingResponse](
        items=[BookingResponse.from_booking(b) for b in bookings],
        pagination=PaginationMeta.build(page, limit, total)
    )
    if not bookings:
        return warning_response("No bookings found", data=data)
    return success_response(data, "Bookings retrieved successfully")


@router.get("/{booking_id}")
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    booking = await booking_service.get_booking(db, current_user, booking_id)
    return success_response(BookingResponse.from_booking(booking), "Booking retrieved successfully")


@router.get("/{booking_id}/status")
async def get_booking_status(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    """
    Get booking status and the actions currently available on it
    """
    result = await booking_service.get_status(db, current_user, booking_id)
    return success_response(BookingStatusResponse(**result), "Booking status retrieved successfully")


@router.put("/{booking_id}/status")
async def update_booking_status(
    booking_id: uuid.UUID,
    update: BookingStatusUpdate,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    """
    Change the status of one of the current user's bookings
    """
    booking = await status_governor.update_status(
        db, current_user, booking_id, update.status, update.reason
    )
    return success_response(
        BookingResponse.from_booking(booking),
        f"Booking {booking.status.value} successfully"
    )


@router.post("/{booking_id}/payments", status_code=status.HTTP_201_CREATED)
async def submit_payment(
    booking_id: uuid.UUID,
    method: PaymentMethod = Form(...),
    receipt_image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    storage: ReceiptStorage = Depends(get_receipt_storage)
) -> Any:
    """
    Submit a payment for a booking; it stays pending until an admin decides
    """
    receipt = None
    if receipt_image is not None and receipt_image.filename:
        receipt = ReceiptUpload(
            content=await receipt_image.read(),
            content_type=receipt_image.content_type,
            filename=receipt_image.filename
        )

    payment = await payment_service.submit_payment(
        db, current_user, booking_id, method, gateway, storage=storage, receipt=receipt
    )
    return success_response(
        PaymentResponse.model_validate(payment),
        "Payment submitted successfully and is awaiting confirmation"
    )


@router.get("/{booking_id}/payments")
async def get_payment_history(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    current_user: CurrentUser = Depends(get_current_user)
) -> Any:
    history = await payment_service.payment_history(db, current_user, booking_id)
    data = PaymentHistoryResponse.model_validate(history)
    if not history["payments"]:
        return warning_response("No payments found for this booking", data=data)
    return success_response(data, "Payment history retrieved successfully")
