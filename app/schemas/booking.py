"""
Booking schemas
"""

from pydantic import Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.schemas.base import BaseSchema, IDSchema
from app.schemas.payment import BillResponse, PaymentSummary
from app.models.booking import BookingStatus
from app.config import settings


def _normalize_seat_numbers(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    cleaned = [s.strip().upper() for s in v]
    if any(not s for s in cleaned):
        raise ValueError("Seat numbers must be non-empty")
    if len(cleaned) != len(set(cleaned)):
        raise ValueError("Duplicate seat numbers not allowed")
    return cleaned


class BookingCreate(BaseSchema):
    """
    Booking creation schema. Either explicit seat numbers or a seat count
    (lowest-numbered available seats are assigned).
    """
    trip_id: UUID
    seat_numbers: Optional[List[str]] = None
    seats_count: Optional[int] = Field(None, ge=1)

    @field_validator("seat_numbers")
    @classmethod
    def normalize_seat_numbers(cls, v):
        return _normalize_seat_numbers(v)


class SeatLockRequest(BaseSchema):
    trip_id: UUID
    seat_numbers: List[str] = Field(..., min_length=1, max_length=settings.MAX_SEATS_PER_BOOKING)
    lock_duration: int = Field(
        settings.SEAT_LOCK_DEFAULT_SECONDS,
        ge=settings.SEAT_LOCK_MIN_SECONDS,
        le=settings.SEAT_LOCK_MAX_SECONDS
    )

    @field_validator("seat_numbers")
    @classmethod
    def normalize_seat_numbers(cls, v):
        return _normalize_seat_numbers(v)


class SeatLockResponse(BaseSchema):
    lock_id: UUID
    trip_id: UUID
    seats: List[str]
    locked_at: datetime
    expires_at: datetime
    lock_duration: int


class BookingStatusUpdate(BaseSchema):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=500)


class BookingSeatResponse(BaseSchema):
    seat_id: UUID
    seat_number: str
    price: Decimal


class BookingTripResponse(IDSchema):
    departure_city: str
    arrival_city: str
    departure_time: datetime
    arrival_time: datetime
    last_booking_time: datetime
    status: str


class BookingResponse(IDSchema):
    """Booking response schema"""
    reference: str
    user_id: UUID
    trip_id: UUID
    status: str
    total_price: Decimal
    booking_date: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    seats: List[BookingSeatResponse] = []
    bill: Optional[BillResponse] = None
    trip: Optional[BookingTripResponse] = None

    @classmethod
    def from_booking(cls, booking, include_trip: bool = True) -> "BookingResponse":
        """Build from a Booking loaded with details.seat, bill and trip.route"""
        trip = None
        if include_trip and booking.trip is not None:
            trip = BookingTripResponse(
                id=booking.trip.id,
                departure_city=booking.trip.route.departure_city,
                arrival_city=booking.trip.route.arrival_city,
                departure_time=booking.trip.departure_time,
                arrival_time=booking.trip.arrival_time,
                last_booking_time=booking.trip.last_booking_time,
                status=booking.trip.status.value,
            )
        return cls(
            id=booking.id,
            reference=booking.reference,
            user_id=booking.user_id,
            trip_id=booking.trip_id,
            status=booking.status.value,
            total_price=booking.total_price,
            booking_date=booking.booking_date,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
            completed_at=booking.completed_at,
            cancellation_reason=booking.cancellation_reason,
            seats=sorted(
                (
                    BookingSeatResponse(
                        seat_id=detail.seat_id,
                        seat_number=detail.seat.seat_number,
                        price=detail.price,
                    )
                    for detail in booking.details
                ),
                key=lambda s: s.seat_number,
            ),
            bill=BillResponse.model_validate(booking.bill) if booking.bill else None,
            trip=trip,
        )


class BookingStatusResponse(BaseSchema):
    booking_id: UUID
    reference: str
    status: str
    available_actions: List[str]
    payment: Optional[PaymentSummary] = None
    bill_status: Optional[str] = None
    trip_status: str
    departure_time: datetime
    last_booking_time: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
