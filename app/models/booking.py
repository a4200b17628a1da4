"""
Booking and BookingDetail models
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, ForeignKey, Enum, Numeric, Uuid
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel, UTCDateTime, utcnow


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
TERMINAL_BOOKING_STATUSES = (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


class Booking(BaseModel):
    """
    A user's claim on seats of a trip.

    A row with lock_expires_at set is a seat-lock placeholder: pending, zero
    priced, without a bill. It holds seats as reserved until the lease ends.
    """
    __tablename__ = "bookings"

    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    trip_id = Column(Uuid(as_uuid=True), ForeignKey("trips.id"), nullable=False, index=True)
    booking_date = Column(UTCDateTime(), default=utcnow, nullable=False)
    status = Column(
        Enum(BookingStatus),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True
    )
    total_price = Column(Numeric(10, 2), nullable=False)
    lock_expires_at = Column(UTCDateTime(), nullable=True, index=True)
    confirmed_at = Column(UTCDateTime())
    cancelled_at = Column(UTCDateTime())
    completed_at = Column(UTCDateTime())
    cancellation_reason = Column(String(500))

    # Relationships
    trip = relationship("Trip", back_populates="bookings")
    details = relationship("BookingDetail", back_populates="booking", cascade="all, delete-orphan")
    bill = relationship("Bill", back_populates="booking", uselist=False, cascade="all, delete-orphan")

    @property
    def reference(self) -> str:
        return f"BK-{self.id.hex[:8].upper()}"

    @property
    def is_lock(self) -> bool:
        return self.lock_expires_at is not None

    def lock_expired(self, now: Optional[datetime] = None) -> bool:
        return self.is_lock and self.lock_expires_at <= (now or utcnow())

    def __repr__(self):
        return f"<Booking(id={self.id}, status={self.status}, total={self.total_price})>"


class BookingDetail(BaseModel):
    """
    One seat of a booking with the price frozen at booking time
    """
    __tablename__ = "booking_details"

    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    seat_id = Column(Uuid(as_uuid=True), ForeignKey("seats.id"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    booking = relationship("Booking", back_populates="details")
    seat = relationship("Seat", back_populates="booking_details")

    def __repr__(self):
        return f"<BookingDetail(booking_id={self.booking_id}, seat_id={self.seat_id}, price={self.price})>"
