"""
Seat model
"""

from sqlalchemy import Column, String, Integer, ForeignKey, Enum, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel


class SeatStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    BOOKED = "booked"
    BLOCKED = "blocked"


def seat_label(index: int, per_row: int = 4) -> str:
    """Seat number for a zero-based position: A1..A4, B1..B4, ..."""
    return f"{chr(65 + index // per_row)}{index % per_row + 1}"


class Seat(BaseModel):
    """
    One seat of one trip. Mutated only under a row lock inside a transaction.
    """
    __tablename__ = "seats"
    __table_args__ = (
        UniqueConstraint('trip_id', 'seat_number', name='uq_trip_seat'),
    )

    trip_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    seat_number = Column(String(10), nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(
        Enum(SeatStatus),
        default=SeatStatus.AVAILABLE,
        nullable=False,
        index=True
    )

    # Relationships
    trip = relationship("Trip", back_populates="seats")
    booking_details = relationship("BookingDetail", back_populates="seat")

    def __repr__(self):
        return f"<Seat(id={self.id}, trip_id={self.trip_id}, seat={self.seat_number}, status={self.status})>"
