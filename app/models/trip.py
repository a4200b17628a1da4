"""
Trip model
"""

from sqlalchemy import Column, ForeignKey, Enum, Numeric, Uuid
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel, UTCDateTime


class TripStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Trip(BaseModel):
    """
    A scheduled departure of a bus on a route; owns its seat inventory
    """
    __tablename__ = "trips"

    route_id = Column(Uuid(as_uuid=True), ForeignKey("routes.id"), nullable=False, index=True)
    bus_id = Column(Uuid(as_uuid=True), ForeignKey("buses.id"), nullable=False, index=True)
    departure_time = Column(UTCDateTime(), nullable=False, index=True)
    arrival_time = Column(UTCDateTime(), nullable=False)
    last_booking_time = Column(UTCDateTime(), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(TripStatus),
        default=TripStatus.SCHEDULED,
        nullable=False,
        index=True
    )

    # Relationships
    route = relationship("Route", back_populates="trips")
    bus = relationship("Bus", back_populates="trips")
    seats = relationship(
        "Seat",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="Seat.position"
    )
    bookings = relationship("Booking", back_populates="trip")

    def __repr__(self):
        return f"<Trip(id={self.id}, departure={self.departure_time}, status={self.status})>"
