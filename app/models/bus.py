"""
Bus model
"""

from sqlalchemy import Column, String, Integer, Enum, CheckConstraint
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel


class BusStatus(str, enum.Enum):
    ACTIVE = "active"
    PASSENGER_FILLING = "passenger_filling"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


BOOKABLE_BUS_STATUSES = (BusStatus.ACTIVE, BusStatus.PASSENGER_FILLING)


class Bus(BaseModel):
    """
    Vehicle reference data; capacity drives the seat inventory of its trips
    """
    __tablename__ = "buses"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_bus_capacity_positive"),
    )

    plate_number = Column(String(20), unique=True, nullable=False, index=True)
    model = Column(String(100))
    capacity = Column(Integer, nullable=False)
    status = Column(
        Enum(BusStatus),
        default=BusStatus.ACTIVE,
        nullable=False
    )

    # Relationships
    trips = relationship("Trip", back_populates="bus")

    def __repr__(self):
        return f"<Bus(id={self.id}, plate={self.plate_number}, capacity={self.capacity}, status={self.status})>"
