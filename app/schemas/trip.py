"""
Trip schemas
"""

from pydantic import Field, model_validator
from typing import Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.schemas.base import BaseSchema, IDSchema, TimestampSchema
from app.schemas.seat import SeatCounts
from app.models.bus import BusStatus
from app.models.trip import TripStatus


class RouteSummary(IDSchema):
    departure_city: str
    arrival_city: str
    distance_km: Optional[int] = None


class BusSummary(IDSchema):
    plate_number: str
    model: Optional[str] = None
    capacity: int
    status: BusStatus


class TripCreate(BaseSchema):
    """Trip creation schema; seats are generated from the bus capacity"""
    route_id: UUID
    bus_id: UUID
    departure_time: datetime
    arrival_time: datetime
    last_booking_time: datetime
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def validate_times(self):
        if not self.last_booking_time < self.departure_time < self.arrival_time:
            raise ValueError(
                "Times must satisfy last_booking_time < departure_time < arrival_time"
            )
        return self


class TripUpdate(BaseSchema):
    """Partial trip update; time ordering is re-checked against stored values"""
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    last_booking_time: Optional[datetime] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    status: Optional[TripStatus] = None


class TripResponse(IDSchema, TimestampSchema):
    route: RouteSummary
    bus: BusSummary
    departure_time: datetime
    arrival_time: datetime
    last_booking_time: datetime
    price: Decimal
    status: TripStatus
    seat_counts: Optional[SeatCounts] = None
