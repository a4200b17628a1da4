"""
Seat schemas
"""

from pydantic import Field, field_validator
from typing import List
from uuid import UUID

from app.schemas.base import BaseSchema, IDSchema
from app.config import settings
from app.models.seat import SeatStatus


class SeatResponse(IDSchema):
    seat_number: str
    position: int
    status: SeatStatus


class SeatCounts(BaseSchema):
    """Seat totals per status for one trip"""
    total: int
    available: int
    reserved: int
    booked: int
    blocked: int
    occupancy_rate: float


class SeatMapResponse(BaseSchema):
    trip_id: UUID
    seats: List[SeatResponse]
    counts: SeatCounts


class SeatCheckRequest(BaseSchema):
    seat_numbers: List[str] = Field(..., min_length=1, max_length=settings.MAX_SEATS_PER_BOOKING)

    @field_validator("seat_numbers")
    @classmethod
    def normalize(cls, v):
        cleaned = [s.strip().upper() for s in v]
        if any(not s for s in cleaned):
            raise ValueError("Seat numbers must be non-empty")
        if len(cleaned) != len(set(cleaned)):
            raise ValueError("Duplicate seat numbers not allowed")
        return cleaned


class SeatCheckResponse(BaseSchema):
    trip_id: UUID
    all_available: bool
    available: List[str]
    unavailable: List[str]


class SeatBlockRequest(BaseSchema):
    """Admin seat block/unblock request"""
    seat_ids: List[UUID] = Field(..., min_length=1)

    @field_validator("seat_ids")
    @classmethod
    def validate_unique_seats(cls, v):
        if len(v) != len(set(v)):
            raise ValueError("Duplicate seat IDs not allowed")
        return v


class SeatBlockResponse(BaseSchema):
    trip_id: UUID
    count: int
    seats: List[SeatResponse]
