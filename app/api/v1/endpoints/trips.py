"""
Public trip search and seat availability endpoints
"""

from datetime import date
from typing import Any, Optional
import uuid
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.models.trip import TripStatus
from app.schemas.response import success_response, warning_response
from app.schemas.seat import SeatCheckRequest, SeatCheckResponse, SeatMapResponse, SeatResponse
from app.services.seat_inventory import seat_inventory
from app.services.trip_service import trip_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def search_trips(
    from_city: Optional[str] = Query(None, alias="from"),
    to_city: Optional[str] = Query(None, alias="to"),
    travel_date: Optional[date] = Query(None, alias="date"),
    status: Optional[TripStatus] = Query(TripStatus.SCHEDULED),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Search trips by route and date
    """
    result = await trip_service.search_trips(
        db,
        from_city=from_city,
        to_city=to_city,
        travel_date=travel_date,
        status=status,
        page=page,
        limit=limit
    )
    if not result["items"]:
        return warning_response("No trips found matching your criteria", data=result)
    return success_response(result, "Trips retrieved successfully")


@router.get("/{trip_id}")
async def get_trip(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Get trip details with seat availability counts
    """
    trip = await trip_service.get_trip_detail(db, trip_id)
    return success_response(trip, "Trip retrieved successfully")


@router.get("/{trip_id}/seats")
async def get_trip_seats(
    trip_id: uuid.UUID,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Get the seat map of a trip
    """
    seats = await seat_inventory.list_seats(db, trip_id)
    counts = await seat_inventory.count_by_status(db, trip_id)
    data = SeatMapResponse(
        trip_id=trip_id,
        seats=[SeatResponse.model_validate(seat) for seat in seats],
        counts=counts
    )
    return success_response(data, "Seats retrieved successfully")


@router.post("/{trip_id}/seats/check")
async def check_seats(
    trip_id: uuid.UUID,
    request: SeatCheckRequest,
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Check whether specific seats are available (advisory)
    """
    result = await seat_inventory.check_seats(db, trip_id, request.seat_numbers)
    data = SeatCheckResponse(**result)
    if not data.all_available:
        return warning_response("Some requested seats are not available", data=data)
    return success_response(data, "All requested seats are available")
