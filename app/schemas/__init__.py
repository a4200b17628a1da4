"""
Pydantic schemas for request and response validation
"""

from app.schemas.trip import TripCreate, TripUpdate, TripResponse
from app.schemas.seat import SeatResponse, SeatCounts, SeatMapResponse
from app.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    SeatLockRequest,
    SeatLockResponse
)
from app.schemas.payment import PaymentResponse, PaymentHistoryResponse
from app.schemas.response import (
    SuccessResponse,
    ErrorResponse,
    success_response,
    warning_response,
    error_response
)

__all__ = [
    "TripCreate",
    "TripUpdate",
    "TripResponse",
    "SeatResponse",
    "SeatCounts",
    "SeatMapResponse",
    "BookingCreate",
    "BookingResponse",
    "BookingStatusUpdate",
    "SeatLockRequest",
    "SeatLockResponse",
    "PaymentResponse",
    "PaymentHistoryResponse",
    "SuccessResponse",
    "ErrorResponse",
    "success_response",
    "warning_response",
    "error_response"
]
