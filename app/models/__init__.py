"""
Database models
"""

from app.models.bus import Bus, BusStatus
from app.models.route import Route
from app.models.trip import Trip, TripStatus
from app.models.seat import Seat, SeatStatus
from app.models.booking import Booking, BookingDetail, BookingStatus
from app.models.bill import Bill, BillStatus
from app.models.payment import Payment, PaymentMethod, PaymentStatus

__all__ = [
    "Bus",
    "BusStatus",
    "Route",
    "Trip",
    "TripStatus",
    "Seat",
    "SeatStatus",
    "Booking",
    "BookingDetail",
    "BookingStatus",
    "Bill",
    "BillStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
]
