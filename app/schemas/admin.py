"""
Admin dashboard schemas
"""

from typing import List, Dict
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.schemas.base import BaseSchema


class RecentBooking(BaseSchema):
    id: UUID
    reference: str
    user_id: UUID
    status: str
    total_price: Decimal
    booking_date: datetime


class TopRoute(BaseSchema):
    route_id: UUID
    departure_city: str
    arrival_city: str
    bookings: int


class DashboardStats(BaseSchema):
    period: str
    total_bookings: int
    bookings_by_status: Dict[str, int]
    total_revenue: Decimal
    active_trips: int
    completed_trips: int
    total_buses: int
    active_buses: int
    total_routes: int
    pending_payments: int
    recent_bookings: List[RecentBooking]
    top_routes: List[TopRoute]
