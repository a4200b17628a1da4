"""
Analytics Service for the admin dashboard
"""

from typing import Dict, Optional
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import logging

from app.core.exceptions import ValidationError
from app.models.base import utcnow
from app.models.booking import Booking, BookingStatus
from app.models.bus import Bus, BusStatus
from app.models.payment import Payment, PaymentStatus
from app.models.route import Route
from app.models.trip import Trip, TripStatus

logger = logging.getLogger(__name__)

PERIODS = ("all", "today", "week", "month", "year")


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or utcnow()
    if period == "all":
        return None
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    if period == "year":
        return now - timedelta(days=365)
    raise ValidationError(f"Unknown period: {period}", field="period")


class AnalyticsService:
    """Service for generating dashboard statistics"""

    @staticmethod
    async def get_dashboard_stats(db: AsyncSession, period: str = "all", limit: int = 5) -> Dict:
        """Counts, revenue, recent bookings and busiest routes"""
        since = period_start(period)
        booking_filters = [Booking.lock_expires_at.is_(None)]
        if since is not None:
            booking_filters.append(Booking.booking_date >= since)

        status_rows = await db.execute(
            select(Booking.status, func.count(Booking.id))
            .where(*booking_filters)
            .group_by(Booking.status)
        )
        by_status = {status.value: 0 for status in BookingStatus}
        for status, count in status_rows.all():
            by_status[status.value] = count

        revenue = await db.scalar(
            select(func.coalesce(func.sum(Booking.total_price), 0)).where(
                *booking_filters,
                Booking.status.in_((BookingStatus.CONFIRMED, BookingStatus.COMPLETED))
            )
        )

        active_trips = await db.scalar(
            select(func.count(Trip.id)).where(
                Trip.status == TripStatus.SCHEDULED,
                Trip.departure_time >= utcnow()
            )
        )
        completed_trips = await db.scalar(
            select(func.count(Trip.id)).where(Trip.status == TripStatus.COMPLETED)
        )
        total_buses = await db.scalar(select(func.count(Bus.id)))
        active_buses = await db.scalar(
            select(func.count(Bus.id)).where(Bus.status == BusStatus.ACTIVE)
        )
        total_routes = await db.scalar(select(func.count(Route.id)))
        pending_payments = await db.scalar(
            select(func.count(Payment.id)).where(Payment.status == PaymentStatus.PENDING)
        )

        recent = await db.execute(
            select(Booking)
            .where(*booking_filters)
            .order_by(Booking.booking_date.desc())
            .limit(limit)
        )
        recent_bookings = [
            {
                "id": b.id,
                "reference": b.reference,
                "user_id": b.user_id,
                "status": b.status.value,
                "total_price": b.total_price,
                "booking_date": b.booking_date,
            }
            for b in recent.scalars().all()
        ]

        booking_count = func.count(Booking.id).label("bookings")
        top = await db.execute(
            select(Route.id, Route.departure_city, Route.arrival_city, booking_count)
            .join(Trip, Trip.route_id == Route.id)
            .join(Booking, Booking.trip_id == Trip.id)
            .where(*booking_filters)
            .group_by(Route.id, Route.departure_city, Route.arrival_city)
            .order_by(booking_count.desc())
            .limit(limit)
        )
        top_routes = [
            {
                "route_id": route_id,
                "departure_city": departure_city,
                "arrival_city": arrival_city,
                "bookings": bookings,
            }
            for route_id, departure_city, arrival_city, bookings in top.all()
        ]

        return {
            "period": period,
            "total_bookings": sum(by_status.values()),
            "bookings_by_status": by_status,
            "total_revenue": Decimal(revenue or 0),
            "active_trips": active_trips or 0,
            "completed_trips": completed_trips or 0,
            "total_buses": total_buses or 0,
            "active_buses": active_buses or 0,
            "total_routes": total_routes or 0,
            "pending_payments": pending_payments or 0,
            "recent_bookings": recent_bookings,
            "top_routes": top_routes,
        }


analytics_service = AnalyticsService()
