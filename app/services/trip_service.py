"""
Trip creation, updates and search
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.cache import ListCache, list_cache, TRIPS_NAMESPACE
from app.core.database import DatabaseManager, db_manager
from app.core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from app.models.bus import Bus, BOOKABLE_BUS_STATUSES
from app.models.route import Route
from app.models.seat import Seat, seat_label
from app.models.trip import Trip, TripStatus
from app.schemas.response import PaginationMeta
from app.schemas.seat import SeatCounts
from app.schemas.trip import TripResponse
from app.services.seat_inventory import SeatInventory, lock_trip, seat_inventory

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("departure_time", "arrival_time", "last_booking_time", "price", "status")


def validate_schedule(last_booking_time: datetime, departure_time: datetime, arrival_time: datetime):
    if not last_booking_time < departure_time < arrival_time:
        raise ValidationError(
            "Times must satisfy last_booking_time < departure_time < arrival_time",
            details={
                "last_booking_time": last_booking_time.isoformat(),
                "departure_time": departure_time.isoformat(),
                "arrival_time": arrival_time.isoformat(),
            }
        )


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def load_trip(session: AsyncSession, trip_id: uuid.UUID) -> Trip:
    result = await session.execute(
        select(Trip)
        .where(Trip.id == trip_id)
        .options(selectinload(Trip.route), selectinload(Trip.bus))
        .execution_options(populate_existing=True)
    )
    trip = result.scalar_one_or_none()
    if not trip:
        raise NotFoundError("Trip", trip_id)
    return trip


class TripService:
    """
    Trips and the seat inventory they own
    """

    def __init__(
        self,
        db_manager: DatabaseManager = db_manager,
        inventory: SeatInventory = seat_inventory,
        cache: ListCache = list_cache
    ):
        self.db_manager = db_manager
        self.inventory = inventory
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def create_trip(
        self,
        session: AsyncSession,
        route_id: uuid.UUID,
        bus_id: uuid.UUID,
        departure_time: datetime,
        arrival_time: datetime,
        last_booking_time: datetime,
        price
    ) -> Trip:
        """Create a trip and one seat per unit of bus capacity"""
        departure_time, arrival_time, last_booking_time = (
            as_utc(departure_time), as_utc(arrival_time), as_utc(last_booking_time)
        )
        validate_schedule(last_booking_time, departure_time, arrival_time)

        async with self.db_manager.transaction(session):
            route = await session.get(Route, route_id)
            if not route:
                raise NotFoundError("Route", route_id)
            bus = await session.get(Bus, bus_id)
            if not bus:
                raise NotFoundError("Bus", bus_id)
            if bus.status not in BOOKABLE_BUS_STATUSES:
                raise BusinessRuleError(
                    f"Bus is not available for new trips. Current status: {bus.status.value}",
                    code="BUS_UNAVAILABLE"
                )

            trip = Trip(
                route_id=route_id,
                bus_id=bus_id,
                departure_time=departure_time,
                arrival_time=arrival_time,
                last_booking_time=last_booking_time,
                price=price,
                status=TripStatus.SCHEDULED,
            )
            session.add(trip)
            await session.flush()
            session.add_all([
                Seat(
                    trip_id=trip.id,
                    seat_number=seat_label(index, settings.SEATS_PER_ROW),
                    position=index,
                )
                for index in range(bus.capacity)
            ])
            trip_id = trip.id

        self.logger.info(f"Trip {trip_id} created with {bus.capacity} seats")
        await self.cache.invalidate(TRIPS_NAMESPACE)
        return await load_trip(session, trip_id)

    async def update_trip(self, session: AsyncSession, trip_id: uuid.UUID, changes: Dict[str, Any]) -> Trip:
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
        async with self.db_manager.transaction(session):
            trip = await lock_trip(session, trip_id)
            for field in ("departure_time", "arrival_time", "last_booking_time"):
                if field in changes:
                    changes[field] = as_utc(changes[field])
            validate_schedule(
                changes.get("last_booking_time", trip.last_booking_time),
                changes.get("departure_time", trip.departure_time),
                changes.get("arrival_time", trip.arrival_time),
            )
            if "status" in changes:
                changes["status"] = TripStatus(changes["status"])
            for field, value in changes.items():
                setattr(trip, field, value)

        self.logger.info(f"Trip {trip_id} updated: {', '.join(sorted(changes)) or 'no changes'}")
        await self.cache.invalidate(TRIPS_NAMESPACE)
        return await load_trip(session, trip_id)

    async def get_trip_detail(self, session: AsyncSession, trip_id: uuid.UUID) -> Dict[str, Any]:
        trip = await load_trip(session, trip_id)
        counts = await self.inventory.count_by_status(session, trip_id)
        return self.serialize(trip, counts)

    def serialize(self, trip: Trip, counts: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = TripResponse.model_validate(trip)
        if counts is not None:
            response.seat_counts = SeatCounts(**counts)
        return response.model_dump(mode="json")

    async def search_trips(
        self,
        session: AsyncSession,
        from_city: Optional[str] = None,
        to_city: Optional[str] = None,
        travel_date: Optional[date] = None,
        status: Optional[TripStatus] = TripStatus.SCHEDULED,
        page: int = 1,
        limit: int = 10
    ) -> Dict[str, Any]:
        """
        Paginated trip search with seat counts. Served from the list cache
        when possible; results may be up to CACHE_TTL_TRIPS seconds old.
        """
        params = {
            "from": from_city.strip().lower() if from_city else None,
            "to": to_city.strip().lower() if to_city else None,
            "date": travel_date.isoformat() if travel_date else None,
            "status": TripStatus(status).value if status else None,
            "page": page,
            "limit": limit,
        }
        cached = await self.cache.get(TRIPS_NAMESPACE, params)
        if cached is not None:
            return cached

        filters = []
        if params["from"]:
            filters.append(func.lower(Route.departure_city) == params["from"])
        if params["to"]:
            filters.append(func.lower(Route.arrival_city) == params["to"])
        if travel_date:
            start = datetime.combine(travel_date, time.min, tzinfo=timezone.utc)
            filters.append(Trip.departure_time >= start)
            filters.append(Trip.departure_time < start + timedelta(days=1))
        if status:
            filters.append(Trip.status == TripStatus(status))

        total = await session.scalar(
            select(func.count(Trip.id)).join(Route, Trip.route_id == Route.id).where(*filters)
        )
        result = await session.execute(
            select(Trip)
            .join(Route, Trip.route_id == Route.id)
            .where(*filters)
            .options(selectinload(Trip.route), selectinload(Trip.bus))
            .order_by(Trip.departure_time)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        trips = list(result.scalars().all())
        counts = await self.inventory.counts_for_trips(session, [t.id for t in trips])

        payload = {
            "items": [self.serialize(trip, counts.get(trip.id)) for trip in trips],
            "pagination": PaginationMeta.build(page, limit, total or 0).model_dump(),
        }
        await self.cache.set(TRIPS_NAMESPACE, params, payload)
        return payload


trip_service = TripService()
