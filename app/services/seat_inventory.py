"""
Seat inventory for trips

Reads here are advisory snapshots. Anything that changes a seat re-reads it
under a row lock inside a transaction.
"""

import logging
import uuid
from typing import Dict, Iterable, List, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import ListCache, list_cache, TRIPS_NAMESPACE
from app.core.database import DatabaseManager, db_manager
from app.core.exceptions import NotFoundError, BusinessRuleError, SeatUnavailableError
from app.models.seat import Seat, SeatStatus
from app.models.trip import Trip, TripStatus

logger = logging.getLogger(__name__)

CLOSED_TRIP_STATUSES = (TripStatus.COMPLETED, TripStatus.CANCELLED)


async def lock_trip(session: AsyncSession, trip_id: uuid.UUID) -> Trip:
    """Load the trip row FOR UPDATE; serializes seat mutations per trip"""
    result = await session.execute(
        select(Trip)
        .where(Trip.id == trip_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    trip = result.scalar_one_or_none()
    if not trip:
        raise NotFoundError("Trip", trip_id)
    return trip


async def lock_seats_by_number(
    session: AsyncSession,
    trip_id: uuid.UUID,
    seat_numbers: Sequence[str]
) -> List[Seat]:
    result = await session.execute(
        select(Seat)
        .where(Seat.trip_id == trip_id, Seat.seat_number.in_(list(seat_numbers)))
        .order_by(Seat.position)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def lock_seats_by_id(session: AsyncSession, seat_ids: Iterable[uuid.UUID]) -> List[Seat]:
    seat_ids = list(seat_ids)
    if not seat_ids:
        return []
    result = await session.execute(
        select(Seat)
        .where(Seat.id.in_(seat_ids))
        .order_by(Seat.position)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def lock_available_seats(session: AsyncSession, trip_id: uuid.UUID, limit: int) -> List[Seat]:
    """Lowest-numbered available seats of a trip"""
    result = await session.execute(
        select(Seat)
        .where(Seat.trip_id == trip_id, Seat.status == SeatStatus.AVAILABLE)
        .order_by(Seat.position)
        .limit(limit)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def set_seat_status(seats: Iterable[Seat], status: SeatStatus) -> int:
    changed = 0
    for seat in seats:
        if seat.status != status:
            seat.status = status
            changed += 1
    return changed


def build_counts(counts: Dict[SeatStatus, int]) -> Dict[str, float]:
    total = sum(counts.values())
    booked = counts.get(SeatStatus.BOOKED, 0)
    return {
        "total": total,
        "available": counts.get(SeatStatus.AVAILABLE, 0),
        "reserved": counts.get(SeatStatus.RESERVED, 0),
        "booked": booked,
        "blocked": counts.get(SeatStatus.BLOCKED, 0),
        "occupancy_rate": round(booked / total * 100, 1) if total else 0.0,
    }


class SeatInventory:
    """
    Per-trip seat state: listing, counting and admin blocking
    """

    def __init__(self, db_manager: DatabaseManager = db_manager, cache: ListCache = list_cache):
        self.db_manager = db_manager
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def get_trip(self, session: AsyncSession, trip_id: uuid.UUID) -> Trip:
        trip = await session.get(Trip, trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        return trip

    async def list_seats(self, session: AsyncSession, trip_id: uuid.UUID) -> List[Seat]:
        await self.get_trip(session, trip_id)
        result = await session.execute(
            select(Seat)
            .where(Seat.trip_id == trip_id)
            .order_by(Seat.position)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_by_status(self, session: AsyncSession, trip_id: uuid.UUID) -> Dict[str, float]:
        result = await session.execute(
            select(Seat.status, func.count(Seat.id))
            .where(Seat.trip_id == trip_id)
            .group_by(Seat.status)
        )
        return build_counts({status: count for status, count in result.all()})

    async def counts_for_trips(
        self,
        session: AsyncSession,
        trip_ids: Sequence[uuid.UUID]
    ) -> Dict[uuid.UUID, Dict[str, float]]:
        """Counts for many trips in one query (search results)"""
        if not trip_ids:
            return {}
        result = await session.execute(
            select(Seat.trip_id, Seat.status, func.count(Seat.id))
            .where(Seat.trip_id.in_(list(trip_ids)))
            .group_by(Seat.trip_id, Seat.status)
        )
        raw: Dict[uuid.UUID, Dict[SeatStatus, int]] = {trip_id: {} for trip_id in trip_ids}
        for trip_id, status, count in result.all():
            raw[trip_id][status] = count
        return {trip_id: build_counts(counts) for trip_id, counts in raw.items()}

    async def check_seats(
        self,
        session: AsyncSession,
        trip_id: uuid.UUID,
        seat_numbers: Sequence[str]
    ) -> Dict[str, object]:
        await self.get_trip(session, trip_id)
        result = await session.execute(
            select(Seat.seat_number, Seat.status)
            .where(Seat.trip_id == trip_id, Seat.seat_number.in_(list(seat_numbers)))
        )
        statuses = dict(result.all())
        available = [n for n in seat_numbers if statuses.get(n) == SeatStatus.AVAILABLE]
        unavailable = [n for n in seat_numbers if statuses.get(n) != SeatStatus.AVAILABLE]
        return {
            "trip_id": trip_id,
            "all_available": not unavailable,
            "available": available,
            "unavailable": unavailable,
        }

    async def block_seats(
        self,
        session: AsyncSession,
        trip_id: uuid.UUID,
        seat_ids: Sequence[uuid.UUID]
    ) -> List[Seat]:
        """Take available seats out of sale"""
        return await self._switch(session, trip_id, seat_ids, SeatStatus.AVAILABLE, SeatStatus.BLOCKED)

    async def unblock_seats(
        self,
        session: AsyncSession,
        trip_id: uuid.UUID,
        seat_ids: Sequence[uuid.UUID]
    ) -> List[Seat]:
        return await self._switch(session, trip_id, seat_ids, SeatStatus.BLOCKED, SeatStatus.AVAILABLE)

    async def _switch(
        self,
        session: AsyncSession,
        trip_id: uuid.UUID,
        seat_ids: Sequence[uuid.UUID],
        from_status: SeatStatus,
        to_status: SeatStatus
    ) -> List[Seat]:
        async with self.db_manager.transaction(session):
            trip = await lock_trip(session, trip_id)
            if trip.status in CLOSED_TRIP_STATUSES:
                raise BusinessRuleError(
                    f"Cannot change seats for {trip.status.value} trips",
                    details={"trip_status": trip.status.value}
                )

            seats = await lock_seats_by_id(session, seat_ids)
            eligible = {
                seat.id: seat for seat in seats
                if seat.trip_id == trip_id and seat.status == from_status
            }
            if len(eligible) != len(seat_ids):
                by_id = {seat.id: seat for seat in seats}
                offending = [
                    by_id[sid].seat_number if sid in by_id and by_id[sid].trip_id == trip_id else str(sid)
                    for sid in seat_ids if sid not in eligible
                ]
                raise SeatUnavailableError(
                    offending,
                    message=(
                        f"Some seats are not {from_status.value} or don't belong to this trip: "
                        f"{', '.join(offending)}"
                    )
                )

            set_seat_status(eligible.values(), to_status)

        self.logger.info(f"{len(seats)} seats on trip {trip_id} set to {to_status.value}")
        await self.cache.invalidate(TRIPS_NAMESPACE)
        return sorted(eligible.values(), key=lambda s: s.position)


seat_inventory = SeatInventory()
