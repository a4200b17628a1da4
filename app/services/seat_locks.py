"""
Temporary seat locks

A lock is a pending, zero-priced placeholder booking whose lock_expires_at is
its lease. Its seats are `reserved` until the lease runs out; an expired
lock is treated as absent and reclaimed by the next transaction touching the
trip or by the background sweeper.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.cache import ListCache, list_cache, TRIPS_NAMESPACE
from app.core.database import DatabaseManager, db_manager
from app.core.exceptions import (
    AuthorizationError,
    BookingDeadlineError,
    BusinessRuleError,
    NotFoundError,
    SeatLockConflictError,
    SeatUnavailableError,
    ValidationError,
)
from app.core.metrics import record_swept_locks, track_operation
from app.core.security import CurrentUser
from app.models.base import utcnow
from app.models.booking import Booking, BookingDetail, BookingStatus
from app.models.seat import Seat, SeatStatus
from app.models.trip import Trip, TripStatus
from app.services.seat_inventory import lock_seats_by_id, lock_seats_by_number, lock_trip, set_seat_status

logger = logging.getLogger(__name__)


def normalize_seat_numbers(seat_numbers: Sequence[str]) -> List[str]:
    cleaned = [str(s).strip().upper() for s in seat_numbers or []]
    if not cleaned:
        raise ValidationError("At least one seat must be selected", field="seat_numbers")
    if len(cleaned) > settings.MAX_SEATS_PER_BOOKING:
        raise ValidationError(
            f"Maximum {settings.MAX_SEATS_PER_BOOKING} seats per booking",
            field="seat_numbers"
        )
    if any(not s for s in cleaned):
        raise ValidationError("Seat numbers must be non-empty", field="seat_numbers")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Duplicate seat numbers not allowed", field="seat_numbers")
    return cleaned


def ensure_trip_bookable(trip: Trip, now: datetime) -> None:
    if trip.status != TripStatus.SCHEDULED:
        raise BusinessRuleError(
            f"Trip is not available for booking. Current status: {trip.status.value}",
            code="TRIP_NOT_BOOKABLE",
            details={"trip_status": trip.status.value}
        )
    if now >= trip.last_booking_time:
        raise BookingDeadlineError()


async def reclaim_expired_locks(
    session: AsyncSession,
    trip_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None
) -> int:
    """
    Delete expired lock placeholders and put their reserved seats back on
    sale. Must run inside a transaction.
    """
    now = now or utcnow()
    stmt = (
        select(Booking)
        .where(
            Booking.lock_expires_at.is_not(None),
            Booking.lock_expires_at <= now,
            Booking.status == BookingStatus.PENDING,
        )
        .options(selectinload(Booking.details))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if trip_id is not None:
        stmt = stmt.where(Booking.trip_id == trip_id)
    expired = (await session.execute(stmt)).scalars().all()

    for lock in expired:
        seats = await lock_seats_by_id(session, [d.seat_id for d in lock.details])
        set_seat_status([s for s in seats if s.status == SeatStatus.RESERVED], SeatStatus.AVAILABLE)
        await session.delete(lock)

    if expired:
        await session.flush()
        logger.info(f"Reclaimed {len(expired)} expired seat locks")
    return len(expired)


async def own_live_locks(
    session: AsyncSession,
    user_id: uuid.UUID,
    trip_id: uuid.UUID,
    now: datetime
) -> List[Booking]:
    result = await session.execute(
        select(Booking)
        .where(
            Booking.user_id == user_id,
            Booking.trip_id == trip_id,
            Booking.status == BookingStatus.PENDING,
            Booking.lock_expires_at > now,
        )
        .options(selectinload(Booking.details))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def detach_seats_from_locks(
    session: AsyncSession,
    locks: Sequence[Booking],
    seat_ids: Sequence[uuid.UUID]
) -> None:
    """Move seats out of the caller's own locks; emptied locks are deleted"""
    wanted = set(seat_ids)
    for lock in locks:
        for detail in [d for d in lock.details if d.seat_id in wanted]:
            lock.details.remove(detail)
        if not lock.details:
            await session.delete(lock)
    await session.flush()


class SeatLockManager:
    """
    Short-lived seat holds ahead of booking creation
    """

    def __init__(self, db_manager: DatabaseManager = db_manager, cache: ListCache = list_cache):
        self.db_manager = db_manager
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def lock_seats(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        trip_id: uuid.UUID,
        seat_numbers: Sequence[str],
        lock_duration: int = settings.SEAT_LOCK_DEFAULT_SECONDS
    ) -> Dict[str, Any]:
        if not settings.SEAT_LOCK_MIN_SECONDS <= lock_duration <= settings.SEAT_LOCK_MAX_SECONDS:
            raise ValidationError(
                f"Lock duration must be between {settings.SEAT_LOCK_MIN_SECONDS} "
                f"and {settings.SEAT_LOCK_MAX_SECONDS} seconds",
                field="lock_duration"
            )
        seat_numbers = normalize_seat_numbers(seat_numbers)

        trip = await session.get(Trip, trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        ensure_trip_bookable(trip, utcnow())

        async with track_operation("lock_seats"):
            async with self.db_manager.transaction(session):
                now = utcnow()
                trip = await lock_trip(session, trip_id)
                ensure_trip_bookable(trip, now)
                await reclaim_expired_locks(session, trip_id, now)

                seats = await lock_seats_by_number(session, trip_id, seat_numbers)
                found = {seat.seat_number: seat for seat in seats}
                missing = [n for n in seat_numbers if n not in found]
                if missing:
                    raise NotFoundError("Seat", ", ".join(missing))

                own_locks = await own_live_locks(session, principal.id, trip_id, now)
                owned_seat_ids = {d.seat_id for lock in own_locks for d in lock.details}

                taken = [
                    n for n in seat_numbers
                    if found[n].status in (SeatStatus.BOOKED, SeatStatus.BLOCKED)
                ]
                if taken:
                    raise SeatUnavailableError(taken)
                contested = [
                    n for n in seat_numbers
                    if found[n].status == SeatStatus.RESERVED and found[n].id not in owned_seat_ids
                ]
                if contested:
                    raise SeatLockConflictError(contested)

                requested_ids = {found[n].id for n in seat_numbers}
                expires_at = now + timedelta(seconds=lock_duration)

                same_set = next(
                    (lock for lock in own_locks if {d.seat_id for d in lock.details} == requested_ids),
                    None
                )
                if same_set is not None:
                    same_set.lock_expires_at = expires_at
                    lock = same_set
                    self.logger.info(f"Extended seat lock {lock.id} until {expires_at.isoformat()}")
                else:
                    await detach_seats_from_locks(session, own_locks, list(requested_ids))
                    lock = Booking(
                        user_id=principal.id,
                        trip_id=trip_id,
                        status=BookingStatus.PENDING,
                        total_price=0,
                        booking_date=now,
                        lock_expires_at=expires_at,
                        details=[
                            BookingDetail(seat_id=found[n].id, price=0) for n in seat_numbers
                        ],
                    )
                    session.add(lock)
                    set_seat_status([found[n] for n in seat_numbers], SeatStatus.RESERVED)
                    await session.flush()
                    self.logger.info(
                        f"User {principal.id} locked seats {', '.join(seat_numbers)} on trip {trip_id}"
                    )

        await self.cache.invalidate(TRIPS_NAMESPACE)
        return {
            "lock_id": lock.id,
            "trip_id": trip_id,
            "seats": sorted(seat_numbers, key=lambda n: found[n].position),
            "locked_at": now,
            "expires_at": expires_at,
            "lock_duration": lock_duration,
        }

    async def release_lock(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        lock_id: uuid.UUID
    ) -> Dict[str, Any]:
        async with self.db_manager.transaction(session):
            result = await session.execute(
                select(Booking)
                .where(Booking.id == lock_id)
                .options(selectinload(Booking.details))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            lock = result.scalar_one_or_none()
            if lock is None or not lock.is_lock:
                raise NotFoundError("Seat lock", lock_id)
            if lock.user_id != principal.id:
                raise AuthorizationError("You can only release your own seat locks")
            if lock.status != BookingStatus.PENDING:
                raise BusinessRuleError(
                    "Seat lock has already been processed",
                    code="LOCK_PROCESSED",
                    details={"lock_id": str(lock_id), "status": lock.status.value}
                )

            seats: List[Seat] = await lock_seats_by_id(session, [d.seat_id for d in lock.details])
            set_seat_status([s for s in seats if s.status == SeatStatus.RESERVED], SeatStatus.AVAILABLE)
            released = [s.seat_number for s in seats]
            await session.delete(lock)

        self.logger.info(f"User {principal.id} released seat lock {lock_id}")
        await self.cache.invalidate(TRIPS_NAMESPACE)
        return {"lock_id": lock_id, "released_seats": released}

    async def release_expired_locks(self, session: Optional[AsyncSession] = None) -> int:
        """Reclaim every expired lock across all trips"""
        if session is None:
            async with self.db_manager.atomic_transaction() as tx_session:
                count = await reclaim_expired_locks(tx_session)
        else:
            async with self.db_manager.transaction(session):
                count = await reclaim_expired_locks(session)

        record_swept_locks(count, "sweeper")
        if count:
            await self.cache.invalidate(TRIPS_NAMESPACE)
        return count


class LockSweeper:
    """
    Background task that periodically reclaims expired seat locks
    """

    def __init__(self, manager: SeatLockManager, interval: float = settings.SEAT_LOCK_SWEEP_INTERVAL_SECONDS):
        self.manager = manager
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        try:
            return await self.manager.release_expired_locks()
        except SQLAlchemyError as e:
            self.logger.error(f"Seat lock sweep failed: {e}", exc_info=True)
            return 0

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self._loop())
            self.logger.info(f"Seat lock sweeper started (every {self.interval}s)")

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            self.logger.info("Seat lock sweeper stopped")


seat_lock_manager = SeatLockManager()
lock_sweeper = LockSweeper(seat_lock_manager)
