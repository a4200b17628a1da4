"""
Booking creation and booking reads
"""

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.cache import ListCache, list_cache, TRIPS_NAMESPACE
from app.core.database import DatabaseManager, db_manager
from app.core.exceptions import (
    AuthorizationError,
    BusinessRuleError,
    DuplicateBookingError,
    NotFoundError,
    SeatUnavailableError,
    ValidationError,
)
from app.core.metrics import track_operation
from app.core.security import CurrentUser
from app.models.base import utcnow
from app.models.bill import Bill, BillStatus
from app.models.booking import Booking, BookingDetail, BookingStatus, ACTIVE_BOOKING_STATUSES
from app.models.bus import BOOKABLE_BUS_STATUSES
from app.models.seat import Seat, SeatStatus
from app.models.trip import Trip
from app.services.booking_lifecycle import (
    available_actions,
    booking_load_options,
    load_booking,
    payment_summary,
    snapshot_of,
)
from app.services.seat_inventory import (
    lock_available_seats,
    lock_seats_by_id,
    lock_seats_by_number,
    lock_trip,
    set_seat_status,
)
from app.services.seat_locks import (
    detach_seats_from_locks,
    ensure_trip_bookable,
    normalize_seat_numbers,
    own_live_locks,
    reclaim_expired_locks,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class BookingService:
    """
    Creates bookings atomically and serves booking reads.

    Availability is checked twice: once up front for a friendly error, and
    again under row locks inside the transaction, which is the check that
    counts.
    """

    def __init__(self, db_manager: DatabaseManager = db_manager, cache: ListCache = list_cache):
        self.db_manager = db_manager
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def create_booking(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        trip_id: uuid.UUID,
        seat_numbers: Optional[Sequence[str]] = None,
        seats_count: Optional[int] = None
    ) -> Booking:
        if (seat_numbers is None) == (seats_count is None):
            raise ValidationError("Provide either seat_numbers or seats_count")
        if seat_numbers is not None:
            seat_numbers = normalize_seat_numbers(seat_numbers)
            requested = len(seat_numbers)
        else:
            requested = seats_count
            if requested > settings.MAX_SEATS_PER_BOOKING:
                raise ValidationError(
                    f"Maximum {settings.MAX_SEATS_PER_BOOKING} seats per booking",
                    field="seats_count"
                )
            if requested < 1:
                raise ValidationError("At least one seat must be selected", field="seats_count")

        await self._prevalidate(session, principal, trip_id, requested)

        async with track_operation("create_booking"):
            async with self.db_manager.transaction(session):
                now = utcnow()
                trip = await lock_trip(session, trip_id)
                ensure_trip_bookable(trip, now)
                await reclaim_expired_locks(session, trip_id, now)

                existing = await self._active_booking(session, principal.id, trip_id)
                if existing is not None:
                    raise DuplicateBookingError(existing)

                own_locks = await own_live_locks(session, principal.id, trip_id, now)
                if seat_numbers is not None:
                    seats = await self._claim_requested(session, trip_id, seat_numbers, own_locks)
                else:
                    seats = await self._claim_count(session, trip_id, requested, own_locks)

                price = Decimal(trip.price).quantize(CENTS, rounding=ROUND_HALF_UP)
                total = (price * len(seats)).quantize(CENTS, rounding=ROUND_HALF_UP)
                booking = Booking(
                    user_id=principal.id,
                    trip_id=trip_id,
                    status=BookingStatus.PENDING,
                    total_price=total,
                    booking_date=now,
                    details=[BookingDetail(seat_id=seat.id, price=price) for seat in seats],
                    bill=Bill(amount=total, status=BillStatus.UNPAID),
                )
                session.add(booking)
                set_seat_status(seats, SeatStatus.BOOKED)
                await session.flush()
                booking_id = booking.id

        self.logger.info(
            f"Booking {booking_id} created for user {principal.id}: "
            f"{', '.join(s.seat_number for s in seats)} on trip {trip_id} ({total})"
        )
        await self.cache.invalidate(TRIPS_NAMESPACE)
        return await load_booking(session, booking_id)

    async def _prevalidate(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        trip_id: uuid.UUID,
        requested: int
    ) -> None:
        result = await session.execute(
            select(Trip).where(Trip.id == trip_id).options(selectinload(Trip.bus))
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise NotFoundError("Trip", trip_id)

        now = utcnow()
        ensure_trip_bookable(trip, now)
        if now >= trip.departure_time:
            raise BusinessRuleError(
                "Cannot book a trip that has already departed",
                code="TRIP_DEPARTED"
            )
        if trip.bus.status not in BOOKABLE_BUS_STATUSES:
            raise BusinessRuleError(
                f"Bus is not available for booking. Current status: {trip.bus.status.value}",
                code="BUS_UNAVAILABLE"
            )

        available = await session.scalar(
            select(func.count(Seat.id)).where(
                Seat.trip_id == trip_id, Seat.status == SeatStatus.AVAILABLE
            )
        )
        own_locked = sum(
            len(lock.details) for lock in await own_live_locks(session, principal.id, trip_id, now)
        )
        if available + own_locked < requested:
            raise BusinessRuleError(
                f"Only {available + own_locked} seats are available. Requested: {requested}",
                code="INSUFFICIENT_SEATS",
                details={"available": available + own_locked, "requested": requested}
            )

        existing = await self._active_booking(session, principal.id, trip_id)
        if existing is not None:
            raise DuplicateBookingError(existing)

    async def _active_booking(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        trip_id: uuid.UUID
    ) -> Optional[uuid.UUID]:
        return await session.scalar(
            select(Booking.id).where(
                Booking.user_id == user_id,
                Booking.trip_id == trip_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.lock_expires_at.is_(None),
            ).limit(1)
        )

    async def _claim_requested(
        self,
        session: AsyncSession,
        trip_id: uuid.UUID,
        seat_numbers: Sequence[str],
        own_locks: Sequence[Booking]
    ) -> List[Seat]:
        seats = await lock_seats_by_number(session, trip_id, seat_numbers)
        found = {seat.seat_number: seat for seat in seats}
        missing = [n for n in seat_numbers if n not in found]
        if missing:
            raise NotFoundError("Seat", ", ".join(missing))

        owned = {d.seat_id for lock in own_locks for d in lock.details}
        unavailable = [
            n for n in seat_numbers
            if not (
                found[n].status == SeatStatus.AVAILABLE
                or (found[n].status == SeatStatus.RESERVED and found[n].id in owned)
            )
        ]
        if unavailable:
            raise SeatUnavailableError(unavailable)

        await detach_seats_from_locks(session, own_locks, [seat.id for seat in seats])
        return seats

    async def _claim_count(
        self,
        session: AsyncSession,
        trip_id: uuid.UUID,
        requested: int,
        own_locks: Sequence[Booking]
    ) -> List[Seat]:
        """The caller's own locked seats first, then the lowest available ones"""
        held = await lock_seats_by_id(session, [d.seat_id for lock in own_locks for d in lock.details])
        held = [seat for seat in held if seat.status == SeatStatus.RESERVED][:requested]

        seats = list(held)
        if len(seats) < requested:
            seats.extend(await lock_available_seats(session, trip_id, requested - len(seats)))
        if len(seats) < requested:
            raise SeatUnavailableError(
                [],
                message=f"Only {len(seats)} seats are available. Requested: {requested}"
            )

        await detach_seats_from_locks(session, own_locks, [seat.id for seat in held])
        return sorted(seats, key=lambda s: s.position)

    async def get_booking(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        booking_id: uuid.UUID
    ) -> Booking:
        booking = await load_booking(session, booking_id)
        if not principal.is_admin and booking.user_id != principal.id:
            raise AuthorizationError("You can only view your own bookings")
        return booking

    async def list_bookings(
        self,
        session: AsyncSession,
        *,
        user_id: Optional[uuid.UUID] = None,
        trip_id: Optional[uuid.UUID] = None,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Booking], int]:
        """Real bookings (seat-lock placeholders excluded), newest first"""
        filters = [Booking.lock_expires_at.is_(None)]
        if user_id is not None:
            filters.append(Booking.user_id == user_id)
        if trip_id is not None:
            filters.append(Booking.trip_id == trip_id)
        if status is not None:
            filters.append(Booking.status == status)

        total = await session.scalar(select(func.count(Booking.id)).where(*filters))
        result = await session.execute(
            select(Booking)
            .where(*filters)
            .options(*booking_load_options())
            .order_by(Booking.booking_date.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_user_bookings(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Booking], int]:
        return await self.list_bookings(
            session, user_id=principal.id, status=status, page=page, limit=limit
        )

    async def get_status(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        booking_id: uuid.UUID
    ) -> Dict[str, Any]:
        booking = await self.get_booking(session, principal, booking_id)
        snapshot = snapshot_of(booking, booking.trip)
        return {
            "booking_id": booking.id,
            "reference": booking.reference,
            "status": booking.status.value,
            "available_actions": available_actions(snapshot),
            "payment": payment_summary(booking.bill) if booking.bill else None,
            "bill_status": booking.bill.status.value if booking.bill else None,
            "trip_status": booking.trip.status.value,
            "departure_time": booking.trip.departure_time,
            "last_booking_time": booking.trip.last_booking_time,
            "confirmed_at": booking.confirmed_at,
            "cancelled_at": booking.cancelled_at,
            "completed_at": booking.completed_at,
        }


booking_service = BookingService()
