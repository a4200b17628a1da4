"""
Temporary seat locks: conflicts, ownership, extension and expiry
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    SeatLockConflictError,
    SeatUnavailableError,
    ValidationError,
)
from app.core.database import async_session, db_manager
from app.core.security import CurrentUser, ROLE_USER
from app.models.base import utcnow
from app.models.booking import Booking
from app.models.seat import Seat, SeatStatus
from app.services.seat_inventory import seat_inventory
from app.services.seat_locks import LockSweeper, seat_lock_manager
from app.services.booking_service import booking_service


async def seat_statuses(session, trip_id):
    seats = await seat_inventory.list_seats(session, trip_id)
    return {seat.seat_number: seat.status for seat in seats}


async def expire_lock(session, lock_id):
    async with db_manager.transaction(session):
        await session.execute(
            update(Booking)
            .where(Booking.id == lock_id)
            .values(lock_expires_at=utcnow() - timedelta(seconds=1))
        )


class TestLockSeats:

    @pytest.mark.asyncio
    async def test_lock_reserves_seats(self, db_session, trip, user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["a3", "A4"], 120)

        assert lock["seats"] == ["A3", "A4"]
        assert lock["lock_duration"] == 120
        assert lock["expires_at"] - lock["locked_at"] == timedelta(seconds=120)
        statuses = await seat_statuses(db_session, trip.id)
        assert statuses["A3"] == SeatStatus.RESERVED
        assert statuses["A4"] == SeatStatus.RESERVED
        assert statuses["A1"] == SeatStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_conflict_until_lock_expires(self, db_session, trip, user, other_user):
        """A second user is refused while the lease is live and succeeds after it lapses"""
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A3", "A4"], 120)

        with pytest.raises(SeatLockConflictError) as exc_info:
            await seat_lock_manager.lock_seats(db_session, other_user, trip.id, ["A3"], 120)
        assert "A3" in exc_info.value.message
        assert exc_info.value.code == "SEATS_LOCKED"

        await expire_lock(db_session, lock["lock_id"])
        second = await seat_lock_manager.lock_seats(db_session, other_user, trip.id, ["A3"], 120)

        assert second["seats"] == ["A3"]
        statuses = await seat_statuses(db_session, trip.id)
        assert statuses["A3"] == SeatStatus.RESERVED
        assert statuses["A4"] == SeatStatus.AVAILABLE
        remaining = await db_session.scalar(select(Booking).where(Booking.id == lock["lock_id"]))
        assert remaining is None

    @pytest.mark.asyncio
    async def test_relocking_same_seats_extends_lease(self, db_session, trip, user):
        first = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1", "A2"], 60)
        second = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A2", "A1"], 300)

        assert second["lock_id"] == first["lock_id"]
        assert second["expires_at"] > first["expires_at"]

    @pytest.mark.asyncio
    async def test_relocking_subset_moves_seats(self, db_session, trip, user):
        first = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1", "A2"], 60)
        second = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A2"], 60)

        assert second["lock_id"] != first["lock_id"]
        statuses = await seat_statuses(db_session, trip.id)
        # A1 stays in the first lock, A2 moved to the second
        assert statuses["A1"] == SeatStatus.RESERVED
        assert statuses["A2"] == SeatStatus.RESERVED

    @pytest.mark.asyncio
    async def test_booked_seats_cannot_be_locked(self, db_session, trip, user, other_user):
        await booking_service.create_booking(db_session, user, trip.id, seat_numbers=["A1"])

        with pytest.raises(SeatUnavailableError):
            await seat_lock_manager.lock_seats(db_session, other_user, trip.id, ["A1"], 120)

    @pytest.mark.asyncio
    async def test_unknown_seat(self, db_session, trip, user):
        with pytest.raises(NotFoundError):
            await seat_lock_manager.lock_seats(db_session, user, trip.id, ["Z9"], 120)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [29, 301])
    async def test_duration_bounds(self, db_session, trip, user, duration):
        with pytest.raises(ValidationError):
            await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1"], duration)


class TestReleaseLock:

    @pytest.mark.asyncio
    async def test_owner_releases(self, db_session, trip, user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1", "A2"], 120)
        result = await seat_lock_manager.release_lock(db_session, user, lock["lock_id"])

        assert sorted(result["released_seats"]) == ["A1", "A2"]
        statuses = await seat_statuses(db_session, trip.id)
        assert all(status == SeatStatus.AVAILABLE for status in statuses.values())

    @pytest.mark.asyncio
    async def test_other_user_cannot_release(self, db_session, trip, user, other_user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1"], 120)

        with pytest.raises(AuthorizationError):
            await seat_lock_manager.release_lock(db_session, other_user, lock["lock_id"])

    @pytest.mark.asyncio
    async def test_booking_id_is_not_a_lock(self, db_session, trip, user):
        booking = await booking_service.create_booking(db_session, user, trip.id, seats_count=1)

        with pytest.raises(NotFoundError):
            await seat_lock_manager.release_lock(db_session, user, booking.id)


class TestExpiry:

    @pytest.mark.asyncio
    async def test_booking_absorbs_own_lock(self, db_session, trip, user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A3", "A4"], 120)
        booking = await booking_service.create_booking(db_session, user, trip.id, seat_numbers=["A3", "A4"])

        assert sorted(d.seat.seat_number for d in booking.details) == ["A3", "A4"]
        remaining = await db_session.scalar(select(Booking).where(Booking.id == lock["lock_id"]))
        assert remaining is None
        statuses = await seat_statuses(db_session, trip.id)
        assert statuses["A3"] == SeatStatus.BOOKED

    @pytest.mark.asyncio
    async def test_count_booking_takes_own_locked_seats_first(self, db_session, trip, user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1", "A2"], 120)
        booking = await booking_service.create_booking(db_session, user, trip.id, seats_count=2)

        assert sorted(d.seat.seat_number for d in booking.details) == ["A1", "A2"]
        assert await db_session.scalar(select(Booking.id).where(Booking.id == lock["lock_id"])) is None
        statuses = await seat_statuses(db_session, trip.id)
        assert statuses == {
            "A1": SeatStatus.BOOKED,
            "A2": SeatStatus.BOOKED,
            "A3": SeatStatus.AVAILABLE,
            "A4": SeatStatus.AVAILABLE,
        }

    @pytest.mark.asyncio
    async def test_count_booking_tops_up_own_lock(self, db_session, trip, user):
        await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A3", "A4"], 120)
        booking = await booking_service.create_booking(db_session, user, trip.id, seats_count=3)

        assert sorted(d.seat.seat_number for d in booking.details) == ["A1", "A3", "A4"]
        statuses = await seat_statuses(db_session, trip.id)
        assert statuses["A2"] == SeatStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_count_booking_keeps_unused_locked_seats(self, db_session, trip, user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A2", "A3"], 120)
        booking = await booking_service.create_booking(db_session, user, trip.id, seats_count=1)

        assert [d.seat.seat_number for d in booking.details] == ["A2"]
        assert await db_session.scalar(select(Booking.id).where(Booking.id == lock["lock_id"])) is not None
        statuses = await seat_statuses(db_session, trip.id)
        assert statuses["A2"] == SeatStatus.BOOKED
        assert statuses["A3"] == SeatStatus.RESERVED
        assert statuses["A1"] == SeatStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_sweeper_reclaims_expired_locks(self, db_session, trip, user):
        lock = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A1", "A2"], 120)
        live = await seat_lock_manager.lock_seats(db_session, user, trip.id, ["A3"], 120)
        await expire_lock(db_session, lock["lock_id"])

        sweeper = LockSweeper(seat_lock_manager, interval=60)
        assert await sweeper.run_once() == 1

        statuses = await seat_statuses(db_session, trip.id)
        assert statuses["A1"] == SeatStatus.AVAILABLE
        assert statuses["A2"] == SeatStatus.AVAILABLE
        assert statuses["A3"] == SeatStatus.RESERVED
        assert await db_session.scalar(select(Booking.id).where(Booking.id == live["lock_id"])) is not None

    @pytest.mark.asyncio
    async def test_sweeper_start_and_stop(self):
        sweeper = LockSweeper(seat_lock_manager, interval=3600)
        sweeper.start()
        assert sweeper.running
        await sweeper.stop()
        assert not sweeper.running


class TestContention:

    @pytest.mark.asyncio
    async def test_simultaneous_locks_on_one_seat(self, trip):
        """Exactly one of several users locking the same seat at once gets it"""
        users = [CurrentUser(id=uuid4(), role=ROLE_USER) for _ in range(4)]

        async def attempt(principal):
            async with async_session() as session:
                return await seat_lock_manager.lock_seats(session, principal, trip.id, ["A2"], 120)

        results = await asyncio.gather(*[attempt(u) for u in users], return_exceptions=True)
        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]

        assert len(successes) == 1
        assert all(isinstance(f, SeatLockConflictError) for f in failures)

        async with async_session() as session:
            locks = (await session.scalars(
                select(Booking).where(Booking.trip_id == trip.id, Booking.lock_expires_at.is_not(None))
            )).all()
            statuses = await seat_statuses(session, trip.id)
        assert [lock.id for lock in locks] == [successes[0]["lock_id"]]
        assert statuses["A2"] == SeatStatus.RESERVED
