"""
Booking status transitions

`transition` is the single authority on which status changes are legal and
what they do to seats and the bill. StatusGovernor loads state, asks it, and
applies the answer inside one transaction.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.cache import ListCache, list_cache, TRIPS_NAMESPACE
from app.core.database import DatabaseManager, db_manager
from app.core.exceptions import (
    AuthorizationError,
    BookingFinalizedError,
    BusinessRuleError,
    InvalidTransitionError,
    NotFoundError,
)
from app.core.metrics import record_transition
from app.core.security import CurrentUser
from app.models.bill import Bill, BillStatus
from app.models.booking import (
    Booking,
    BookingDetail,
    BookingStatus,
    TERMINAL_BOOKING_STATUSES,
)
from app.models.payment import Payment, PaymentStatus
from app.models.base import utcnow
from app.models.seat import SeatStatus
from app.models.trip import Trip, TripStatus
from app.services.seat_inventory import lock_seats_by_id, lock_trip, set_seat_status

logger = logging.getLogger(__name__)


class BookingEvent(str, enum.Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"


class SeatEffect(str, enum.Enum):
    NONE = "none"
    BOOK = "book"
    RELEASE = "release"


@dataclass(frozen=True)
class BookingSnapshot:
    """What the transition rules need to know about a booking"""
    status: BookingStatus
    trip_status: TripStatus
    bill_status: Optional[BillStatus] = None
    bill_covered: bool = False


@dataclass(frozen=True)
class Transition:
    status: BookingStatus
    seat_effect: SeatEffect = SeatEffect.NONE
    bill_status: Optional[BillStatus] = None


EVENT_FOR_STATUS = {
    BookingStatus.CONFIRMED: BookingEvent.CONFIRM,
    BookingStatus.CANCELLED: BookingEvent.CANCEL,
    BookingStatus.COMPLETED: BookingEvent.COMPLETE,
}


def transition(snapshot: BookingSnapshot, event: BookingEvent, *, admin: bool = False) -> Transition:
    """
    Decide the outcome of `event` on a booking.

    Raises BookingFinalizedError for cancelled/completed bookings and
    InvalidTransitionError for any other move the lifecycle does not allow.
    """
    current = snapshot.status

    if event == BookingEvent.PAYMENT_REJECTED:
        return Transition(status=current)

    if current in TERMINAL_BOOKING_STATUSES:
        raise BookingFinalizedError(None, current.value)

    if event == BookingEvent.CONFIRM:
        if current != BookingStatus.PENDING:
            raise InvalidTransitionError(current.value, BookingStatus.CONFIRMED.value)
        if snapshot.trip_status != TripStatus.SCHEDULED:
            raise InvalidTransitionError(
                current.value,
                BookingStatus.CONFIRMED.value,
                f"trip is {snapshot.trip_status.value}"
            )
        if not admin:
            if snapshot.bill_status is None:
                raise InvalidTransitionError(
                    current.value, BookingStatus.CONFIRMED.value, "no bill found for this booking"
                )
            if snapshot.bill_status != BillStatus.PAID:
                raise InvalidTransitionError(
                    current.value, BookingStatus.CONFIRMED.value, "bill is not paid"
                )
        return Transition(status=BookingStatus.CONFIRMED, seat_effect=SeatEffect.BOOK)

    if event == BookingEvent.COMPLETE:
        if current != BookingStatus.CONFIRMED:
            raise InvalidTransitionError(current.value, BookingStatus.COMPLETED.value)
        if snapshot.trip_status != TripStatus.COMPLETED:
            raise InvalidTransitionError(
                current.value, BookingStatus.COMPLETED.value, "trip is not completed"
            )
        return Transition(status=BookingStatus.COMPLETED)

    if event == BookingEvent.CANCEL:
        bill_status = None
        if snapshot.bill_status == BillStatus.PAID:
            bill_status = BillStatus.UNPAID
        elif snapshot.bill_status == BillStatus.UNPAID:
            bill_status = BillStatus.CANCELLED
        return Transition(
            status=BookingStatus.CANCELLED,
            seat_effect=SeatEffect.RELEASE,
            bill_status=bill_status
        )

    if event == BookingEvent.PAYMENT_CONFIRMED:
        if not snapshot.bill_covered:
            return Transition(status=current)
        if current == BookingStatus.PENDING and snapshot.trip_status != TripStatus.SCHEDULED:
            raise InvalidTransitionError(
                current.value,
                BookingStatus.CONFIRMED.value,
                f"trip is {snapshot.trip_status.value}"
            )
        return Transition(
            status=BookingStatus.CONFIRMED,
            seat_effect=SeatEffect.BOOK,
            bill_status=BillStatus.PAID
        )

    raise InvalidTransitionError(current.value, str(event))


def available_actions(snapshot: BookingSnapshot) -> List[str]:
    if snapshot.status == BookingStatus.PENDING:
        actions = ["confirm"] if snapshot.bill_status == BillStatus.PAID else []
        return actions + ["cancel"]
    if snapshot.status == BookingStatus.CONFIRMED:
        actions = ["complete"] if snapshot.trip_status == TripStatus.COMPLETED else []
        return actions + ["cancel"]
    return []


def successful_total(payments) -> Decimal:
    return sum(
        (Decimal(p.amount) for p in payments if p.status == PaymentStatus.SUCCESSFUL),
        Decimal("0.00")
    )


def payment_summary(bill: Bill) -> dict:
    """Totals over a bill; only successful payments count towards what is paid"""
    total_amount = Decimal(bill.amount)
    total_paid = successful_total(bill.payments)
    return {
        "total_amount": total_amount,
        "total_paid": total_paid,
        "remaining_balance": max(total_amount - total_paid, Decimal("0.00")),
        "is_fully_paid": total_paid >= total_amount,
    }


def snapshot_of(booking: Booking, trip: Trip) -> BookingSnapshot:
    bill = booking.bill
    covered = False
    if bill is not None:
        covered = successful_total(bill.payments) >= Decimal(bill.amount)
    return BookingSnapshot(
        status=booking.status,
        trip_status=trip.status,
        bill_status=bill.status if bill is not None else None,
        bill_covered=covered,
    )


def booking_load_options():
    return (
        selectinload(Booking.details).selectinload(BookingDetail.seat),
        selectinload(Booking.bill).selectinload(Bill.payments),
        selectinload(Booking.trip).selectinload(Trip.route),
    )


async def load_booking(
    session: AsyncSession,
    booking_id: uuid.UUID,
    for_update: bool = False
) -> Booking:
    """Booking with details, bill, payments and trip; seat-lock placeholders are excluded"""
    stmt = (
        select(Booking)
        .where(Booking.id == booking_id, Booking.lock_expires_at.is_(None))
        .options(*booking_load_options())
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking", booking_id)
    return booking


class StatusGovernor:
    """
    Applies lifecycle decisions to bookings, seats and bills
    """

    def __init__(self, db_manager: DatabaseManager = db_manager, cache: ListCache = list_cache):
        self.db_manager = db_manager
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def apply(
        self,
        session: AsyncSession,
        booking: Booking,
        event: BookingEvent,
        *,
        admin: bool = False,
        reason: Optional[str] = None
    ) -> Transition:
        """
        Decide and apply one event. Must run inside a transaction with the
        booking loaded through load_booking(for_update=True).
        """
        trip = await lock_trip(session, booking.trip_id)
        snapshot = snapshot_of(booking, trip)
        try:
            outcome = transition(snapshot, event, admin=admin)
        except BookingFinalizedError:
            raise BookingFinalizedError(booking.id, booking.status.value)

        now = utcnow()
        previous = booking.status

        if outcome.seat_effect != SeatEffect.NONE:
            seats = await lock_seats_by_id(session, [d.seat_id for d in booking.details])
            target = SeatStatus.BOOKED if outcome.seat_effect == SeatEffect.BOOK else SeatStatus.AVAILABLE
            set_seat_status(seats, target)

        if outcome.bill_status is not None and booking.bill is not None:
            booking.bill.status = outcome.bill_status

        if outcome.status != previous:
            booking.status = outcome.status
            if outcome.status == BookingStatus.CONFIRMED:
                booking.confirmed_at = now
            elif outcome.status == BookingStatus.CANCELLED:
                booking.cancelled_at = now
                booking.cancellation_reason = reason
            elif outcome.status == BookingStatus.COMPLETED:
                booking.completed_at = now
            record_transition(previous.value, outcome.status.value)
            self.logger.info(
                f"Booking {booking.id} {previous.value} -> {outcome.status.value} ({event.value})"
            )

        return outcome

    async def update_status(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        booking_id: uuid.UUID,
        status: BookingStatus,
        reason: Optional[str] = None,
        *,
        admin: bool = False
    ) -> Booking:
        """
        Move a booking to `status`. Users act on their own bookings; the admin
        path may act on any booking and may confirm without a paid bill.
        """
        event = EVENT_FOR_STATUS.get(BookingStatus(status))
        async with self.db_manager.transaction(session):
            booking = await load_booking(session, booking_id, for_update=True)
            if not admin and booking.user_id != principal.id:
                raise AuthorizationError("You can only update your own bookings")
            if event is None:
                if booking.status in TERMINAL_BOOKING_STATUSES:
                    raise BookingFinalizedError(booking.id, booking.status.value)
                raise InvalidTransitionError(booking.status.value, BookingStatus(status).value)
            await self.apply(session, booking, event, admin=admin, reason=reason)

        await self.cache.invalidate(TRIPS_NAMESPACE)
        return await load_booking(session, booking_id)

    async def delete_booking(self, session: AsyncSession, booking_id: uuid.UUID) -> None:
        """
        Remove a booking (admin). Completed bookings and bookings with payment
        history are kept; seats go back on sale only if this booking still
        holds them.
        """
        async with self.db_manager.transaction(session):
            booking = await load_booking(session, booking_id, for_update=True)
            if booking.status == BookingStatus.COMPLETED:
                raise BusinessRuleError(
                    "Completed bookings cannot be deleted",
                    code="BOOKING_FINALIZED",
                    details={"booking_id": str(booking.id)}
                )
            if booking.bill is not None:
                payment_count = await session.scalar(
                    select(func.count(Payment.id)).where(Payment.bill_id == booking.bill.id)
                )
                if payment_count:
                    raise BusinessRuleError(
                        "Bookings with payment history cannot be deleted; cancel instead",
                        code="PAYMENT_HISTORY_EXISTS",
                        details={"booking_id": str(booking.id), "payments": payment_count}
                    )

            if booking.status != BookingStatus.CANCELLED:
                seats = await lock_seats_by_id(session, [d.seat_id for d in booking.details])
                set_seat_status(seats, SeatStatus.AVAILABLE)

            await session.delete(booking)
            self.logger.info(f"Booking {booking_id} deleted ({booking.status.value})")

        await self.cache.invalidate(TRIPS_NAMESPACE)


status_governor = StatusGovernor()
