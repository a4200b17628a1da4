"""
Booking status transition rules
"""

import pytest

from app.core.exceptions import BookingFinalizedError, InvalidTransitionError
from app.models.bill import BillStatus
from app.models.booking import BookingStatus
from app.models.trip import TripStatus
from app.services.booking_lifecycle import (
    BookingEvent,
    BookingSnapshot,
    SeatEffect,
    available_actions,
    transition,
)


def snapshot(status, trip_status=TripStatus.SCHEDULED, bill_status=BillStatus.UNPAID, covered=False):
    return BookingSnapshot(
        status=status, trip_status=trip_status, bill_status=bill_status, bill_covered=covered
    )


class TestConfirm:

    def test_user_confirm_requires_paid_bill(self):
        with pytest.raises(InvalidTransitionError):
            transition(snapshot(BookingStatus.PENDING), BookingEvent.CONFIRM)

    def test_user_confirm_with_paid_bill(self):
        outcome = transition(
            snapshot(BookingStatus.PENDING, bill_status=BillStatus.PAID), BookingEvent.CONFIRM
        )
        assert outcome.status == BookingStatus.CONFIRMED
        assert outcome.seat_effect == SeatEffect.BOOK

    def test_admin_confirm_skips_bill_check(self):
        outcome = transition(snapshot(BookingStatus.PENDING), BookingEvent.CONFIRM, admin=True)
        assert outcome.status == BookingStatus.CONFIRMED

    def test_confirm_requires_scheduled_trip(self):
        with pytest.raises(InvalidTransitionError):
            transition(
                snapshot(BookingStatus.PENDING, trip_status=TripStatus.IN_PROGRESS),
                BookingEvent.CONFIRM,
                admin=True
            )

    def test_confirm_twice_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            transition(snapshot(BookingStatus.CONFIRMED), BookingEvent.CONFIRM, admin=True)


class TestCancelAndComplete:

    def test_cancel_pending_cancels_unpaid_bill(self):
        outcome = transition(snapshot(BookingStatus.PENDING), BookingEvent.CANCEL)
        assert outcome.status == BookingStatus.CANCELLED
        assert outcome.seat_effect == SeatEffect.RELEASE
        assert outcome.bill_status == BillStatus.CANCELLED

    def test_cancel_confirmed_reopens_paid_bill(self):
        outcome = transition(
            snapshot(BookingStatus.CONFIRMED, bill_status=BillStatus.PAID), BookingEvent.CANCEL
        )
        assert outcome.bill_status == BillStatus.UNPAID

    def test_complete_requires_completed_trip(self):
        with pytest.raises(InvalidTransitionError):
            transition(snapshot(BookingStatus.CONFIRMED), BookingEvent.COMPLETE)

        outcome = transition(
            snapshot(BookingStatus.CONFIRMED, trip_status=TripStatus.COMPLETED),
            BookingEvent.COMPLETE
        )
        assert outcome.status == BookingStatus.COMPLETED
        assert outcome.seat_effect == SeatEffect.NONE

    def test_complete_from_pending_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            transition(
                snapshot(BookingStatus.PENDING, trip_status=TripStatus.COMPLETED),
                BookingEvent.COMPLETE
            )

    @pytest.mark.parametrize("terminal", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    @pytest.mark.parametrize("event", [BookingEvent.CONFIRM, BookingEvent.CANCEL, BookingEvent.COMPLETE])
    def test_terminal_bookings_are_immutable(self, terminal, event):
        with pytest.raises(BookingFinalizedError):
            transition(snapshot(terminal), event, admin=True)


class TestPaymentEvents:

    def test_covered_bill_confirms_booking(self):
        outcome = transition(snapshot(BookingStatus.PENDING, covered=True), BookingEvent.PAYMENT_CONFIRMED)
        assert outcome.status == BookingStatus.CONFIRMED
        assert outcome.bill_status == BillStatus.PAID
        assert outcome.seat_effect == SeatEffect.BOOK

    def test_partial_payment_leaves_booking_pending(self):
        outcome = transition(snapshot(BookingStatus.PENDING), BookingEvent.PAYMENT_CONFIRMED)
        assert outcome.status == BookingStatus.PENDING
        assert outcome.bill_status is None

    @pytest.mark.parametrize("trip_status", [TripStatus.CANCELLED, TripStatus.COMPLETED])
    def test_covered_bill_needs_scheduled_trip(self, trip_status):
        with pytest.raises(InvalidTransitionError):
            transition(
                snapshot(BookingStatus.PENDING, trip_status=trip_status, covered=True),
                BookingEvent.PAYMENT_CONFIRMED
            )

    def test_rejection_never_changes_booking(self):
        outcome = transition(snapshot(BookingStatus.CANCELLED), BookingEvent.PAYMENT_REJECTED)
        assert outcome.status == BookingStatus.CANCELLED
        assert outcome.seat_effect == SeatEffect.NONE


def test_available_actions():
    assert available_actions(snapshot(BookingStatus.PENDING)) == ["cancel"]
    assert available_actions(snapshot(BookingStatus.PENDING, bill_status=BillStatus.PAID)) == ["confirm", "cancel"]
    assert available_actions(
        snapshot(BookingStatus.CONFIRMED, trip_status=TripStatus.COMPLETED)
    ) == ["complete", "cancel"]
    assert available_actions(snapshot(BookingStatus.COMPLETED)) == []
