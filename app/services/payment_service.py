"""
Payment submission and admin payment decisions
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.cache import ListCache, list_cache, TRIPS_NAMESPACE
from app.core.database import DatabaseManager, db_manager
from app.core.exceptions import (
    AuthorizationError,
    BillAlreadyPaidError,
    BookingFinalizedError,
    BusinessRuleError,
    NotFoundError,
    PaymentError,
    PaymentPendingError,
)
from app.core.metrics import record_payment, track_operation
from app.core.security import CurrentUser
from app.models.base import utcnow
from app.models.bill import Bill, BillStatus
from app.models.booking import Booking, TERMINAL_BOOKING_STATUSES
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.services.booking_lifecycle import (
    BookingEvent,
    StatusGovernor,
    load_booking,
    payment_summary,
    status_governor,
    successful_total,
)
from app.services.payment_gateway import PaymentGateway
from app.services.payment_methods import strategy_for
from app.services.receipt_storage import ReceiptStorage, validate_receipt

logger = logging.getLogger(__name__)


@dataclass
class ReceiptUpload:
    content: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


def ensure_payable(booking: Booking) -> Bill:
    """Rules every new payment attempt must pass"""
    if booking.status in TERMINAL_BOOKING_STATUSES:
        raise BookingFinalizedError(booking.id, booking.status.value)
    bill = booking.bill
    if bill is None:
        raise BusinessRuleError("No bill found for this booking", code="BILL_MISSING")
    if bill.status == BillStatus.PAID:
        raise BillAlreadyPaidError(bill.id)
    if bill.status == BillStatus.CANCELLED:
        raise BusinessRuleError("Bill has been cancelled", code="BILL_CANCELLED")
    pending = next((p for p in bill.payments if p.status == PaymentStatus.PENDING), None)
    if pending is not None:
        raise PaymentPendingError(pending.id)
    return bill


class PaymentService:
    """
    Records payment attempts against bills.

    A submission never changes the booking or the bill; it only leaves a
    pending payment for an admin to confirm or reject.
    """

    def __init__(
        self,
        db_manager: DatabaseManager = db_manager,
        governor: StatusGovernor = status_governor,
        cache: ListCache = list_cache
    ):
        self.db_manager = db_manager
        self.governor = governor
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    async def submit_payment(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        booking_id: uuid.UUID,
        method: PaymentMethod,
        gateway: PaymentGateway,
        storage: Optional[ReceiptStorage] = None,
        receipt: Optional[ReceiptUpload] = None
    ) -> Payment:
        method = PaymentMethod(method)
        strategy = strategy_for(method)

        booking = await load_booking(session, booking_id)
        if booking.user_id != principal.id:
            raise AuthorizationError("You can only pay for your own bookings")
        ensure_payable(booking)

        if receipt is not None and storage is not None:
            validate_receipt(receipt.content, receipt.content_type)

        async with track_operation("submit_payment"):
            async with self.db_manager.transaction(session):
                booking = await load_booking(session, booking_id, for_update=True)
                if booking.bill is not None:
                    # Serializes concurrent submissions on the same bill
                    await session.execute(
                        select(Bill.id).where(Bill.id == booking.bill.id).with_for_update()
                    )
                bill = ensure_payable(booking)

                payment = Payment(
                    bill_id=bill.id,
                    amount=strategy.compute_amount(booking.total_price),
                    method=method,
                    status=PaymentStatus.PENDING,
                )
                session.add(payment)
                await session.flush()
                payment_id = payment.id
                amount = payment.amount

            self.logger.info(f"Payment {payment_id} of {amount} ({method.value}) opened for booking {booking_id}")

            # The receipt is only written once the attempt is on record
            receipt_url = None
            charge = None
            try:
                if receipt is not None and storage is not None:
                    receipt_url = await storage.store(receipt.content, receipt.content_type, receipt.filename)
                charge = await gateway.attempt_charge(amount, method)
            except Exception as e:
                self.logger.error(f"Processing failed for payment {payment_id}: {e}", exc_info=True)

            async with self.db_manager.transaction(session):
                result = await session.execute(
                    select(Payment)
                    .where(Payment.id == payment_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                payment = result.scalar_one()
                payment.receipt_image = receipt_url
                if charge is not None and charge.success:
                    payment.transaction_id = charge.transaction_id
                    payment.paid_at = utcnow()
                else:
                    payment.status = PaymentStatus.FAILED

            if payment.status == PaymentStatus.FAILED:
                record_payment(method.value, "failed")
                message = charge.message if charge is not None and charge.message else "Payment processing failed"
                raise PaymentError(
                    message,
                    details={"payment_id": str(payment_id), "booking_id": str(booking_id)}
                )

        record_payment(method.value, "submitted")
        return payment

    async def payment_history(
        self,
        session: AsyncSession,
        principal: CurrentUser,
        booking_id: uuid.UUID
    ) -> Dict[str, Any]:
        booking = await load_booking(session, booking_id)
        if not principal.is_admin and booking.user_id != principal.id:
            raise AuthorizationError("You can only view your own payments")
        if booking.bill is None:
            raise NotFoundError("Bill")
        bill = booking.bill
        return {
            "booking_id": booking.id,
            "reference": booking.reference,
            "bill": bill,
            "payments": sorted(bill.payments, key=lambda p: p.created_at, reverse=True),
            "summary": payment_summary(bill),
        }

    async def _pending_payment(self, session: AsyncSession, payment_id: uuid.UUID) -> Payment:
        result = await session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise BusinessRuleError(
                f"Only pending payments can be decided. Current status: {payment.status.value}",
                code="PAYMENT_NOT_PENDING",
                details={"payment_id": str(payment_id), "status": payment.status.value}
            )
        return payment

    async def confirm_payment(self, session: AsyncSession, payment_id: uuid.UUID) -> Dict[str, Any]:
        """
        Mark a pending payment successful and let the lifecycle promote the
        booking and bill once the bill is covered.
        """
        async with self.db_manager.transaction(session):
            payment = await self._pending_payment(session, payment_id)
            bill = await session.get(Bill, payment.bill_id)
            booking = await load_booking(session, bill.booking_id, for_update=True)
            bill = booking.bill
            if booking.status in TERMINAL_BOOKING_STATUSES:
                raise BookingFinalizedError(booking.id, booking.status.value)

            paid_so_far = successful_total(p for p in bill.payments if p.id != payment.id)
            extra = strategy_for(payment.method).on_confirm(payment, bill.amount, paid_so_far)
            for row in extra:
                bill.payments.append(row)
            await session.flush()

            await self.governor.apply(session, booking, BookingEvent.PAYMENT_CONFIRMED, admin=True)
            remainder = extra[0] if extra else None
            result = {
                "payment": payment,
                "booking_id": booking.id,
                "booking_status": booking.status.value,
                "bill_status": bill.status.value,
                "remainder_payment": remainder,
            }

        record_payment(payment.method.value, "confirmed")
        self.logger.info(
            f"Payment {payment_id} confirmed; booking {result['booking_id']} is {result['booking_status']}, "
            f"bill is {result['bill_status']}"
        )
        await self.cache.invalidate(TRIPS_NAMESPACE)
        return result

    async def reject_payment(self, session: AsyncSession, payment_id: uuid.UUID) -> Dict[str, Any]:
        async with self.db_manager.transaction(session):
            payment = await self._pending_payment(session, payment_id)
            bill = await session.get(Bill, payment.bill_id)
            booking = await load_booking(session, bill.booking_id, for_update=True)
            payment.status = PaymentStatus.FAILED
            await self.governor.apply(session, booking, BookingEvent.PAYMENT_REJECTED, admin=True)
            result = {
                "payment": payment,
                "booking_id": booking.id,
                "booking_status": booking.status.value,
                "bill_status": booking.bill.status.value,
                "remainder_payment": None,
            }

        record_payment(payment.method.value, "rejected")
        self.logger.info(f"Payment {payment_id} rejected")
        return result

    async def list_payments(
        self,
        session: AsyncSession,
        status: Optional[PaymentStatus] = None,
        method: Optional[PaymentMethod] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Dict[str, Any]], int]:
        filters = []
        if status is not None:
            filters.append(Payment.status == status)
        if method is not None:
            filters.append(Payment.method == method)

        total = await session.scalar(select(func.count(Payment.id)).where(*filters))
        result = await session.execute(
            select(Payment)
            .where(*filters)
            .options(selectinload(Payment.bill).selectinload(Bill.booking))
            .order_by(Payment.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = []
        for payment in result.scalars().all():
            booking = payment.bill.booking
            items.append({
                "id": payment.id,
                "bill_id": payment.bill_id,
                "amount": payment.amount,
                "method": payment.method.value,
                "status": payment.status.value,
                "transaction_id": payment.transaction_id,
                "receipt_image": payment.receipt_image,
                "paid_at": payment.paid_at,
                "is_remainder": payment.is_remainder,
                "created_at": payment.created_at,
                "booking_id": booking.id,
                "booking_reference": booking.reference,
                "user_id": booking.user_id,
            })
        return items, total


payment_service = PaymentService()
