"""
Payment method strategies

The set is closed: one strategy per PaymentMethod.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from app.config import settings
from app.models.base import utcnow
from app.models.payment import Payment, PaymentMethod, PaymentStatus

CENTS = Decimal("0.01")


def to_cents(amount) -> Decimal:
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PaymentStrategy(ABC):
    method: PaymentMethod

    @abstractmethod
    def compute_amount(self, total_price) -> Decimal:
        """Amount charged for one attempt against a booking total"""

    def on_confirm(self, payment: Payment, bill_amount, paid_so_far) -> List[Payment]:
        """
        Mark `payment` successful and return any extra rows to append.
        `paid_so_far` excludes `payment` itself.
        """
        payment.status = PaymentStatus.SUCCESSFUL
        if payment.paid_at is None:
            payment.paid_at = utcnow()
        return []


@dataclass(frozen=True)
class CashPayment(PaymentStrategy):
    """
    Cash deposit of a fixed share of the total. The balance is settled at the
    counter, so confirming the deposit also records the remainder.
    """
    method: PaymentMethod = PaymentMethod.CASH
    deposit_rate: Decimal = settings.CASH_DEPOSIT_RATE

    def compute_amount(self, total_price) -> Decimal:
        return to_cents(Decimal(total_price) * self.deposit_rate)

    def on_confirm(self, payment: Payment, bill_amount, paid_so_far) -> List[Payment]:
        super().on_confirm(payment, bill_amount, paid_so_far)
        remainder = to_cents(Decimal(bill_amount) - Decimal(paid_so_far) - Decimal(payment.amount))
        if remainder <= 0:
            return []
        return [
            Payment(
                bill_id=payment.bill_id,
                amount=remainder,
                method=PaymentMethod.CASH,
                status=PaymentStatus.SUCCESSFUL,
                transaction_id=f"{payment.transaction_id}-REM" if payment.transaction_id else None,
                paid_at=payment.paid_at,
                is_remainder=True,
            )
        ]


@dataclass(frozen=True)
class OnlinePayment(PaymentStrategy):
    """Full amount charged through the gateway"""
    method: PaymentMethod = PaymentMethod.ONLINE_PAYMENT

    def compute_amount(self, total_price) -> Decimal:
        return to_cents(total_price)


PAYMENT_STRATEGIES: Dict[PaymentMethod, PaymentStrategy] = {
    PaymentMethod.CASH: CashPayment(),
    PaymentMethod.ONLINE_PAYMENT: OnlinePayment(),
}


def strategy_for(method) -> PaymentStrategy:
    return PAYMENT_STRATEGIES[PaymentMethod(method)]
