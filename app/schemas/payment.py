"""
Payment and bill schemas
"""

from typing import List, Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.schemas.base import BaseSchema, IDSchema
from app.models.bill import BillStatus
from app.models.booking import BookingStatus
from app.models.payment import PaymentMethod, PaymentStatus


class BillResponse(IDSchema):
    booking_id: UUID
    amount: Decimal
    status: BillStatus


class PaymentResponse(IDSchema):
    bill_id: UUID
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: Optional[str] = None
    receipt_image: Optional[str] = None
    paid_at: Optional[datetime] = None
    is_remainder: bool = False
    created_at: datetime


class PaymentSummary(BaseSchema):
    """Totals over a bill's payments; only successful payments count as paid"""
    total_amount: Decimal
    total_paid: Decimal
    remaining_balance: Decimal
    is_fully_paid: bool


class PaymentHistoryResponse(BaseSchema):
    booking_id: UUID
    reference: str
    bill: BillResponse
    payments: List[PaymentResponse]
    summary: PaymentSummary


class PaymentDecisionResponse(BaseSchema):
    """Result of an admin confirm/reject"""
    payment: PaymentResponse
    booking_id: UUID
    booking_status: BookingStatus
    bill_status: BillStatus
    remainder_payment: Optional[PaymentResponse] = None


class AdminPaymentResponse(PaymentResponse):
    booking_id: UUID
    booking_reference: str
    user_id: UUID
