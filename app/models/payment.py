"""
Payment model
"""

from sqlalchemy import Column, String, Numeric, Enum, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel, UTCDateTime


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    ONLINE_PAYMENT = "online_payment"


class Payment(BaseModel):
    """
    One payment attempt against a bill. Rows are append-only: they move
    pending -> successful | failed and are never deleted.
    """
    __tablename__ = "payments"

    bill_id = Column(Uuid(as_uuid=True), ForeignKey("bills.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(
        Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )
    transaction_id = Column(String(255), index=True)
    receipt_image = Column(String(500))
    paid_at = Column(UTCDateTime())
    is_remainder = Column(Boolean, default=False, nullable=False)

    # Relationships
    bill = relationship("Bill", back_populates="payments")

    def __repr__(self):
        return f"<Payment(id={self.id}, bill_id={self.bill_id}, amount={self.amount}, status={self.status})>"
