"""
Bill model
"""

from sqlalchemy import Column, ForeignKey, Enum, Numeric, Uuid
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel


class BillStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


class Bill(BaseModel):
    """
    Amount owed for a booking; equals the booking total at creation
    """
    __tablename__ = "bills"

    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(BillStatus),
        default=BillStatus.UNPAID,
        nullable=False,
        index=True
    )

    # Relationships
    booking = relationship("Booking", back_populates="bill")
    payments = relationship(
        "Payment",
        back_populates="bill",
        order_by="Payment.created_at.desc()"
    )

    def __repr__(self):
        return f"<Bill(id={self.id}, booking_id={self.booking_id}, amount={self.amount}, status={self.status})>"
