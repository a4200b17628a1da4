"""
Payment gateway abstraction
"""

import asyncio
import logging
import random
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from app.config import settings
from app.models.payment import PaymentMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    transaction_id: Optional[str] = None
    message: Optional[str] = None


class PaymentGateway(ABC):

    @abstractmethod
    async def attempt_charge(self, amount: Decimal, method: PaymentMethod) -> ChargeResult:
        ...


class MockPaymentGateway(PaymentGateway):
    """
    Stand-in gateway with a configurable success rate and latency
    """

    def __init__(
        self,
        success_rate: float = settings.PAYMENT_GATEWAY_SUCCESS_RATE,
        latency: float = settings.PAYMENT_GATEWAY_LATENCY_SECONDS,
        rng: Optional[random.Random] = None
    ):
        self.success_rate = success_rate
        self.latency = latency
        self.rng = rng or random.Random()

    async def attempt_charge(self, amount: Decimal, method: PaymentMethod) -> ChargeResult:
        if self.latency:
            await asyncio.sleep(self.latency)

        if self.rng.random() >= self.success_rate:
            logger.info(f"Mock gateway declined {method.value} charge of {amount}")
            return ChargeResult(success=False, message="Payment was declined by the gateway")

        transaction_id = f"TXN-{uuid.uuid4().hex[:12].upper()}"
        logger.info(f"Mock gateway accepted {method.value} charge of {amount} ({transaction_id})")
        return ChargeResult(success=True, transaction_id=transaction_id)


payment_gateway = MockPaymentGateway()


def get_payment_gateway() -> PaymentGateway:
    return payment_gateway
