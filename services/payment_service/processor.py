"""
Payment processor collaborator.

The gateway protocol itself lives outside this system; the marketplace only
needs ``charge`` and reacts to the terminal result (directly after a charge,
or later through the webhook).
"""
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class PaymentProcessor(Protocol):
    async def charge(self, order_id: str, amount: Decimal) -> PaymentResult:
        ...


class SimulatedPaymentProcessor:
    """Approves every charge up to ``decline_above`` (no limit by default)."""

    def __init__(self, decline_above: Optional[Decimal] = None):
        self.decline_above = decline_above

    async def charge(self, order_id: str, amount: Decimal) -> PaymentResult:
        if self.decline_above is not None and amount > self.decline_above:
            return PaymentResult(success=False, failure_reason="card_declined")
        return PaymentResult(success=True, transaction_id=str(uuid.uuid4()))


payment_processor: PaymentProcessor = SimulatedPaymentProcessor()
