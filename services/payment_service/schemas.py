from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel

class ChargeRequest(BaseModel):
    order_id: str

class PaymentResponse(BaseModel):
    id: int
    order_id: str
    amount: Decimal
    status: str
    transaction_id: Optional[str]
    failure_reason: Optional[str]

    class Config:
        from_attributes = True

class ChargeResponse(BaseModel):
    payment: PaymentResponse
    order_status: str
    payment_status: str

class PaymentWebhook(BaseModel):
    order_id: str
    event: Literal["payment_succeeded", "payment_failed"]
    transaction_id: Optional[str] = None
    reason: Optional[str] = None

class WebhookAck(BaseModel):
    order_id: str
    result: Literal["applied", "already_processed", "rejected"]
    payment_status: str
