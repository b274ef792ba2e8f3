from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class ShippingAddress(BaseModel):
    full_name: str = Field(min_length=1)
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: Optional[str] = None
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)
    phone: Optional[str] = None


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddress


class ShippingInfo(BaseModel):
    # Emptiness is a domain error (MissingTrackingInfoError), not a schema error
    tracking_number: str = ""
    shipping_carrier: str = ""


class ReleasePaymentRequest(BaseModel):
    commission_rate: Optional[Decimal] = None # falls back to DEFAULT_COMMISSION_RATE
    transfer_notes: Optional[str] = None


class OrderLineItemResponse(BaseModel):
    product_id: int
    seller_id: str
    product_title: str
    product_image: Optional[str]
    price: Decimal
    quantity: int

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    order_number: str
    buyer_id: str
    total_amount: Decimal
    status: str
    payment_status: str
    shipping_full_name: Optional[str]
    shipping_street: Optional[str]
    shipping_city: Optional[str]
    shipping_state: Optional[str]
    shipping_postal_code: Optional[str]
    shipping_country: Optional[str]
    tracking_number: Optional[str]
    shipping_carrier: Optional[str]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    confirmed_by_buyer: bool
    payment_released: bool
    payment_released_at: Optional[datetime]
    admin_commission: Optional[Decimal]
    seller_amount: Optional[Decimal]
    transfer_notes: Optional[str]
    created_at: datetime
    items: List[OrderLineItemResponse] = []

    class Config:
        from_attributes = True


class SettlementResponse(BaseModel):
    order_id: str
    total_amount: Decimal
    commission_rate: Optional[Decimal]
    admin_commission: Decimal
    seller_amount: Decimal
    released_now: bool


class SettlementPreviewResponse(BaseModel):
    order_id: str
    total_amount: Decimal
    commission_rate: Decimal
    admin_commission: Decimal
    seller_amount: Decimal
    is_estimate: bool


class SettlementSummaryResponse(BaseModel):
    awaiting_release_total: Decimal
    awaiting_release_count: int
    released_seller_total: Decimal
    commission_collected: Decimal
    released_count: int
    in_transit_count: int
