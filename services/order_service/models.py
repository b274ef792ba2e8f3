import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
)
from sqlalchemy.orm import relationship

from shared.config.database import Base


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    buyer_id = Column(String, nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(String(16), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_failure_reason = Column(Text, nullable=True)

    # Shipping address snapshot, copied at checkout
    shipping_full_name = Column(String, nullable=True)
    shipping_street = Column(String, nullable=True)
    shipping_city = Column(String, nullable=True)
    shipping_state = Column(String, nullable=True)
    shipping_postal_code = Column(String, nullable=True)
    shipping_country = Column(String, nullable=True)
    shipping_phone = Column(String, nullable=True)

    tracking_number = Column(String, nullable=True)
    shipping_carrier = Column(String, nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    confirmed_by_buyer = Column(Boolean, nullable=False, default=False)

    # Settlement, null until the admin releases the payout
    payment_released = Column(Boolean, nullable=False, default=False)
    payment_released_at = Column(DateTime(timezone=True), nullable=True)
    commission_rate = Column(Numeric(5, 2), nullable=True)
    admin_commission = Column(Numeric(12, 2), nullable=True)
    seller_amount = Column(Numeric(12, 2), nullable=True)
    transfer_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderLineItem", back_populates="order", lazy="selectin", order_by="OrderLineItem.id"
    )

    @property
    def seller_ids(self) -> list:
        """Distinct sellers with at least one line item, in line order."""
        seen = []
        for item in self.items:
            if item.seller_id and item.seller_id not in seen:
                seen.append(item.seller_id)
        return seen


class OrderLineItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    # Plain column: the product listing may be edited or deleted later
    product_id = Column(Integer, nullable=False)
    seller_id = Column(String, nullable=False, index=True)
    product_title = Column(String, nullable=False)
    product_image = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False) # price at purchase
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self):
        return self.price * self.quantity


class OrderEvent(Base):
    """Transactional outbox: written with the transition, dispatched after commit."""
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    event_type = Column(String(32), nullable=False)
    recipient_id = Column(String, nullable=True)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    dispatched_at = Column(DateTime(timezone=True), nullable=True, index=True)
