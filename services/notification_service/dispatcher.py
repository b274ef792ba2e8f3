"""
Notification Dispatcher.

Turns an order transition event into in-app notifications and emails.
Each event type has a fixed audience; in-app records are always created,
while email is a separate channel gated by the recipient's preferences.

Transitions write their events to the order_events outbox in the same
transaction as the order change. dispatch_pending() claims each event
exactly once (conditional UPDATE on dispatched_at) and commits the claim
together with the notification records, so a crash at any point leaves
either nothing or everything for that event, never duplicates.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.models import Order, OrderEvent
from shared.config import settings
from shared.observability import marketplace_emails_total, marketplace_notifications_created_total

from .models import NotificationRecord
from .outbox import EmailMessage, EmailOutbox, email_outbox
from .repository import NotificationRepository
from .templates import render_email

logger = structlog.get_logger(__name__)

BUYER = "buyer"
SELLERS = "sellers"
BUYER_AND_SELLERS = "buyer_and_sellers"


@dataclass(frozen=True)
class EventRule:
    audience: str
    category: str # preference flag gating the email channel
    title: str
    message: str


EVENT_RULES = {
    "payment_confirmed": EventRule(
        BUYER, "order_updates", "Payment Successful!",
        "Your payment for order #{order_number} has been processed successfully.",
    ),
    "new_order": EventRule(
        SELLERS, "product_sold", "New Order Received!",
        "You have a new order worth ${amount} with {item_count} item(s).",
    ),
    "order_shipped": EventRule(
        BUYER, "order_updates", "Order Shipped!",
        "Your order #{order_number} has been shipped via {shipping_carrier}. "
        "Tracking number: {tracking_number}",
    ),
    "order_delivered": EventRule(
        SELLERS, "product_sold", "Order Delivered Successfully",
        "Order #{order_number} has been confirmed as delivered by the buyer. "
        "Payment will be transferred soon.",
    ),
    "payment_transferred": EventRule(
        SELLERS, "product_sold", "Payment Transferred",
        "Payment of ${amount} has been transferred to your account for order #{order_number}",
    ),
    "payment_failed": EventRule(
        BUYER, "order_updates", "Payment Failed",
        "Payment for order #{order_number} could not be processed: {reason}",
    ),
    "order_cancelled": EventRule(
        BUYER_AND_SELLERS, "order_updates", "Order Cancelled",
        "Order #{order_number} has been cancelled.",
    ),
}

# Used when a recipient never saved any preferences
DEFAULT_PREFERENCES = {
    "email_notifications": True,
    "order_updates": True,
    "product_sold": True,
    "marketing_emails": False,
}


@dataclass
class NotificationEvent:
    type: str
    order_id: str
    recipient_id: Optional[str] = None
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_outbox(cls, row: OrderEvent) -> "NotificationEvent":
        return cls(
            type=row.event_type,
            order_id=row.order_id,
            recipient_id=row.recipient_id,
            payload=dict(row.payload or {}),
        )


def resolve_recipients(rule: EventRule, order: Order) -> list:
    if rule.audience == BUYER:
        return [order.buyer_id]
    if rule.audience == SELLERS:
        return list(order.seller_ids)
    recipients = [order.buyer_id]
    recipients.extend(s for s in order.seller_ids if s != order.buyer_id)
    return recipients


def wants_email(preference, category: str) -> bool:
    if preference is None:
        return DEFAULT_PREFERENCES["email_notifications"] and DEFAULT_PREFERENCES[category]
    return bool(preference.email_notifications) and bool(getattr(preference, category))


class NotificationDispatcher:
    def __init__(self, outbox: EmailOutbox):
        self.outbox = outbox

    async def _prepare(self, db: AsyncSession, event: NotificationEvent) -> list:
        """Adds the in-app records to the session and returns the emails to send."""
        rule = EVENT_RULES.get(event.type)
        if rule is None:
            raise ValueError(f"Unknown notification event type: {event.type}")

        if event.recipient_id:
            recipients = [event.recipient_id]
        else:
            result = await db.execute(select(Order).where(Order.id == event.order_id))
            order = result.scalars().first()
            if order is None:
                raise ValueError(f"Order {event.order_id} not found for event {event.type}")
            recipients = resolve_recipients(rule, order)

        preferences = await NotificationRepository.get_preferences(db, recipients)
        title = rule.title
        message = rule.message.format(**event.payload)

        emails = []
        for recipient_id in recipients:
            db.add(NotificationRecord(
                user_id=recipient_id,
                type=event.type,
                title=title,
                message=message,
                data=event.payload,
                is_read=False,
            ))
            marketplace_notifications_created_total.labels(type=event.type).inc()

            preference = preferences.get(recipient_id)
            if not wants_email(preference, rule.category):
                logger.info("email_skipped_opted_out", user_id=recipient_id, event_type=event.type)
                marketplace_emails_total.labels(status="skipped").inc()
                continue
            if preference is None or not preference.email:
                logger.info("email_skipped_no_address", user_id=recipient_id, event_type=event.type)
                marketplace_emails_total.labels(status="skipped").inc()
                continue

            context = dict(event.payload)
            context.update({
                "recipient_name": preference.full_name or "there",
                "site_url": settings.SITE_URL,
            })
            try:
                subject, html = render_email(event.type, context)
            except Exception:
                # Email is best-effort; the in-app record above still goes out
                logger.exception("email_render_failed", user_id=recipient_id, event_type=event.type)
                marketplace_emails_total.labels(status="failed").inc()
                continue
            emails.append(EmailMessage(
                to=preference.email,
                subject=subject,
                html=html,
                email_type=event.type,
                user_id=recipient_id,
                metadata={"order_id": event.order_id},
            ))
        return emails

    def _enqueue(self, emails: list):
        for email in emails:
            self.outbox.enqueue(email)

    async def dispatch(self, db: AsyncSession, event: NotificationEvent):
        """Persists the notifications for one event, then hands its emails to the outbox."""
        emails = await self._prepare(db, event)
        await db.commit()
        self._enqueue(emails)

    async def dispatch_pending(self, db: AsyncSession, order_id: Optional[str] = None) -> int:
        """Delivers undispatched outbox events, for one order or (at startup) all of them."""
        stmt = select(OrderEvent).where(OrderEvent.dispatched_at.is_(None)).order_by(OrderEvent.id)
        if order_id is not None:
            stmt = stmt.where(OrderEvent.order_id == order_id)
        result = await db.execute(stmt)
        # Snapshot before the loop: a lost claim rolls back and expires the rows
        pending = [(row.id, NotificationEvent.from_outbox(row)) for row in result.scalars().all()]

        delivered = 0
        for event_id, event in pending:
            claim = await db.execute(
                update(OrderEvent)
                .where(OrderEvent.id == event_id, OrderEvent.dispatched_at.is_(None))
                .values(dispatched_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            if claim.rowcount != 1:
                # Another dispatcher got there first
                await db.rollback()
                continue
            try:
                emails = await self._prepare(db, event)
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("notification_dispatch_failed", event_id=event_id, event_type=event.type,
                                 order_id=event.order_id)
                continue
            self._enqueue(emails)
            delivered += 1
            logger.info("notification_dispatched", event_id=event_id, event_type=event.type,
                        order_id=event.order_id)
        return delivered


notification_dispatcher = NotificationDispatcher(email_outbox)
