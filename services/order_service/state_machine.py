"""
Order State Machine.

Validates a transition against the current order snapshot and the calling
Actor, and returns a TransitionPlan: the guard the conditional write must
still match, the column changes, and the outbox events to emit. Nothing
here touches storage, so a rejected transition can never leave a partial
write behind.

    pending --payment_confirmed--> confirmed --add_shipping_info--> shipped
      --confirm_delivery--> delivered --release_payment--> completed

    cancel: pending | confirmed --> cancelled
    payment: pending --> paid | failed
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from shared.security import Actor, Role

from . import ledger
from .errors import (
    AlreadyReleasedError,
    IllegalTransitionError,
    MissingTrackingInfoError,
    NotShippedError,
    PaymentAlreadyProcessedError,
    UnauthorizedActorError,
)
from .models import OrderStatus, PaymentStatus

# transition -> (legal source statuses, target status)
TRANSITIONS = {
    "payment_confirmed": ({OrderStatus.PENDING}, OrderStatus.CONFIRMED),
    "add_shipping_info": ({OrderStatus.CONFIRMED}, OrderStatus.SHIPPED),
    "confirm_delivery": ({OrderStatus.SHIPPED}, OrderStatus.DELIVERED),
    "release_payment": ({OrderStatus.DELIVERED}, OrderStatus.COMPLETED),
    "cancel": ({OrderStatus.PENDING, OrderStatus.CONFIRMED}, OrderStatus.CANCELLED),
}

TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


@dataclass
class PendingEvent:
    event_type: str
    payload: dict
    recipient_id: Optional[str] = None


@dataclass
class TransitionPlan:
    name: str
    order_id: str
    expected: dict
    changes: dict
    events: list = field(default_factory=list)
    split: Optional[ledger.LedgerSplit] = None


def initial_state() -> dict:
    """Column values of a freshly checked-out order."""
    return {
        "status": OrderStatus.PENDING.value,
        "payment_status": PaymentStatus.PENDING.value,
        "confirmed_by_buyer": False,
        "payment_released": False,
    }


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _status(order) -> OrderStatus:
    return OrderStatus(order.status)


def _payment_status(order) -> PaymentStatus:
    return PaymentStatus(order.payment_status)


def _require_source(name: str, order):
    sources, _ = TRANSITIONS[name]
    if _status(order) not in sources:
        raise IllegalTransitionError(
            f"Cannot {name.replace('_', ' ')} order {order.order_number} in status '{order.status}'"
        )


def _base_payload(order) -> dict:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "total_amount": str(order.total_amount),
    }


def _is_buyer(order, actor: Actor) -> bool:
    return actor.user_id == order.buyer_id


def _owns_line_item(order, actor: Actor) -> bool:
    return any(item.seller_id == actor.user_id for item in order.items)


def settled_split(order) -> ledger.LedgerSplit:
    """The split persisted by a completed release."""
    return ledger.LedgerSplit(
        total=ledger.to_money(order.total_amount),
        commission_rate=order.commission_rate,
        commission=ledger.to_money(order.admin_commission),
        seller_amount=ledger.to_money(order.seller_amount),
    )


def payment_confirmed(order, actor: Actor) -> TransitionPlan:
    if actor.role != Role.PAYMENT_PROCESSOR:
        raise UnauthorizedActorError("Only the payment processor can confirm a payment")
    # Checked before the status so webhook redeliveries are recognised as benign
    if _payment_status(order) != PaymentStatus.PENDING:
        raise PaymentAlreadyProcessedError(
            f"Payment for order {order.order_number} is already '{order.payment_status}'"
        )
    _require_source("payment_confirmed", order)

    seller_totals = {}
    for item in order.items:
        subtotal, count = seller_totals.get(item.seller_id, (0, 0))
        seller_totals[item.seller_id] = (subtotal + item.line_total, count + 1)

    events = [PendingEvent("payment_confirmed", _base_payload(order), order.buyer_id)]
    for seller_id, (subtotal, count) in seller_totals.items():
        payload = _base_payload(order)
        payload.update({"amount": str(ledger.to_money(subtotal)), "item_count": count})
        events.append(PendingEvent("new_order", payload, seller_id))

    return TransitionPlan(
        name="payment_confirmed",
        order_id=order.id,
        expected={
            "status": OrderStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
        },
        changes={
            "status": OrderStatus.CONFIRMED.value,
            "payment_status": PaymentStatus.PAID.value,
        },
        events=events,
    )


def payment_failed(order, actor: Actor, reason: str) -> TransitionPlan:
    if actor.role != Role.PAYMENT_PROCESSOR:
        raise UnauthorizedActorError("Only the payment processor can fail a payment")
    if _payment_status(order) != PaymentStatus.PENDING:
        raise PaymentAlreadyProcessedError(
            f"Payment for order {order.order_number} is already '{order.payment_status}'"
        )
    if _status(order) != OrderStatus.PENDING:
        raise IllegalTransitionError(
            f"Cannot fail payment of order {order.order_number} in status '{order.status}'"
        )

    payload = _base_payload(order)
    payload["reason"] = reason
    return TransitionPlan(
        name="payment_failed",
        order_id=order.id,
        expected={
            "status": OrderStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
        },
        changes={
            "payment_status": PaymentStatus.FAILED.value,
            "payment_failure_reason": reason,
        },
        events=[PendingEvent("payment_failed", payload, order.buyer_id)],
    )


def add_shipping_info(order, actor: Actor, tracking_number: str, carrier: str,
                      now: Optional[datetime] = None) -> TransitionPlan:
    if not _owns_line_item(order, actor):
        raise UnauthorizedActorError(
            f"User {actor.user_id} does not sell any item in order {order.order_number}"
        )
    tracking_number = (tracking_number or "").strip()
    carrier = (carrier or "").strip()
    if not tracking_number or not carrier:
        raise MissingTrackingInfoError()
    _require_source("add_shipping_info", order)

    payload = _base_payload(order)
    payload.update({"tracking_number": tracking_number, "shipping_carrier": carrier})
    return TransitionPlan(
        name="add_shipping_info",
        order_id=order.id,
        expected={
            "status": OrderStatus.CONFIRMED.value,
            "payment_status": PaymentStatus.PAID.value,
        },
        changes={
            "tracking_number": tracking_number,
            "shipping_carrier": carrier,
            "shipped_at": _now(now),
            "status": OrderStatus.SHIPPED.value,
        },
        events=[PendingEvent("order_shipped", payload, order.buyer_id)],
    )


def confirm_delivery(order, actor: Actor, now: Optional[datetime] = None) -> TransitionPlan:
    if not _is_buyer(order, actor):
        raise UnauthorizedActorError("Only the buyer can confirm delivery")

    status = _status(order)
    if status in (OrderStatus.PENDING, OrderStatus.CONFIRMED) or (
        status == OrderStatus.SHIPPED and not order.tracking_number
    ):
        raise NotShippedError(f"Order {order.order_number} has not been shipped yet")
    _require_source("confirm_delivery", order)

    # Sellers are resolved by the dispatcher from the line items
    return TransitionPlan(
        name="confirm_delivery",
        order_id=order.id,
        expected={"status": OrderStatus.SHIPPED.value, "confirmed_by_buyer": False},
        changes={
            "confirmed_by_buyer": True,
            "delivered_at": _now(now),
            "status": OrderStatus.DELIVERED.value,
        },
        events=[PendingEvent("order_delivered", _base_payload(order))],
    )


def release_payment(order, actor: Actor, commission_rate, transfer_notes: Optional[str] = None,
                    now: Optional[datetime] = None) -> TransitionPlan:
    if not actor.is_admin:
        raise UnauthorizedActorError("Only an admin can release a payment")
    if order.payment_released:
        raise AlreadyReleasedError(
            f"Payment for order {order.order_number} was already released",
            split=settled_split(order),
        )
    if _payment_status(order) != PaymentStatus.PAID or not order.confirmed_by_buyer:
        raise IllegalTransitionError(
            f"Order {order.order_number} must be paid and confirmed by the buyer before release"
        )
    _require_source("release_payment", order)

    split = ledger.split(order.total_amount, commission_rate)
    payload = _base_payload(order)
    payload.update({
        "amount": str(split.seller_amount),
        "commission": str(split.commission),
        "commission_rate": str(split.commission_rate),
        "transfer_notes": transfer_notes or "",
    })
    return TransitionPlan(
        name="release_payment",
        order_id=order.id,
        expected={
            "payment_released": False,
            "status": OrderStatus.DELIVERED.value,
            "payment_status": PaymentStatus.PAID.value,
        },
        changes={
            "payment_released": True,
            "payment_released_at": _now(now),
            "commission_rate": split.commission_rate,
            "admin_commission": split.commission,
            "seller_amount": split.seller_amount,
            "transfer_notes": transfer_notes or None,
            "status": OrderStatus.COMPLETED.value,
        },
        events=[PendingEvent("payment_transferred", payload)],
        split=split,
    )


def cancel(order, actor: Actor, now: Optional[datetime] = None) -> TransitionPlan:
    if not (_is_buyer(order, actor) or actor.is_admin):
        raise UnauthorizedActorError("Only the buyer or an admin can cancel an order")
    _require_source("cancel", order)

    payload = _base_payload(order)
    payload["cancelled_by"] = actor.role.value
    return TransitionPlan(
        name="cancel",
        order_id=order.id,
        expected={"status": order.status, "payment_status": order.payment_status},
        changes={"status": OrderStatus.CANCELLED.value, "cancelled_at": _now(now)},
        events=[PendingEvent("order_cancelled", payload)],
    )
