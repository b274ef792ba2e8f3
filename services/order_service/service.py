from typing import Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.cart_service.repository import CartRepository
from services.notification_service.dispatcher import notification_dispatcher
from shared.observability import marketplace_order_transitions_total
from shared.security import Actor

from . import state_machine
from .compiler import CartOrderCompiler
from .errors import IllegalTransitionError, OrderLifecycleError, OrderNotFoundError, UnauthorizedActorError
from .repository import OrderRepository
from .schemas import ShippingAddress

logger = structlog.get_logger(__name__)


async def notify_after_commit(db: AsyncSession, order_id: str):
    """Runs the dispatcher for an order's new events. Failures are logged, never raised."""
    try:
        await notification_dispatcher.dispatch_pending(db, order_id)
    except Exception:
        await db.rollback()
        logger.exception("notification_dispatch_deferred", order_id=order_id)


async def run_transition(db: AsyncSession, order_id: str, name: str, build_plan: Callable):
    """
    Loads the order, validates the transition, and applies it with a
    conditional write. If another request changed the order in between,
    the transition is re-validated against the fresh row, which raises
    the error the caller would have seen had it arrived second.
    """
    order = await OrderRepository.get_order(db, order_id)
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")

    for attempt in range(2):
        try:
            plan = build_plan(order)
        except OrderLifecycleError as e:
            outcome = "noop" if getattr(e, "benign", False) else "rejected"
            marketplace_order_transitions_total.labels(transition=name, outcome=outcome).inc()
            logger.info("order_transition_rejected", order_id=order_id, transition=name,
                        error=type(e).__name__, detail=str(e))
            raise

        if await OrderRepository.apply_transition(db, plan):
            marketplace_order_transitions_total.labels(transition=name, outcome="applied").inc()
            logger.info("order_transition_applied", order_id=order_id, transition=name,
                        changes=sorted(plan.changes))
            await notify_after_commit(db, order_id)
            return plan, await OrderRepository.get_order(db, order_id)

        logger.info("order_transition_conflict", order_id=order_id, transition=name, attempt=attempt)
        order = await OrderRepository.get_order(db, order_id)

    # Re-validation passed but the guard lost twice: state is flapping under us
    marketplace_order_transitions_total.labels(transition=name, outcome="rejected").inc()
    raise IllegalTransitionError(f"Order {order_id} changed concurrently, retry")


class OrderService:
    @staticmethod
    async def checkout(db: AsyncSession, actor: Actor, shipping_address: ShippingAddress):
        cart_items = await CartRepository.get_items(db, actor.user_id)
        return await CartOrderCompiler.compile(db, cart_items, shipping_address, actor.user_id)

    @staticmethod
    async def get_order(db: AsyncSession, actor: Actor, order_id: str):
        """Visible to the buyer, any seller on the order, and admins."""
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if not (actor.is_admin or order.buyer_id == actor.user_id or actor.user_id in order.seller_ids):
            raise UnauthorizedActorError("Not allowed to view this order")
        return order

    @staticmethod
    async def list_purchases(db: AsyncSession, actor: Actor):
        return await OrderRepository.list_for_buyer(db, actor.user_id)

    @staticmethod
    async def list_sales(db: AsyncSession, actor: Actor):
        return await OrderRepository.list_for_seller(db, actor.user_id)

    @staticmethod
    async def payment_confirmed(db: AsyncSession, actor: Actor, order_id: str):
        _, order = await run_transition(
            db, order_id, "payment_confirmed",
            lambda o: state_machine.payment_confirmed(o, actor),
        )
        return order

    @staticmethod
    async def payment_failed(db: AsyncSession, actor: Actor, order_id: str, reason: str):
        _, order = await run_transition(
            db, order_id, "payment_failed",
            lambda o: state_machine.payment_failed(o, actor, reason),
        )
        return order

    @staticmethod
    async def add_shipping_info(db: AsyncSession, actor: Actor, order_id: str,
                                tracking_number: str, carrier: str):
        _, order = await run_transition(
            db, order_id, "add_shipping_info",
            lambda o: state_machine.add_shipping_info(o, actor, tracking_number, carrier),
        )
        return order

    @staticmethod
    async def confirm_delivery(db: AsyncSession, actor: Actor, order_id: str):
        _, order = await run_transition(
            db, order_id, "confirm_delivery",
            lambda o: state_machine.confirm_delivery(o, actor),
        )
        return order

    @staticmethod
    async def cancel(db: AsyncSession, actor: Actor, order_id: str):
        _, order = await run_transition(
            db, order_id, "cancel",
            lambda o: state_machine.cancel(o, actor),
        )
        return order
