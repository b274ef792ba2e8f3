from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Order, OrderEvent, OrderLineItem, OrderStatus, PaymentStatus
from .state_machine import TransitionPlan


class OrderRepository:
    @staticmethod
    async def create_order(db: AsyncSession, order: Order, items: list):
        """Adds the order and its line items without committing (checkout owns the transaction)."""
        db.add(order)
        await db.flush()
        for item in items:
            item.order_id = order.id
            db.add(item)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str):
        # populate_existing: never trust identity-map state after a conditional UPDATE
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_buyer(db: AsyncSession, buyer_id: str):
        result = await db.execute(
            select(Order).where(Order.buyer_id == buyer_id).order_by(Order.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def list_for_seller(db: AsyncSession, seller_id: str):
        sold = select(OrderLineItem.order_id).where(OrderLineItem.seller_id == seller_id)
        result = await db.execute(
            select(Order).where(Order.id.in_(sold)).order_by(Order.created_at.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def apply_transition(db: AsyncSession, plan: TransitionPlan) -> bool:
        """
        Conditional write: the UPDATE only matches while the order still has the
        values the plan was validated against. Outbox events go in the same
        transaction. Returns False (and writes nothing) if the guard lost.
        """
        guards = [getattr(Order, column) == value for column, value in plan.expected.items()]
        stmt = (
            update(Order)
            .where(Order.id == plan.order_id, *guards)
            .values(**plan.changes)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:
            await db.rollback()
            return False

        for event in plan.events:
            db.add(OrderEvent(
                order_id=plan.order_id,
                event_type=event.event_type,
                recipient_id=event.recipient_id,
                payload=event.payload,
            ))
        await db.commit()
        return True

    @staticmethod
    async def settlement_totals(db: AsyncSession) -> dict:
        awaiting = await db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0), func.count(Order.id)).where(
                Order.payment_status == PaymentStatus.PAID.value,
                Order.confirmed_by_buyer.is_(True),
                Order.payment_released.is_(False),
            )
        )
        released = await db.execute(
            select(
                func.coalesce(func.sum(Order.seller_amount), 0),
                func.coalesce(func.sum(Order.admin_commission), 0),
                func.count(Order.id),
            ).where(Order.payment_released.is_(True))
        )
        in_transit = await db.execute(
            select(func.count(Order.id)).where(
                Order.payment_status == PaymentStatus.PAID.value,
                Order.status.in_([OrderStatus.CONFIRMED.value, OrderStatus.SHIPPED.value]),
            )
        )
        pending_total, pending_count = awaiting.one()
        released_total, commission_total, released_count = released.one()
        return {
            "awaiting_release_total": pending_total,
            "awaiting_release_count": pending_count,
            "released_seller_total": released_total,
            "commission_collected": commission_total,
            "released_count": released_count,
            "in_transit_count": in_transit.scalar_one(),
        }
