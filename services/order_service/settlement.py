"""
Settlement Coordinator.

Wraps the release_payment transition: computes the ledger split, writes it
with a conditional UPDATE keyed on ``payment_released = false`` and, only
when this call is the one that flipped the flag, lets the dispatcher send
the ``payment_transferred`` notification. Repeated or concurrent releases
return the split that was persisted first.
"""
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.observability import marketplace_settlements_total
from shared.security import Actor

from . import ledger, state_machine
from .errors import AlreadyReleasedError, UnauthorizedActorError
from .repository import OrderRepository
from .service import OrderService, run_transition

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    order_id: str
    split: ledger.LedgerSplit
    released_now: bool


class SettlementCoordinator:
    @staticmethod
    async def release_payment(db: AsyncSession, actor: Actor, order_id: str,
                              commission_rate, transfer_notes: str = None) -> SettlementResult:
        try:
            plan, _ = await run_transition(
                db, order_id, "release_payment",
                lambda o: state_machine.release_payment(o, actor, commission_rate, transfer_notes),
            )
        except AlreadyReleasedError as e:
            marketplace_settlements_total.labels(outcome="already_released").inc()
            logger.info("settlement_already_released", order_id=order_id, admin_id=actor.user_id)
            return SettlementResult(order_id=order_id, split=e.split, released_now=False)

        marketplace_settlements_total.labels(outcome="released").inc()
        logger.info(
            "settlement_released",
            order_id=order_id,
            admin_id=actor.user_id,
            commission=str(plan.split.commission),
            seller_amount=str(plan.split.seller_amount),
        )
        return SettlementResult(order_id=order_id, split=plan.split, released_now=True)

    @staticmethod
    async def preview(db: AsyncSession, actor: Actor, order_id: str, commission_rate):
        """Estimated payout for the buyer-confirmed order; the released split may differ."""
        order = await OrderService.get_order(db, actor, order_id)
        if order.payment_released:
            settled = state_machine.settled_split(order)
            return ledger.SettlementEstimate(
                total=settled.total,
                commission_rate=settled.commission_rate,
                commission=settled.commission,
                seller_amount=settled.seller_amount,
                is_estimate=False,
            )
        return ledger.estimate(order.total_amount, commission_rate)

    @staticmethod
    async def summary(db: AsyncSession, actor: Actor) -> dict:
        if not actor.is_admin:
            raise UnauthorizedActorError("Only an admin can view settlement totals")
        return await OrderRepository.settlement_totals(db)
