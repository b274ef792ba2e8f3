import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.errors import (
    IllegalTransitionError,
    OrderNotFoundError,
    PaymentAlreadyProcessedError,
    UnauthorizedActorError,
)
from services.order_service.models import OrderStatus, PaymentStatus
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService
from shared.security import Actor

from .models import Payment
from .processor import PaymentProcessor, payment_processor
from .repository import PaymentRepository
from .schemas import PaymentWebhook

logger = structlog.get_logger(__name__)


class PaymentService:
    @staticmethod
    async def charge(db: AsyncSession, actor: Actor, order_id: str,
                     processor: PaymentProcessor = None):
        """Charges the buyer's pending order and feeds the result into the order lifecycle."""
        processor = processor or payment_processor
        order = await OrderRepository.get_order(db, order_id)
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if order.buyer_id != actor.user_id:
            raise UnauthorizedActorError("Only the buyer can pay for this order")
        if order.payment_status != PaymentStatus.PENDING.value:
            raise PaymentAlreadyProcessedError(
                f"Payment for order {order.order_number} is already '{order.payment_status}'"
            )
        # A cancelled order keeps payment 'pending'; it must never reach the processor
        if order.status != OrderStatus.PENDING.value:
            raise IllegalTransitionError(
                f"Cannot pay for order {order.order_number} in status '{order.status}'"
            )

        amount = order.total_amount
        result = await processor.charge(order_id, amount)
        payment = await PaymentRepository.create_payment(db, Payment(
            order_id=order_id,
            amount=amount,
            status="success" if result.success else "failed",
            transaction_id=result.transaction_id,
            failure_reason=result.failure_reason,
        ))
        logger.info("payment_charged", order_id=order_id, success=result.success,
                    transaction_id=result.transaction_id)

        system = Actor.payment_processor()
        try:
            if result.success:
                order = await OrderService.payment_confirmed(db, system, order_id)
            else:
                order = await OrderService.payment_failed(db, system, order_id, result.failure_reason or "declined")
        except PaymentAlreadyProcessedError:
            # The processor webhook beat us to it
            order = await OrderRepository.get_order(db, order_id)
        return payment, order

    @staticmethod
    async def handle_webhook(db: AsyncSession, event: PaymentWebhook):
        """
        Terminal callback from the processor. Redeliveries are expected: a
        PaymentAlreadyProcessedError means the first delivery already won.
        A result for an order that was cancelled in the meantime is
        acknowledged as "rejected" so the processor stops retrying; the
        order stays cancelled and the charge needs a manual refund.
        Returns (result, order).
        """
        system = Actor.payment_processor()
        try:
            if event.event == "payment_succeeded":
                order = await OrderService.payment_confirmed(db, system, event.order_id)
            else:
                order = await OrderService.payment_failed(db, system, event.order_id, event.reason or "declined")
        except PaymentAlreadyProcessedError:
            logger.info("payment_webhook_redelivered", order_id=event.order_id, webhook_event=event.event,
                        transaction_id=event.transaction_id)
            order = await OrderRepository.get_order(db, event.order_id)
            return "already_processed", order
        except IllegalTransitionError:
            logger.error("payment_webhook_rejected", order_id=event.order_id, webhook_event=event.event,
                         transaction_id=event.transaction_id)
            order = await OrderRepository.get_order(db, event.order_id)
            return "rejected", order
        return "applied", order
