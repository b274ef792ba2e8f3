"""
Cart -> Order compiler.

Snapshots the buyer's cart into an immutable order at checkout time. Line
items copy the product's title, image, seller and current price, so later
edits to (or deletion of) a listing never change a historical order.
"""
import secrets
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.cart_service.repository import CartRepository
from services.product_service.repository import ProductRepository
from shared.observability import (
    marketplace_checkout_duration_seconds,
    marketplace_checkout_excluded_lines_total,
)

from . import ledger, state_machine
from .errors import EmptyCartError
from .models import Order, OrderLineItem
from .repository import OrderRepository

logger = structlog.get_logger(__name__)


def generate_order_number(now: datetime = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


class CartOrderCompiler:
    @staticmethod
    async def compile(db: AsyncSession, cart_items, shipping_address, buyer_id: str) -> Order:
        """
        Builds and persists the order, then clears the buyer's cart, in one
        transaction. Cart lines whose product is gone or no longer available
        are left out of the order and its total.
        """
        if not cart_items:
            raise EmptyCartError()

        with marketplace_checkout_duration_seconds.time():
            products = await ProductRepository.get_products_by_ids(
                db, {line.product_id for line in cart_items}
            )

            line_items = []
            for line in cart_items:
                product = products.get(line.product_id)
                if product is None or not product.is_available:
                    logger.info(
                        "checkout_line_excluded",
                        buyer_id=buyer_id,
                        product_id=line.product_id,
                        reason="missing" if product is None else "unavailable",
                    )
                    marketplace_checkout_excluded_lines_total.inc()
                    continue
                if line.quantity <= 0:
                    logger.info(
                        "checkout_line_excluded",
                        buyer_id=buyer_id,
                        product_id=line.product_id,
                        reason="invalid_quantity",
                        quantity=line.quantity,
                    )
                    marketplace_checkout_excluded_lines_total.inc()
                    continue
                line_items.append(OrderLineItem(
                    product_id=product.id,
                    seller_id=product.seller_id,
                    product_title=product.title,
                    product_image=product.image_url,
                    price=ledger.to_money(product.price),
                    quantity=line.quantity,
                ))

            if not line_items:
                raise EmptyCartError("None of the items in the cart are still available")

            total = sum((item.price * item.quantity for item in line_items), ledger.to_money(0))
            order = Order(
                order_number=generate_order_number(),
                buyer_id=buyer_id,
                total_amount=ledger.to_money(total),
                shipping_full_name=shipping_address.full_name,
                shipping_street=shipping_address.street,
                shipping_city=shipping_address.city,
                shipping_state=shipping_address.state,
                shipping_postal_code=shipping_address.postal_code,
                shipping_country=shipping_address.country,
                shipping_phone=shipping_address.phone,
                **state_machine.initial_state(),
            )

            try:
                await OrderRepository.create_order(db, order, line_items)
                await CartRepository.delete_all(db, buyer_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "order_compiled",
            order_id=order.id,
            order_number=order.order_number,
            buyer_id=buyer_id,
            line_count=len(line_items),
            total_amount=str(order.total_amount),
        )
        return await OrderRepository.get_order(db, order.id)
