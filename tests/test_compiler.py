from decimal import Decimal

import pytest
from prometheus_client import REGISTRY

from services.cart_service.repository import CartRepository
from services.order_service.compiler import CartOrderCompiler, generate_order_number
from services.order_service.errors import EmptyCartError
from services.order_service.repository import OrderRepository
from conftest import ADDRESS, BUYER, OTHER_SELLER, SELLER


async def test_cart_compiles_into_pending_order_with_frozen_lines(db, marketplace):
    scarf = await marketplace.product(title="Scarf", price="20.00")
    mugs = await marketplace.product(seller=OTHER_SELLER, title="Mug", price="15.00")
    await marketplace.add_to_cart(scarf, 1)
    await marketplace.add_to_cart(mugs, 2)

    cart = await CartRepository.get_items(db, BUYER.user_id)
    order = await CartOrderCompiler.compile(db, cart, ADDRESS, BUYER.user_id)

    assert order.total_amount == Decimal("50.00")
    assert order.status == "pending"
    assert order.payment_status == "pending"
    assert order.buyer_id == BUYER.user_id
    assert order.shipping_city == "Springfield"
    assert order.order_number.startswith("ORD-")
    assert [(i.product_title, i.price, i.quantity) for i in order.items] == [
        ("Scarf", Decimal("20.00"), 1),
        ("Mug", Decimal("15.00"), 2),
    ]
    assert order.seller_ids == [SELLER.user_id, OTHER_SELLER.user_id]


async def test_cart_is_cleared_after_compile(db, marketplace):
    scarf = await marketplace.product()
    await marketplace.add_to_cart(scarf)

    await CartOrderCompiler.compile(db, await CartRepository.get_items(db, BUYER.user_id), ADDRESS, BUYER.user_id)

    assert await CartRepository.get_items(db, BUYER.user_id) == []


async def test_unavailable_product_is_left_out_of_the_total(db, marketplace):
    scarf = await marketplace.product(title="Scarf", price="20.00")
    mugs = await marketplace.product(title="Mug", price="15.00")
    await marketplace.add_to_cart(scarf, 1)
    await marketplace.add_to_cart(mugs, 2)

    mugs.is_available = False
    await db.commit()

    order = await CartOrderCompiler.compile(db, await CartRepository.get_items(db, BUYER.user_id), ADDRESS, BUYER.user_id)

    assert order.total_amount == Decimal("20.00")
    assert len(order.items) == 1
    assert order.items[0].product_title == "Scarf"


async def test_deleted_product_is_left_out(db, marketplace):
    scarf = await marketplace.product(price="20.00")
    gone = await marketplace.product(price="99.00")
    await marketplace.add_to_cart(scarf)
    await marketplace.add_to_cart(gone)

    await db.delete(gone)
    await db.commit()

    order = await CartOrderCompiler.compile(db, await CartRepository.get_items(db, BUYER.user_id), ADDRESS, BUYER.user_id)
    assert order.total_amount == Decimal("20.00")


async def test_empty_cart_is_rejected(db):
    with pytest.raises(EmptyCartError):
        await CartOrderCompiler.compile(db, [], ADDRESS, BUYER.user_id)


async def test_cart_of_only_unavailable_items_is_rejected_and_kept(db, marketplace):
    sold = await marketplace.product(available=False)
    await marketplace.add_to_cart(sold)

    with pytest.raises(EmptyCartError):
        await CartOrderCompiler.compile(db, await CartRepository.get_items(db, BUYER.user_id), ADDRESS, BUYER.user_id)

    assert len(await CartRepository.get_items(db, BUYER.user_id)) == 1


async def test_non_positive_quantity_is_excluded_and_counted(db, marketplace):
    scarf = await marketplace.product(title="Scarf", price="20.00")
    mug = await marketplace.product(title="Mug", price="15.00")
    await marketplace.add_to_cart(scarf, 1)
    await marketplace.add_to_cart(mug, 0)
    before = REGISTRY.get_sample_value("marketplace_checkout_excluded_lines_total")

    order = await CartOrderCompiler.compile(db, await CartRepository.get_items(db, BUYER.user_id), ADDRESS, BUYER.user_id)

    assert [i.product_title for i in order.items] == ["Scarf"]
    assert order.total_amount == Decimal("20.00")
    assert REGISTRY.get_sample_value("marketplace_checkout_excluded_lines_total") == before + 1


async def test_later_price_edit_does_not_touch_the_order(db, marketplace):
    scarf = await marketplace.product(price="20.00")
    await marketplace.add_to_cart(scarf)
    order = await CartOrderCompiler.compile(db, await CartRepository.get_items(db, BUYER.user_id), ADDRESS, BUYER.user_id)

    scarf.price = Decimal("35.00")
    scarf.title = "Renamed scarf"
    await db.commit()

    reloaded = await OrderRepository.get_order(db, order.id)
    assert reloaded.total_amount == Decimal("20.00")
    assert reloaded.items[0].price == Decimal("20.00")
    assert reloaded.items[0].product_title == "Hand-knitted scarf"


def test_order_numbers_are_dated_and_distinct():
    numbers = {generate_order_number() for _ in range(50)}
    assert len(numbers) == 50
    assert all(n.startswith("ORD-") and len(n) == len("ORD-20261018-ABC123") for n in numbers)
