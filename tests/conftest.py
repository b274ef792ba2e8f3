import os

# Must be set before any service module creates the engine or reads secrets
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TRACING_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = ""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shared.config.database import Base
from shared.security import Actor, Role

from services.cart_service.models import CartItem
from services.notification_service.email_sender import EmailResult
from services.notification_service.models import NotificationPreference
from services.notification_service.outbox import email_outbox
from services.order_service.schemas import ShippingAddress
from services.order_service.service import OrderService
from services.payment_service import models as payment_models  # noqa: F401
from services.product_service.models import Product

BUYER = Actor("buyer-1", Role.BUYER)
OTHER_BUYER = Actor("buyer-2", Role.BUYER)
SELLER = Actor("seller-1", Role.SELLER)
OTHER_SELLER = Actor("seller-2", Role.SELLER)
ADMIN = Actor("admin-1", Role.ADMIN)
PROCESSOR = Actor.payment_processor()

ADDRESS = ShippingAddress(
    full_name="Ada Buyer",
    street="1 Charity Lane",
    city="Springfield",
    state="IL",
    postal_code="62701",
    country="US",
)


class RecordingEmailSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send(self, to, subject, html):
        self.sent.append({"to": to, "subject": subject, "html": html})
        if self.fail:
            return EmailResult(ok=False, error="mail provider unavailable")
        return EmailResult(ok=True, provider_id=f"msg-{len(self.sent)}")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
async def email_sender():
    """Every test gets a fresh recording sender; anything left in the outbox is flushed to it."""
    original = email_outbox.sender
    sender = RecordingEmailSender()
    email_outbox.sender = sender
    yield sender
    await email_outbox.drain()
    email_outbox.sender = original


class Marketplace:
    """Seeds products, carts and orders in the states the tests need."""

    def __init__(self, db):
        self.db = db

    async def product(self, seller=SELLER, title="Hand-knitted scarf", price="20.00", available=True):
        product = Product(
            seller_id=seller.user_id,
            title=title,
            image_url=f"https://img.example/{title.replace(' ', '-').lower()}.jpg",
            price=Decimal(price),
            is_available=available,
        )
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def add_to_cart(self, product, quantity=1, buyer=BUYER):
        self.db.add(CartItem(user_id=buyer.user_id, product_id=product.id, quantity=quantity))
        await self.db.commit()

    async def preferences(self, user_id, email, **flags):
        self.db.add(NotificationPreference(user_id=user_id, email=email, full_name=user_id, **flags))
        await self.db.commit()

    async def pending_order(self, buyer=BUYER, lines=None):
        lines = lines or [(SELLER, "20.00", 1)]
        for seller, price, quantity in lines:
            product = await self.product(seller=seller, title=f"Item {price}", price=price)
            await self.add_to_cart(product, quantity, buyer=buyer)
        return await OrderService.checkout(self.db, buyer, ADDRESS)

    async def paid_order(self, **kwargs):
        order = await self.pending_order(**kwargs)
        return await OrderService.payment_confirmed(self.db, PROCESSOR, order.id)

    async def shipped_order(self, **kwargs):
        order = await self.paid_order(**kwargs)
        return await OrderService.add_shipping_info(self.db, SELLER, order.id, "1Z999AA10123456784", "UPS")

    async def delivered_order(self, **kwargs):
        order = await self.shipped_order(**kwargs)
        return await OrderService.confirm_delivery(self.db, kwargs.get("buyer", BUYER), order.id)


@pytest.fixture
def marketplace(db):
    return Marketplace(db)
