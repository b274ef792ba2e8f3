from fastapi import FastAPI

from shared.config.database import create_tables
from shared.observability.setup import setup_observability

from .models import CartItem
from .router import router, public_router

cart_app = FastAPI(title="Cart Service", version="2.0.0")

setup_observability(cart_app, "cart_service")
cart_app.include_router(public_router)
cart_app.include_router(router)

@cart_app.on_event("startup")
async def startup_event():
    await create_tables()
