from fastapi import FastAPI
from shared.config.database import AsyncSessionLocal, create_tables

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.cart_service import models as cart_models
from services.order_service import models as order_models
from services.payment_service import models as payment_models
from services.notification_service import models as notification_models

from services.product_service.main import product_app
from services.cart_service.main import cart_app
from services.order_service.main import order_app
from services.payment_service.main import payment_app
from services.notification_service.main import notification_app
from services.notification_service.dispatcher import notification_dispatcher
from services.notification_service.outbox import email_outbox

app = FastAPI(title="Charity Marketplace")

# Mounted apps don't get lifespan events, so the cluster does their startup work
@app.on_event("startup")
async def startup_event():
    await create_tables()
    email_outbox.start()
    async with AsyncSessionLocal() as db:
        await notification_dispatcher.dispatch_pending(db)

@app.on_event("shutdown")
async def shutdown_event():
    await email_outbox.drain()
    await email_outbox.stop()

app.mount("/products", product_app)
app.mount("/cart", cart_app)
app.mount("/orders", order_app)
app.mount("/payments", payment_app)
app.mount("/notifications", notification_app)
