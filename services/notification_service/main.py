from fastapi import FastAPI

from shared.config.database import AsyncSessionLocal, create_tables
from shared.observability import setup_observability

from .dispatcher import notification_dispatcher
from .models import NotificationPreference, NotificationRecord # Import to register with Base
from .outbox import email_outbox
from .router import router, public_router

notification_app = FastAPI(title="Notification Service", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(notification_app, "notification_service")

notification_app.include_router(public_router)
notification_app.include_router(router)

@notification_app.on_event("startup")
async def startup_event():
    await create_tables()
    email_outbox.start()
    # Recover events whose transition committed but whose notifications never went out
    async with AsyncSessionLocal() as db:
        await notification_dispatcher.dispatch_pending(db)

@notification_app.on_event("shutdown")
async def shutdown_event():
    await email_outbox.drain()
    await email_outbox.stop()
