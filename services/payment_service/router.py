"""
/charge is called by the buyer (JWT). /webhook is called by the payment
processor and is protected by X-Internal-API-Key.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.errors import OrderLifecycleError
from shared.config.database import get_db
from shared.security import Actor, get_current_actor, limiter
from shared.security.dependencies import verify_internal_api_key
from shared.security.rate_limiter import CHECKOUT_RATE_LIMIT

from .schemas import ChargeRequest, ChargeResponse, PaymentWebhook, WebhookAck
from .service import PaymentService

router = APIRouter()
webhook_router = APIRouter(dependencies=[Depends(verify_internal_api_key)])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@router.post("/charge", response_model=ChargeResponse)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def charge(
    request: Request,
    payload: ChargeRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    try:
        payment, order = await PaymentService.charge(db, actor, payload.order_id)
    except OrderLifecycleError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": type(e).__name__, "message": str(e)})
    return ChargeResponse(payment=payment, order_status=order.status, payment_status=order.payment_status)


@webhook_router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(event: PaymentWebhook, db: AsyncSession = Depends(get_db)):
    try:
        result, order = await PaymentService.handle_webhook(db, event)
    except OrderLifecycleError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": type(e).__name__, "message": str(e)})
    return WebhookAck(order_id=event.order_id, result=result, payment_status=order.payment_status)
