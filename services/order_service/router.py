from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.config.database import get_db
from shared.security import Actor, get_current_actor, limiter
from shared.security.rate_limiter import CHECKOUT_RATE_LIMIT

from .errors import OrderLifecycleError
from .schemas import (
    CheckoutRequest,
    OrderResponse,
    ReleasePaymentRequest,
    SettlementPreviewResponse,
    SettlementResponse,
    SettlementSummaryResponse,
    ShippingInfo,
)
from .service import OrderService
from .settlement import SettlementCoordinator

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)


def to_http(e: OrderLifecycleError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail={"error": type(e).__name__, "message": str(e)})


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@router.post("/checkout", response_model=OrderResponse, status_code=201)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def checkout(
    request: Request,                          # REQUIRED: slowapi needs this to check IP/Headers
    payload: CheckoutRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await OrderService.checkout(db, actor, payload.shipping_address)
    except OrderLifecycleError as e:
        raise to_http(e)


@router.get("/mine", response_model=List[OrderResponse])
async def list_purchases(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    return await OrderService.list_purchases(db, actor)


@router.get("/selling", response_model=List[OrderResponse])
async def list_sales(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    return await OrderService.list_sales(db, actor)


@router.get("/settlements/summary", response_model=SettlementSummaryResponse)
async def settlement_summary(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    try:
        return await SettlementCoordinator.summary(db, actor)
    except OrderLifecycleError as e:
        raise to_http(e)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    try:
        return await OrderService.get_order(db, actor, order_id)
    except OrderLifecycleError as e:
        raise to_http(e)


@router.post("/{order_id}/shipping", response_model=OrderResponse)
async def add_shipping_info(
    order_id: str,
    info: ShippingInfo,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await OrderService.add_shipping_info(
            db, actor, order_id, info.tracking_number, info.shipping_carrier
        )
    except OrderLifecycleError as e:
        raise to_http(e)


@router.post("/{order_id}/confirm-delivery", response_model=OrderResponse)
async def confirm_delivery(order_id: str, actor: Actor = Depends(get_current_actor),
                           db: AsyncSession = Depends(get_db)):
    try:
        return await OrderService.confirm_delivery(db, actor, order_id)
    except OrderLifecycleError as e:
        raise to_http(e)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    try:
        return await OrderService.cancel(db, actor, order_id)
    except OrderLifecycleError as e:
        raise to_http(e)


@router.post("/{order_id}/release-payment", response_model=SettlementResponse)
async def release_payment(
    order_id: str,
    payload: ReleasePaymentRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    rate = payload.commission_rate if payload.commission_rate is not None else settings.DEFAULT_COMMISSION_RATE
    try:
        result = await SettlementCoordinator.release_payment(
            db, actor, order_id, rate, payload.transfer_notes
        )
    except OrderLifecycleError as e:
        raise to_http(e)
    # A repeated release is answered with the original split, not an error
    return SettlementResponse(
        order_id=result.order_id,
        total_amount=result.split.total,
        commission_rate=result.split.commission_rate,
        admin_commission=result.split.commission,
        seller_amount=result.split.seller_amount,
        released_now=result.released_now,
    )


@router.get("/{order_id}/settlement-preview", response_model=SettlementPreviewResponse)
async def settlement_preview(
    order_id: str,
    commission_rate: Optional[Decimal] = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    rate = commission_rate if commission_rate is not None else settings.DEFAULT_COMMISSION_RATE
    try:
        estimate = await SettlementCoordinator.preview(db, actor, order_id, rate)
    except OrderLifecycleError as e:
        raise to_http(e)
    return SettlementPreviewResponse(
        order_id=order_id,
        total_amount=estimate.total,
        commission_rate=estimate.commission_rate,
        admin_commission=estimate.commission,
        seller_amount=estimate.seller_amount,
        is_estimate=estimate.is_estimate,
    )
