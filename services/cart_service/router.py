"""
Cart endpoints act on the caller's own cart only; the user id always comes
from the bearer token, never from the path or body.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import Actor, get_current_actor

from .schemas import CartItemCreate, CartResponse
from .service import CartService

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "cart", "status": "running"}


@router.get("/", response_model=CartResponse)
async def get_cart(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    return await CartService.get_cart(db, actor.user_id)


@router.post("/items", response_model=CartResponse)
async def add_item(
    item: CartItemCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await CartService.add_item(db, actor.user_id, item)


@router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_item(
    product_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await CartService.remove_item(db, actor.user_id, product_id)


@router.delete("/", status_code=204)
async def clear_cart(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    """Deletes all items in the caller's cart."""
    await CartService.clear_cart(db, actor.user_id)
    return
