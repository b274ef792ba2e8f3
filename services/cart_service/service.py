from sqlalchemy.ext.asyncio import AsyncSession
from .models import CartItem
from .repository import CartRepository
from .schemas import CartItemCreate, CartResponse

class CartService:
    @staticmethod
    async def get_cart(db: AsyncSession, user_id: str) -> CartResponse:
        items = await CartRepository.get_items(db, user_id)
        return CartResponse(user_id=user_id, items=items)

    @staticmethod
    async def add_item(db: AsyncSession, user_id: str, item_data: CartItemCreate) -> CartResponse:
        item = CartItem(
            user_id=user_id,
            product_id=item_data.product_id,
            quantity=item_data.quantity
        )
        await CartRepository.add_item(db, item)
        return await CartService.get_cart(db, user_id)

    @staticmethod
    async def remove_item(db: AsyncSession, user_id: str, product_id: int) -> CartResponse:
        await CartRepository.remove_item(db, user_id, product_id)
        return await CartService.get_cart(db, user_id)

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: str):
        await CartRepository.clear_cart(db, user_id)
