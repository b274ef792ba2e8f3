from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from .models import CartItem

class CartRepository:
    @staticmethod
    async def get_items(db: AsyncSession, user_id: str):
        result = await db.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        )
        return result.scalars().all()

    @staticmethod
    async def add_item(db: AsyncSession, item: CartItem):
        result = await db.execute(
            select(CartItem)
            .where(CartItem.user_id == item.user_id)
            .where(CartItem.product_id == item.product_id)
        )
        existing_item = result.scalars().first()

        if existing_item:
            existing_item.quantity += item.quantity
        else:
            db.add(item)
            
        await db.commit()
        return True
    
    @staticmethod
    async def remove_item(db: AsyncSession, user_id: str, product_id: int):
        stmt = delete(CartItem).where(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id
        )
        await db.execute(stmt)
        await db.commit()

    @staticmethod
    async def delete_all(db: AsyncSession, user_id: str):
        """Bulk-deletes the user's cart rows without committing.

        Checkout calls this inside the transaction that inserts the order,
        so the cart is only gone if the order exists.
        """
        stmt = delete(CartItem).where(CartItem.user_id == user_id)
        await db.execute(stmt)

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: str):
        await CartRepository.delete_all(db, user_id)
        await db.commit()
