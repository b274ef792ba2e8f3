from sqlalchemy.ext.asyncio import AsyncSession
from shared.security import Actor
from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate

class ProductService:

    @staticmethod
    async def create_product(db: AsyncSession, actor: Actor, data: ProductCreate):
        product = Product(
            seller_id=actor.user_id,
            title=data.title,
            description=data.description,
            image_url=data.image_url,
            price=data.price,
            is_available=True
        )
        return await ProductRepository.create_product(db, product)

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int):
        return await ProductRepository.get_product_by_id(db, product_id)

    @staticmethod
    async def set_availability(db: AsyncSession, actor: Actor, product_id: int, is_available: bool):
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            return None
        if product.seller_id != actor.user_id and not actor.is_admin:
            raise PermissionError("Only the seller or an admin can change this listing")

        product.is_available = is_available
        return await ProductRepository.update_product(db, product)
