from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from shared.config.database import get_db
from shared.security import Actor, get_current_actor
from .schemas import AvailabilityUpdate, ProductCreate, ProductResponse
from .service import ProductService

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)

@public_router.get("/health")
async def health_check():
    return {"service": "product", "status": "running"}


@router.post("/", response_model=ProductResponse)
async def create_product(
    product: ProductCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await ProductService.create_product(db, actor, product)

@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db)
):
    product = await ProductService.get_product_by_id(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product

@router.patch("/{product_id}/availability", response_model=ProductResponse)
async def set_availability(
    product_id: int,
    payload: AvailabilityUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    try:
        product = await ProductService.set_availability(db, actor, product_id, payload.is_available)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
