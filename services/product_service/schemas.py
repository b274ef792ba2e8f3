from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

class ProductCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Decimal = Field(ge=0, decimal_places=2)

class AvailabilityUpdate(BaseModel):
    is_available: bool

class ProductResponse(BaseModel):
    id: int
    seller_id: str
    title: str
    description: Optional[str]
    image_url: Optional[str]
    price: Decimal
    is_available: bool

    class Config:
        from_attributes = True
