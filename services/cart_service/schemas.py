from pydantic import BaseModel, Field
from typing import List

class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(default=1, gt=0)

class CartItemResponse(BaseModel):
    product_id: int
    quantity: int

    class Config:
        from_attributes = True

class CartResponse(BaseModel):
    user_id: str
    items: List[CartItemResponse] = []
