from __future__ import annotations

from pydantic import BaseModel, Field


class ProductOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    price: float
    stock_quantity: int
    is_active: bool
    image_url: str | None = None


class CartItemIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class CartQuantityUpdate(BaseModel):
    user_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class CartLineOut(BaseModel):
    product_id: str
    name: str
    price: float
    quantity: int
    line_total: float
    stock_quantity: int


class CartOut(BaseModel):
    user_id: str
    items: list[CartLineOut] = Field(default_factory=list)
    subtotal: float
    delivery_charge: float
    total: float
