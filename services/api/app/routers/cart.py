from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Response
from services.api.app.config import Settings, get_settings
from services.api.app.db.deps import get_db
from services.api.app.db.models import Product
from services.api.app.models.cart import (
    CartItemIn,
    CartLineOut,
    CartOut,
    CartQuantityUpdate,
    ProductOut,
)
from services.api.app.services import order_store
from services.api.app.services.checkout_base import (
    InsufficientStockError,
    PersistenceError,
    RecordNotFoundError,
)
from sqlalchemy.orm import Session

router = APIRouter()


def _raise_cart_http_error(e: Exception) -> None:
    if isinstance(e, RecordNotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, InsufficientStockError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, PersistenceError):
        raise HTTPException(status_code=500, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def _product_out(p: Product) -> ProductOut:
    return ProductOut(
        id=p.id,
        name=p.name,
        description=p.description,
        price=float(p.price),
        stock_quantity=p.stock_quantity,
        is_active=p.is_active,
        image_url=p.image_url,
    )


def _cart_out(db: Session, user_id: str, settings: Settings) -> CartOut:
    items = order_store.list_cart(db, user_id)
    subtotal = order_store.cart_subtotal(items)
    delivery = settings.delivery_charge if items else Decimal("0")

    return CartOut(
        user_id=user_id,
        items=[
            CartLineOut(
                product_id=i.product_id,
                name=i.product.name,
                price=float(i.product.price),
                quantity=i.quantity,
                line_total=float(order_store.to_money(i.product.price) * i.quantity),
                stock_quantity=i.product.stock_quantity,
            )
            for i in items
        ],
        subtotal=float(subtotal),
        delivery_charge=float(delivery),
        total=float(subtotal + delivery),
    )


@router.get("/v1/products", response_model=list[ProductOut])
def list_products(db: Session = Depends(get_db)) -> list[ProductOut]:
    return [_product_out(p) for p in order_store.list_products(db)]


@router.get("/v1/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Session = Depends(get_db)) -> ProductOut:
    try:
        product = order_store.get_product(db, product_id)
    except Exception as e:
        _raise_cart_http_error(e)

    return _product_out(product)


@router.get("/v1/cart", response_model=CartOut)
def get_cart(
    user_id: str, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)
) -> CartOut:
    return _cart_out(db, user_id, settings)


@router.post("/v1/cart/items", response_model=CartOut)
def add_cart_item(
    payload: CartItemIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CartOut:
    try:
        order_store.add_to_cart(db, payload.user_id, payload.product_id, payload.quantity)
    except Exception as e:
        _raise_cart_http_error(e)

    return _cart_out(db, payload.user_id, settings)


@router.patch("/v1/cart/items/{product_id}", response_model=CartOut)
def update_cart_item(
    product_id: str,
    payload: CartQuantityUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CartOut:
    try:
        order_store.set_cart_quantity(db, payload.user_id, product_id, payload.quantity)
    except Exception as e:
        _raise_cart_http_error(e)

    return _cart_out(db, payload.user_id, settings)


@router.delete("/v1/cart/items/{product_id}", status_code=204)
def remove_cart_item(product_id: str, user_id: str, db: Session = Depends(get_db)) -> Response:
    try:
        order_store.remove_from_cart(db, user_id, product_id)
    except Exception as e:
        _raise_cart_http_error(e)

    return Response(status_code=204)
