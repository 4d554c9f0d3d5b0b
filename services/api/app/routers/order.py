from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from packages.shared.schemas.events import EventV1
from services.api.app.db.deps import get_db
from services.api.app.db.models import Order
from services.api.app.models.order import (
    OrderEventsOut,
    OrderItemOut,
    OrderOut,
    OrderStatusUpdate,
)
from services.api.app.services import order_store
from services.api.app.services.checkout_base import (
    InvalidOrderStatusError,
    OrderNotFoundError,
    PersistenceError,
)
from sqlalchemy.orm import Session

router = APIRouter()


def _raise_order_http_error(e: Exception) -> None:
    if isinstance(e, OrderNotFoundError):
        raise HTTPException(status_code=404, detail="Order not found") from e

    if isinstance(e, InvalidOrderStatusError):
        raise HTTPException(status_code=422, detail=str(e)) from e

    if isinstance(e, PersistenceError):
        raise HTTPException(status_code=500, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def order_to_out(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        user_id=order.user_id,
        total_amount=float(order.total_amount),
        status=order.status,
        shipping_address=order.shipping_address or {},
        created_at=order.created_at.isoformat(),
        updated_at=order.updated_at.isoformat(),
        items=[
            OrderItemOut(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product.name if item.product is not None else None,
                quantity=item.quantity,
                price=float(item.price),
                line_total=float(item.price * item.quantity),
            )
            for item in order.items
        ],
    )


@router.get("/v1/orders", response_model=list[OrderOut])
def list_user_orders(user_id: str, db: Session = Depends(get_db)) -> list[OrderOut]:
    return [order_to_out(o) for o in order_store.list_orders(db, user_id=user_id)]


@router.get("/v1/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db)) -> OrderOut:
    try:
        order = order_store.get_order(db, order_id)
    except Exception as e:
        _raise_order_http_error(e)

    return order_to_out(order)


@router.get("/v1/orders/{order_id}/events", response_model=OrderEventsOut)
def get_order_events(order_id: str, db: Session = Depends(get_db)) -> OrderEventsOut:
    try:
        order_store.get_order(db, order_id)
    except Exception as e:
        _raise_order_http_error(e)

    events = [
        EventV1(
            id=row.id,
            user_id=row.user_id,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            event_type=row.event_type,
            payload=row.event_payload_json,
            created_at=row.created_at.isoformat(),
        )
        for row in order_store.list_events(db, order_id)
    ]
    return OrderEventsOut(order_id=order_id, events=events)


@router.get("/v1/admin/orders", response_model=list[OrderOut])
def admin_list_orders(status: str | None = None, db: Session = Depends(get_db)) -> list[OrderOut]:
    return [order_to_out(o) for o in order_store.list_orders(db, status=status)]


@router.patch("/v1/admin/orders/{order_id}/status", response_model=OrderOut)
def admin_update_order_status(
    order_id: str, payload: OrderStatusUpdate, db: Session = Depends(get_db)
) -> OrderOut:
    try:
        _old, order = order_store.update_order_status(
            db, order_id, payload.status, reason="admin dashboard"
        )
    except Exception as e:
        _raise_order_http_error(e)

    return order_to_out(order_store.get_order(db, order.id))
