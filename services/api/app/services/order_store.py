"""Order store access: products, cart items, orders, order items and the event log.

Functions take the caller's Session. Writes that belong to one checkout step commit
together; helpers marked "no commit" leave the transaction to the caller.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.payment import ORDER_STATUSES
from services.api.app.db.models import CartItem, EventLog, Order, OrderItem, Product
from services.api.app.logging_config import get_logger
from services.api.app.services.checkout_base import (
    CartItemNotFoundError,
    InsufficientStockError,
    InvalidOrderStatusError,
    OrderNotFoundError,
    PersistenceError,
    ProductNotFoundError,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

log = get_logger(__name__)

_CENTS = Decimal("0.01")

# Orders moved into these statuses no longer hold their stock.
STOCK_RELEASING_STATUSES = ("cancelled", "failed")


def new_id() -> str:
    return uuid4().hex


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(_CENTS)


def get_product(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def list_products(db: Session, *, active_only: bool = True) -> list[Product]:
    query = db.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.created_at.desc(), Product.name).all()


def list_cart(db: Session, user_id: str) -> list[CartItem]:
    return (
        db.query(CartItem)
        .options(selectinload(CartItem.product))
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.created_at, CartItem.id)
        .all()
    )


def cart_subtotal(items: list[CartItem]) -> Decimal:
    return to_money(sum((to_money(i.product.price) * i.quantity for i in items), Decimal("0")))


def add_to_cart(db: Session, user_id: str, product_id: str, quantity: int) -> CartItem:
    product = get_product(db, product_id)
    if not product.is_active:
        raise ProductNotFoundError(product_id)

    item = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .one_or_none()
    )
    wanted = quantity + (item.quantity if item is not None else 0)
    if wanted > product.stock_quantity:
        raise InsufficientStockError(product.name, product.stock_quantity, wanted)

    if item is None:
        item = CartItem(id=new_id(), user_id=user_id, product_id=product_id, quantity=wanted)
        db.add(item)
    else:
        item.quantity = wanted

    commit(db, f"add product {product_id} to cart of {user_id}")
    return item


def set_cart_quantity(db: Session, user_id: str, product_id: str, quantity: int) -> CartItem:
    item = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .one_or_none()
    )
    if item is None:
        raise CartItemNotFoundError(product_id)

    product = get_product(db, product_id)
    if quantity > product.stock_quantity:
        raise InsufficientStockError(product.name, product.stock_quantity, quantity)

    item.quantity = quantity
    commit(db, f"update cart quantity for product {product_id}")
    return item


def remove_from_cart(db: Session, user_id: str, product_id: str) -> None:
    deleted = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id == product_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise CartItemNotFoundError(product_id)
    commit(db, f"remove product {product_id} from cart")


def take_from_cart(db: Session, user_id: str, quantities: dict[str, int]) -> dict[str, int]:
    """Reduce cart lines by the given per-product quantities. No commit.

    A line whose quantity drops to zero is deleted. Returns what was actually taken.
    """

    if not quantities:
        return {}

    taken: dict[str, int] = {}
    items = (
        db.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.product_id.in_(list(quantities)))
        .all()
    )
    for item in items:
        wanted = quantities[item.product_id]
        taken[item.product_id] = min(wanted, item.quantity)
        if item.quantity <= wanted:
            db.delete(item)
        else:
            item.quantity -= wanted
    return taken


def create_pending_order(
    db: Session,
    *,
    user_id: str,
    shipping_address: dict,
    cart_items: list[CartItem],
    delivery_charge: Decimal,
) -> Order:
    """Snapshot the cart into a pending order and its items, and take the stock.

    Stock is re-read and checked before anything is written. Order, items, stock
    decrement and the ORDER_CREATED event commit together.
    """

    lines: list[tuple[Product, int]] = []
    for item in cart_items:
        product = get_product(db, item.product_id)
        if product.stock_quantity < item.quantity:
            raise InsufficientStockError(product.name, product.stock_quantity, item.quantity)
        lines.append((product, item.quantity))

    subtotal = sum((to_money(p.price) * qty for p, qty in lines), Decimal("0"))
    total = to_money(subtotal + delivery_charge)

    order = Order(
        id=new_id(),
        user_id=user_id,
        total_amount=total,
        status="pending",
        shipping_address=shipping_address,
    )
    db.add(order)

    for product, qty in lines:
        db.add(
            OrderItem(
                id=new_id(),
                order_id=order.id,
                product_id=product.id,
                quantity=qty,
                price=to_money(product.price),
            )
        )
        product.stock_quantity = max(0, product.stock_quantity - qty)

    log_event(
        db,
        user_id=user_id,
        entity_type=EntityTypeV1.ORDER,
        entity_id=order.id,
        event_type=EventTypeV1.ORDER_CREATED,
        event_payload={
            "total_amount": str(total),
            "delivery_charge": str(to_money(delivery_charge)),
            "items": [
                {"product_id": p.id, "quantity": qty, "price": str(to_money(p.price))}
                for p, qty in lines
            ],
        },
    )

    commit(db, f"create order for {user_id}")
    log.info(f"[Order: {order.id}] Pending order created total={total} items={len(lines)}")
    return order


def release_stock(db: Session, order: Order, *, reason: str) -> bool:
    """Give an order's quantities back to product stock, once per order. No commit.

    Flushes so a second call in the same transaction sees the STOCK_RELEASED event.
    """

    if any(e.event_type == EventTypeV1.STOCK_RELEASED.value for e in list_events(db, order.id)):
        return False

    for item in order.items:
        product = get_product(db, item.product_id)
        product.stock_quantity += item.quantity

    log_event(
        db,
        user_id=order.user_id,
        entity_type=EntityTypeV1.ORDER,
        entity_id=order.id,
        event_type=EventTypeV1.STOCK_RELEASED,
        event_payload={
            "reason": reason,
            "items": [{"product_id": i.product_id, "quantity": i.quantity} for i in order.items],
        },
    )
    db.flush()
    log.info(f"[Order: {order.id}] Stock released ({reason})")
    return True


def get_order(db: Session, order_id: str) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .filter(Order.id == order_id)
        .one_or_none()
    )
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def list_orders(
    db: Session, *, user_id: str | None = None, status: str | None = None, limit: int = 200
) -> list[Order]:
    query = db.query(Order).options(selectinload(Order.items).selectinload(OrderItem.product))
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    if status is not None:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc()).limit(limit).all()


def set_order_status(
    db: Session,
    order: Order,
    status: str,
    *,
    user_id: str | None = None,
    reason: str,
) -> str:
    """Write a new status onto an order and log it. No commit. Returns the old status."""

    if status not in ORDER_STATUSES:
        raise InvalidOrderStatusError(status)

    old_status = order.status
    order.status = status
    log_event(
        db,
        user_id=user_id,
        entity_type=EntityTypeV1.ORDER,
        entity_id=order.id,
        event_type=EventTypeV1.ORDER_STATUS_CHANGED,
        event_payload={"old_status": old_status, "new_status": status, "reason": reason},
    )
    log.info(f"[Order: {order.id}] Status {old_status!r} -> {status!r} ({reason})")

    if status in STOCK_RELEASING_STATUSES and old_status not in STOCK_RELEASING_STATUSES:
        release_stock(db, order, reason=f"order {status}")
    return old_status


def update_order_status(
    db: Session, order_id: str, status: str, *, user_id: str | None = None, reason: str
) -> tuple[str, Order]:
    if status not in ORDER_STATUSES:
        raise InvalidOrderStatusError(status)

    order = get_order(db, order_id)
    old_status = set_order_status(db, order, status, user_id=user_id, reason=reason)
    commit(db, f"update status of order {order_id}")
    return old_status, order


def log_event(
    db: Session,
    *,
    user_id: str | None,
    entity_type: EntityTypeV1,
    entity_id: str,
    event_type: EventTypeV1,
    event_payload: dict,
) -> None:
    db.add(
        EventLog(
            id=new_id(),
            user_id=user_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            event_type=event_type.value,
            event_payload_json=event_payload,
        )
    )


def list_events(db: Session, entity_id: str) -> list[EventLog]:
    return (
        db.query(EventLog)
        .filter(EventLog.entity_id == entity_id)
        .order_by(EventLog.created_at)
        .all()
    )


def commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Order store write failed ({what}): {e}")
        raise PersistenceError(f"Failed to {what}") from e
