"""Shared event schema (v1).

The backend stores an append-only event log per order. The admin dashboard renders these
events as the order's audit trail.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    ORDER = "Order"


class EventTypeV1(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    CHECKOUT_SESSION_CREATED = "CHECKOUT_SESSION_CREATED"
    CHECKOUT_SESSION_FAILED = "CHECKOUT_SESSION_FAILED"
    PAYMENT_VERIFIED = "PAYMENT_VERIFIED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    CART_CLEARED = "CART_CLEARED"
    STOCK_RELEASED = "STOCK_RELEASED"


class EventV1(BaseModel):
    id: str
    user_id: str | None = None

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
