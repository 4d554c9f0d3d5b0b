"""Shared checkout/payment vocabulary (v1).

The storefront web client and the admin dashboard both render these values. They should
remain stable once shipped.
"""

from __future__ import annotations

from enum import Enum


class PaymentStatusV1(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    # We could not reach the gateway, so the true state is not known.
    UNKNOWN = "UNKNOWN"


class CheckoutStateV1(str, Enum):
    COLLECTING_SHIPPING_INFO = "collecting-shipping-info"
    SUBMITTING_ORDER = "submitting-order"
    AWAITING_GATEWAY_REDIRECT = "awaiting-gateway-redirect"
    RETURNED_FROM_GATEWAY = "returned-from-gateway"
    VERIFYING_PAYMENT = "verifying-payment"

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"

    @property
    def is_terminal(self) -> bool:
        return self in {CheckoutStateV1.SUCCESS, CheckoutStateV1.FAILED, CheckoutStateV1.PENDING}


# Order statuses are free text in the store; these are the values the admin can pick.
ORDER_STATUSES: tuple[str, ...] = (
    "pending",
    "paid",
    "confirmed",
    "processing",
    "shipped",
    "out for delivery",
    "delivered",
    "cancelled",
    "refunded",
    "failed",
)
