from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from packages.shared.schemas.payment import PaymentStatusV1


class PaymentGatewayError(Exception):
    """Base class for payment gateway errors."""


class GatewayInputError(PaymentGatewayError):
    """The request was rejected locally, before any call to the gateway."""


class GatewayRequestFailed(PaymentGatewayError):
    def __init__(self, status: int | None, body: str) -> None:
        if status is None:
            message = f"Payment gateway unreachable: {body}"
        else:
            message = f"Payment gateway error: {status} - {body}"
        super().__init__(message)
        self.status = status
        self.body = body


class GatewayResponseInvalid(PaymentGatewayError):
    """The gateway answered 2xx but the payload is unusable."""


class VerificationError(PaymentGatewayError):
    """Payment status could not be determined. This is not the same as a failed payment."""


@dataclass(frozen=True, slots=True)
class Customer:
    id: str
    email: str | None = None
    phone: str | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class RemoteOrder:
    order_id: str
    payment_session_id: str
    payment_links: dict[str, str] | None = None
    order_status: str | None = None
    order_amount: Decimal | None = None
    order_currency: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PaymentStatusResult:
    order_id: str
    payment_status: PaymentStatusV1
    order_status: str | None = None
    payment_amount: Decimal | None = None
    payment_currency: str | None = None
    payment_time: str | None = None


class PaymentGateway(Protocol):
    vendor: str

    def create_remote_order(
        self,
        order_id: str,
        amount: Decimal,
        *,
        customer: Customer,
        return_url: str,
        currency: str = "INR",
        notify_url: str | None = None,
    ) -> RemoteOrder: ...

    def fetch_access_token(self) -> str: ...

    def fetch_payment_status(self, order_id: str, *, access_token: str = "") -> PaymentStatusResult:
        ...


def validate_remote_order_input(amount: Decimal, customer: Customer) -> None:
    if amount is None or amount <= 0:
        raise GatewayInputError("amount must be a positive value")
    if not (customer.id or "").strip():
        raise GatewayInputError("customer id is required")


_ORDER_STATUS_MAP = {
    "PAID": PaymentStatusV1.SUCCESS,
    "FAILED": PaymentStatusV1.FAILED,
    "CANCELLED": PaymentStatusV1.CANCELLED,
    "EXPIRED": PaymentStatusV1.CANCELLED,
    "TERMINATED": PaymentStatusV1.CANCELLED,
}

_PAYMENT_STATUS_MAP = {
    "SUCCESS": PaymentStatusV1.SUCCESS,
    "FAILED": PaymentStatusV1.FAILED,
    "CANCELLED": PaymentStatusV1.CANCELLED,
    "USER_DROPPED": PaymentStatusV1.CANCELLED,
}


def normalize_payment_status(
    order_status: str | None, latest_payment_status: str | None = None
) -> PaymentStatusV1:
    """Collapse the gateway's order/payment vocabulary into PaymentStatusV1.

    The order status wins when it is decisive. Otherwise the latest payment attempt decides.
    Anything unrecognised is PENDING, never a success.
    """

    by_order = _ORDER_STATUS_MAP.get((order_status or "").strip().upper())
    if by_order is not None:
        return by_order

    return _PAYMENT_STATUS_MAP.get(
        (latest_payment_status or "").strip().upper(), PaymentStatusV1.PENDING
    )
