from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from packages.shared.schemas.payment import PaymentStatusV1
from services.api.app.config import MOCK_PAYMENT_STATUSES
from services.api.app.services.gateway_base import (
    Customer,
    PaymentStatusResult,
    RemoteOrder,
    validate_remote_order_input,
)

# Orders created through any mock instance, oldest first. Shared so a status lookup made
# with a fresh per-request gateway still finds the amount.
MAX_REMEMBERED_ORDERS = 1000
_remembered_orders: OrderedDict[str, tuple[Decimal, str]] = OrderedDict()


def remember_order(order_id: str, amount: Decimal, currency: str) -> None:
    _remembered_orders[order_id] = (amount, currency)
    _remembered_orders.move_to_end(order_id)
    while len(_remembered_orders) > MAX_REMEMBERED_ORDERS:
        _remembered_orders.popitem(last=False)


def remembered_order(order_id: str) -> tuple[Decimal | None, str]:
    return _remembered_orders.get(order_id, (None, "INR"))


def forget_orders() -> None:
    _remembered_orders.clear()


class MockPaymentGateway:
    """Synthetic gateway for local dev and tests. No network, no money moves.

    Status lookups echo back the amount of the most recent MAX_REMEMBERED_ORDERS orders;
    older ones report no amount.
    """

    vendor = "CASHFREE_MOCK"

    def __init__(self, status: str = "SUCCESS") -> None:
        if status.upper() not in MOCK_PAYMENT_STATUSES:
            raise ValueError(
                f"Unknown FELIXMART_MOCK_PAYMENT_STATUS={status!r}. "
                f"Expected one of {list(MOCK_PAYMENT_STATUSES)}."
            )
        self._status = PaymentStatusV1(status.upper())

    def create_remote_order(
        self,
        order_id: str,
        amount: Decimal,
        *,
        customer: Customer,
        return_url: str,
        currency: str = "INR",
        notify_url: str | None = None,
    ) -> RemoteOrder:
        del return_url, notify_url
        validate_remote_order_input(amount, customer)

        session_id = f"session_{uuid4().hex[:12]}"
        pay_url = f"https://payments-test.cashfree.com/pay/{session_id}"
        remember_order(order_id, amount, currency)

        return RemoteOrder(
            order_id=order_id,
            payment_session_id=session_id,
            payment_links={"web": pay_url, "mobile": pay_url, "app": pay_url},
            order_status="ACTIVE",
            order_amount=amount,
            order_currency=currency,
            raw={"order_id": order_id, "payment_session_id": session_id},
        )

    def fetch_access_token(self) -> str:
        return ""

    def fetch_payment_status(self, order_id: str, *, access_token: str = "") -> PaymentStatusResult:
        del access_token

        amount, currency = remembered_order(order_id)
        paid = self._status == PaymentStatusV1.SUCCESS

        return PaymentStatusResult(
            order_id=order_id,
            payment_status=self._status,
            order_status="PAID" if paid else "ACTIVE",
            payment_amount=amount,
            payment_currency=currency,
            # Stable per order so repeated checks agree.
            payment_time=_MOCK_PAYMENT_TIME if paid else None,
        )


_MOCK_PAYMENT_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat()
