from __future__ import annotations

import time
from decimal import Decimal

from services.api.app.config import Settings
from services.api.app.logging_config import get_logger
from services.api.app.services.gateway_base import (
    Customer,
    GatewayRequestFailed,
    GatewayResponseInvalid,
    PaymentGateway,
    PaymentStatusResult,
    RemoteOrder,
    VerificationError,
)

log = get_logger(__name__)


def fallback_order_id() -> str:
    return f"order_{int(time.time() * 1000)}"


def create_checkout_session(
    settings: Settings,
    gateway: PaymentGateway,
    *,
    amount: Decimal,
    customer: Customer,
    order_id: str | None = None,
) -> RemoteOrder:
    """Create the gateway-side order and return its payment session.

    The caller's order id is passed straight through. The fallback id only exists for
    callers that have no order store record.
    """

    order_id = order_id or fallback_order_id()

    remote = gateway.create_remote_order(
        order_id,
        amount,
        customer=customer,
        return_url=settings.return_url_template,
        currency=settings.currency,
        notify_url=settings.notify_url,
    )

    if remote.order_id != order_id:
        log.error(f"[Order: {order_id}] Gateway answered for a different order {remote.order_id}")
        raise GatewayResponseInvalid(
            f"Gateway returned order_id {remote.order_id!r} for request {order_id!r}"
        )

    log.info(f"[Order: {order_id}] Payment session issued by {gateway.vendor}")
    return remote


def verify_payment(
    gateway: PaymentGateway, order_id: str, payment_session_id: str | None = None
) -> PaymentStatusResult:
    """Ask the gateway how the order's payment went. Read-only."""

    log.info(f"[Order: {order_id}] Verifying payment session={bool(payment_session_id)}")
    try:
        token = gateway.fetch_access_token()
        result = gateway.fetch_payment_status(order_id, access_token=token)
    except (GatewayRequestFailed, GatewayResponseInvalid) as e:
        log.error(f"[Order: {order_id}] Payment verification failed: {e}")
        raise VerificationError(str(e)) from e

    log.info(f"[Order: {order_id}] Payment status {result.payment_status.value}")
    return result
