from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlencode

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.payment import CheckoutStateV1, PaymentStatusV1
from services.api.app.config import Settings
from services.api.app.db.models import Order
from services.api.app.logging_config import get_logger
from services.api.app.services import order_store
from services.api.app.services.checkout import create_checkout_session, verify_payment
from services.api.app.services.checkout_base import CheckoutAttempt, CheckoutValidationError
from services.api.app.services.gateway_base import (
    Customer,
    PaymentGateway,
    PaymentGatewayError,
    RemoteOrder,
    VerificationError,
)
from sqlalchemy.orm import Session

log = get_logger(__name__)

REQUIRED_SHIPPING_FIELDS = ("name", "address", "city", "postal_code", "phone")

# Gateway outcomes the reconciliation extension writes back onto a pending order.
_RECONCILED_STATUS = {
    PaymentStatusV1.SUCCESS: "paid",
    PaymentStatusV1.FAILED: "failed",
    PaymentStatusV1.CANCELLED: "cancelled",
}

# A failed or cancelled payment frees the stock; a PENDING one may still complete.
_STOCK_RELEASING_PAYMENTS = (PaymentStatusV1.FAILED, PaymentStatusV1.CANCELLED)


@dataclass(frozen=True, slots=True)
class SubmitOutcome:
    attempt: CheckoutAttempt
    order: Order
    remote: RemoteOrder
    return_url: str
    redirect_delay_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class ReturnOutcome:
    attempt: CheckoutAttempt
    order: Order
    payment_status: PaymentStatusV1 | None = None
    message: str | None = None
    cart_cleared: bool = False


class CheckoutFlow:
    """Drives one checkout attempt from shipping form to verified payment.

    submit():        collecting-shipping-info -> submitting-order -> awaiting-gateway-redirect
    handle_return(): returned-from-gateway -> verifying-payment -> success | failed | pending

    The buyer's cart survives until the gateway confirms SUCCESS, so a failed or abandoned
    payment can be retried without rebuilding it.
    """

    def __init__(self, db: Session, settings: Settings, gateway: PaymentGateway) -> None:
        self._db = db
        self._settings = settings
        self._gateway = gateway

    def submit(
        self, *, user_id: str, shipping: dict[str, str], customer_email: str | None = None
    ) -> SubmitOutcome:
        attempt = CheckoutAttempt()

        missing = [f for f in REQUIRED_SHIPPING_FIELDS if not str(shipping.get(f) or "").strip()]
        if missing:
            raise CheckoutValidationError("Please fill in all shipping information")

        attempt.advance(CheckoutStateV1.SUBMITTING_ORDER)

        cart = order_store.list_cart(self._db, user_id)
        if not cart:
            raise CheckoutValidationError("Your cart is empty")

        shipping_address = {f: str(shipping[f]).strip() for f in REQUIRED_SHIPPING_FIELDS}
        order = order_store.create_pending_order(
            self._db,
            user_id=user_id,
            shipping_address=shipping_address,
            cart_items=cart,
            delivery_charge=self._settings.delivery_charge,
        )
        attempt.order_id = order.id

        customer = Customer(
            id=user_id,
            email=customer_email,
            phone=shipping_address["phone"],
            name=shipping_address["name"],
        )
        try:
            remote = create_checkout_session(
                self._settings,
                self._gateway,
                amount=order.total_amount,
                customer=customer,
                order_id=order.id,
            )
        except PaymentGatewayError as e:
            # The order stays pending for manual follow-up. The cart is untouched and the
            # stock goes back so a retry can take it again.
            self._log(order, EventTypeV1.CHECKOUT_SESSION_FAILED, {"error": str(e)})
            order_store.release_stock(self._db, order, reason="checkout session failed")
            order_store.commit(self._db, f"record checkout failure for order {order.id}")
            raise

        attempt.payment_session_id = remote.payment_session_id
        self._log(
            order,
            EventTypeV1.CHECKOUT_SESSION_CREATED,
            {"vendor": self._gateway.vendor, "order_status": remote.order_status},
        )
        order_store.commit(self._db, f"record checkout session for order {order.id}")

        return_url = build_return_url(self._settings, order.id, remote.payment_session_id)

        if self._settings.mock_mode:
            # No hosted page to visit; the client shows the pending screen after a delay.
            attempt.advance(CheckoutStateV1.PENDING)
            return SubmitOutcome(
                attempt=attempt,
                order=order,
                remote=remote,
                return_url=return_url,
                redirect_delay_seconds=self._settings.mock_redirect_delay_seconds,
            )

        attempt.advance(CheckoutStateV1.AWAITING_GATEWAY_REDIRECT)
        return SubmitOutcome(attempt=attempt, order=order, remote=remote, return_url=return_url)

    def handle_return(self, *, order_id: str, payment_session_id: str | None) -> ReturnOutcome:
        order = order_store.get_order(self._db, order_id)
        attempt = CheckoutAttempt.resumed(order_id, payment_session_id)

        if not payment_session_id:
            attempt.advance(CheckoutStateV1.PENDING)
            return ReturnOutcome(
                attempt=attempt,
                order=order,
                message="Payment has not been verified for this order yet.",
            )

        attempt.advance(CheckoutStateV1.VERIFYING_PAYMENT)
        try:
            result = verify_payment(self._gateway, order_id, payment_session_id)
        except VerificationError as e:
            attempt.advance(CheckoutStateV1.PENDING)
            return ReturnOutcome(
                attempt=attempt,
                order=order,
                payment_status=PaymentStatusV1.UNKNOWN,
                message=f"Could not verify payment: {e}",
            )

        status = result.payment_status
        self._log(
            order,
            EventTypeV1.PAYMENT_VERIFIED,
            {"payment_status": status.value, "order_status": result.order_status},
        )

        cart_cleared = False
        if status == PaymentStatusV1.SUCCESS:
            attempt.advance(CheckoutStateV1.SUCCESS)
            cart_cleared = self._clear_ordered_items(order)
        else:
            attempt.advance(CheckoutStateV1.FAILED)
            if status in _STOCK_RELEASING_PAYMENTS:
                order_store.release_stock(
                    self._db, order, reason=f"payment {status.value.lower()}"
                )

        if self._settings.reconcile_on_verify and order.status == "pending":
            new_status = _RECONCILED_STATUS.get(status)
            if new_status is not None:
                order_store.set_order_status(
                    self._db,
                    order,
                    new_status,
                    user_id=order.user_id,
                    reason=f"payment verification {status.value}",
                )

        order_store.commit(self._db, f"record payment verification for order {order_id}")

        message = None
        if status != PaymentStatusV1.SUCCESS:
            message = f"Payment {status.value.lower()}. Your cart has been kept so you can retry."
        return ReturnOutcome(
            attempt=attempt,
            order=order,
            payment_status=status,
            message=message,
            cart_cleared=cart_cleared,
        )

    def _clear_ordered_items(self, order: Order) -> bool:
        """Take the ordered quantities out of the buyer's cart, once per order. No commit."""

        already = any(
            e.event_type == EventTypeV1.CART_CLEARED.value
            for e in order_store.list_events(self._db, order.id)
        )
        if already:
            return False

        ordered: dict[str, int] = {}
        for item in order.items:
            ordered[item.product_id] = ordered.get(item.product_id, 0) + item.quantity

        taken = order_store.take_from_cart(self._db, order.user_id, ordered)
        self._log(order, EventTypeV1.CART_CLEARED, {"ordered": ordered, "taken": taken})
        log.info(f"[Order: {order.id}] Took {sum(taken.values())} units from cart after payment")
        return True

    def _log(self, order: Order, event_type: EventTypeV1, payload: dict) -> None:
        order_store.log_event(
            self._db,
            user_id=order.user_id,
            entity_type=EntityTypeV1.ORDER,
            entity_id=order.id,
            event_type=event_type,
            event_payload=payload,
        )


def build_return_url(settings: Settings, order_id: str, payment_session_id: str) -> str:
    url = settings.return_url_template.replace("{order_id}", quote(order_id, safe=""))
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{urlencode({'payment_session_id': payment_session_id})}"
