from __future__ import annotations

from dataclasses import dataclass, field

from packages.shared.schemas.payment import CheckoutStateV1


class CheckoutError(Exception):
    """Base class for checkout and order store errors."""


class CheckoutValidationError(CheckoutError):
    """Missing shipping fields or an empty cart. Shown to the buyer as-is."""


class InsufficientStockError(CheckoutError):
    def __init__(self, product_name: str, available: int, requested: int) -> None:
        super().__init__(
            f"Sorry, only {available} units of {product_name} are available. "
            "Please update your cart."
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class PersistenceError(CheckoutError):
    """An order store write failed. Nothing was sent to the gateway."""


class RecordNotFoundError(CheckoutError):
    pass


class OrderNotFoundError(RecordNotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__("Order not found")
        self.order_id = order_id


class ProductNotFoundError(RecordNotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__("Product not found")
        self.product_id = product_id


class CartItemNotFoundError(RecordNotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__("Cart item not found")
        self.product_id = product_id


class InvalidOrderStatusError(CheckoutError):
    def __init__(self, status: str) -> None:
        super().__init__(f"Unknown order status: {status!r}")
        self.status = status


_ALLOWED_TRANSITIONS: dict[CheckoutStateV1, set[CheckoutStateV1]] = {
    CheckoutStateV1.COLLECTING_SHIPPING_INFO: {CheckoutStateV1.SUBMITTING_ORDER},
    CheckoutStateV1.SUBMITTING_ORDER: {
        CheckoutStateV1.AWAITING_GATEWAY_REDIRECT,
        CheckoutStateV1.PENDING,
    },
    CheckoutStateV1.AWAITING_GATEWAY_REDIRECT: {
        CheckoutStateV1.RETURNED_FROM_GATEWAY,
        CheckoutStateV1.PENDING,
    },
    CheckoutStateV1.RETURNED_FROM_GATEWAY: {
        CheckoutStateV1.VERIFYING_PAYMENT,
        CheckoutStateV1.PENDING,
    },
    CheckoutStateV1.VERIFYING_PAYMENT: {
        CheckoutStateV1.SUCCESS,
        CheckoutStateV1.FAILED,
        CheckoutStateV1.PENDING,
    },
}


@dataclass
class CheckoutAttempt:
    """One buyer's pass through checkout.

    The browser navigates away between submit and return, so a returning buyer starts a
    fresh attempt at RETURNED_FROM_GATEWAY with only the order id and session id.
    """

    state: CheckoutStateV1 = CheckoutStateV1.COLLECTING_SHIPPING_INFO
    order_id: str | None = None
    payment_session_id: str | None = None
    history: list[CheckoutStateV1] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.state)

    @classmethod
    def resumed(cls, order_id: str, payment_session_id: str | None) -> "CheckoutAttempt":
        return cls(
            state=CheckoutStateV1.RETURNED_FROM_GATEWAY,
            order_id=order_id,
            payment_session_id=payment_session_id,
        )

    def advance(self, to: CheckoutStateV1) -> None:
        if to not in _ALLOWED_TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Illegal checkout transition {self.state.value} -> {to.value}")
        self.state = to
        self.history.append(to)
