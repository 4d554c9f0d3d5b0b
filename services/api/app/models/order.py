from __future__ import annotations

from packages.shared.schemas.events import EventV1
from packages.shared.schemas.payment import ORDER_STATUSES, CheckoutStateV1, PaymentStatusV1
from pydantic import AliasChoices, BaseModel, Field, field_validator


class ShippingAddress(BaseModel):
    # Blank values are accepted here and rejected by the checkout flow with a 400.
    name: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = Field("", validation_alias=AliasChoices("postal_code", "postalCode"))
    phone: str = ""


class CheckoutSubmitRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    customer_email: str | None = None
    shipping: ShippingAddress


class CheckoutSubmitResponse(BaseModel):
    state: CheckoutStateV1
    order_id: str
    total_amount: float
    payment_session_id: str | None = None
    payment_links: dict[str, str] | None = None
    return_url: str | None = None

    # Only set in mock mode: the client shows the pending screen after this delay.
    redirect_delay_seconds: float | None = None
    mock_mode: bool = False


class CheckoutReturnResponse(BaseModel):
    state: CheckoutStateV1
    order_id: str
    order_status: str
    payment_status: PaymentStatusV1 | None = None
    message: str | None = None
    cart_cleared: bool = False


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    product_name: str | None = None
    quantity: int
    price: float
    line_total: float


class OrderOut(BaseModel):
    id: str
    user_id: str
    total_amount: float
    status: str
    shipping_address: dict = Field(default_factory=dict)
    created_at: str
    updated_at: str
    items: list[OrderItemOut] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in ORDER_STATUSES:
            raise ValueError(f"status must be one of {list(ORDER_STATUSES)}")
        return value


class OrderEventsOut(BaseModel):
    order_id: str
    events: list[EventV1] = Field(default_factory=list)
