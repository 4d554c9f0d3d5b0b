from __future__ import annotations

from decimal import Decimal

from packages.shared.schemas.payment import PaymentStatusV1
from pydantic import BaseModel, Field

# Request/response bodies for the /functions/v1 endpoints called by the storefront.


class CheckoutRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    customer_id: str = Field(..., min_length=1)
    customer_email: str
    customer_phone: str
    customer_name: str | None = None
    order_id: str | None = None


class CheckoutResponse(BaseModel):
    order_id: str
    payment_session_id: str
    payment_links: dict[str, str] | None = None
    order_status: str | None = None
    order_amount: float | None = None
    order_currency: str | None = None


class VerifyPaymentRequest(BaseModel):
    payment_session_id: str | None = None
    order_id: str = Field(..., min_length=1)


class VerifyPaymentResponse(BaseModel):
    payment_status: PaymentStatusV1
    order_status: str | None = None
    payment_amount: float | None = None
    payment_currency: str | None = None
    payment_time: str | None = None
    order_id: str
    payment_session_id: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    # Presence is checked by the handler so missing fields answer 400, not 422.
    order_id: str | None = None
    status: str | None = None
    user_id: str | None = None


class UpdateOrderStatusResponse(BaseModel):
    order_id: str
    old_status: str
    new_status: str
    updated_at: str
    success: bool
    rows_updated: int


class FunctionError(BaseModel):
    error: str
    details: str | None = None
    payment_status: PaymentStatusV1 | None = None
