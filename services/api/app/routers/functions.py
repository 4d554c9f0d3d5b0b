from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from packages.shared.schemas.payment import PaymentStatusV1
from services.api.app.config import Settings, get_settings
from services.api.app.db.deps import get_db
from services.api.app.models.checkout import (
    CheckoutRequest,
    CheckoutResponse,
    FunctionError,
    UpdateOrderStatusRequest,
    UpdateOrderStatusResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from services.api.app.services import order_store
from services.api.app.services.checkout import create_checkout_session, verify_payment
from services.api.app.services.checkout_base import (
    InvalidOrderStatusError,
    OrderNotFoundError,
    PersistenceError,
)
from services.api.app.services.gateway_base import (
    Customer,
    GatewayInputError,
    PaymentGateway,
    PaymentGatewayError,
    VerificationError,
)
from services.api.app.services.gateway_factory import get_payment_gateway
from sqlalchemy.orm import Session

# Endpoints the storefront calls directly. Errors answer {error, details} rather than
# FastAPI's {detail} so the web client can show them unchanged.
router = APIRouter(prefix="/functions/v1")


def _error(status_code: int, error: str, details: str | None = None, **extra) -> JSONResponse:
    body = FunctionError(error=error, details=details, **extra)
    return JSONResponse(
        status_code=status_code, content=body.model_dump(mode="json", exclude_none=True)
    )


def _money(value) -> float | None:
    return float(value) if value is not None else None


@router.post("/cashfree-checkout", response_model=CheckoutResponse)
def cashfree_checkout(
    payload: CheckoutRequest,
    settings: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    customer = Customer(
        id=payload.customer_id,
        email=payload.customer_email,
        phone=payload.customer_phone,
        name=payload.customer_name,
    )

    try:
        remote = create_checkout_session(
            settings,
            gateway,
            amount=payload.amount,
            customer=customer,
            order_id=payload.order_id,
        )
    except GatewayInputError as e:
        return _error(422, "Invalid checkout request", str(e))
    except PaymentGatewayError as e:
        return _error(500, "Failed to create payment order", str(e))

    return CheckoutResponse(
        order_id=remote.order_id,
        payment_session_id=remote.payment_session_id,
        payment_links=remote.payment_links,
        order_status=remote.order_status,
        order_amount=_money(remote.order_amount),
        order_currency=remote.order_currency,
    )


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify_payment_status(
    payload: VerifyPaymentRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        result = verify_payment(gateway, payload.order_id, payload.payment_session_id)
    except VerificationError as e:
        return _error(
            500, "Failed to verify payment", str(e), payment_status=PaymentStatusV1.UNKNOWN
        )

    return VerifyPaymentResponse(
        payment_status=result.payment_status,
        order_status=result.order_status,
        payment_amount=_money(result.payment_amount),
        payment_currency=result.payment_currency,
        payment_time=result.payment_time,
        order_id=payload.order_id,
        payment_session_id=payload.payment_session_id,
    )


@router.post("/update-order-status", response_model=UpdateOrderStatusResponse)
def update_order_status(payload: UpdateOrderStatusRequest, db: Session = Depends(get_db)):
    if not payload.order_id or not payload.status:
        return _error(400, "Missing required fields", "order_id and status are required")

    try:
        old_status, order = order_store.update_order_status(
            db,
            payload.order_id,
            payload.status,
            user_id=payload.user_id,
            reason="status update endpoint",
        )
    except InvalidOrderStatusError as e:
        return _error(422, "Invalid status", str(e))
    except OrderNotFoundError:
        return _error(404, "Order not found", f"No order with id {payload.order_id}")
    except PersistenceError as e:
        return _error(500, "Database update failed", str(e))

    return UpdateOrderStatusResponse(
        order_id=order.id,
        old_status=old_status,
        new_status=order.status,
        updated_at=order.updated_at.isoformat(),
        success=True,
        rows_updated=1,
    )


@router.get("/debug-env")
def debug_env(settings: Settings = Depends(get_settings)) -> dict:
    # Presence only. Credential values and prefixes are never echoed.
    return {
        "success": True,
        "debug": {
            "client_id_set": bool(settings.cashfree_client_id),
            "client_secret_set": bool(settings.cashfree_client_secret),
            "environment": settings.cashfree_env,
            "payment_mode": settings.payment_mode,
        },
    }
