from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from services.api.app.config import Settings, get_settings
from services.api.app.db.deps import get_db
from services.api.app.models.order import (
    CheckoutReturnResponse,
    CheckoutSubmitRequest,
    CheckoutSubmitResponse,
)
from services.api.app.services.checkout_base import (
    CheckoutValidationError,
    InsufficientStockError,
    PersistenceError,
    RecordNotFoundError,
)
from services.api.app.services.checkout_flow import CheckoutFlow
from services.api.app.services.gateway_base import (
    GatewayInputError,
    PaymentGateway,
    PaymentGatewayError,
)
from services.api.app.services.gateway_factory import get_payment_gateway
from sqlalchemy.orm import Session

router = APIRouter()


def _raise_checkout_http_error(e: Exception) -> None:
    if isinstance(e, CheckoutValidationError):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, RecordNotFoundError):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, InsufficientStockError):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, PersistenceError):
        raise HTTPException(status_code=500, detail=str(e)) from e

    if isinstance(e, GatewayInputError):
        raise HTTPException(status_code=422, detail=str(e)) from e

    if isinstance(e, PaymentGatewayError):
        raise HTTPException(status_code=502, detail=str(e)) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def _flow(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CheckoutFlow:
    return CheckoutFlow(db, settings, gateway)


@router.post("/v1/checkout", response_model=CheckoutSubmitResponse)
def submit_checkout(
    payload: CheckoutSubmitRequest, flow: CheckoutFlow = Depends(_flow)
) -> CheckoutSubmitResponse:
    try:
        outcome = flow.submit(
            user_id=payload.user_id,
            shipping=payload.shipping.model_dump(),
            customer_email=payload.customer_email,
        )
    except Exception as e:
        _raise_checkout_http_error(e)

    return CheckoutSubmitResponse(
        state=outcome.attempt.state,
        order_id=outcome.order.id,
        total_amount=float(outcome.order.total_amount),
        payment_session_id=outcome.remote.payment_session_id,
        payment_links=outcome.remote.payment_links,
        return_url=outcome.return_url,
        redirect_delay_seconds=outcome.redirect_delay_seconds,
        mock_mode=outcome.redirect_delay_seconds is not None,
    )


@router.get("/v1/checkout/return", response_model=CheckoutReturnResponse)
def checkout_return(
    order_id: str,
    payment_session_id: str | None = None,
    flow: CheckoutFlow = Depends(_flow),
) -> CheckoutReturnResponse:
    try:
        outcome = flow.handle_return(order_id=order_id, payment_session_id=payment_session_id)
    except Exception as e:
        _raise_checkout_http_error(e)

    return CheckoutReturnResponse(
        state=outcome.attempt.state,
        order_id=outcome.order.id,
        order_status=outcome.order.status,
        payment_status=outcome.payment_status,
        message=outcome.message,
        cart_cleared=outcome.cart_cleared,
    )
