from __future__ import annotations

from fastapi import Depends

from services.api.app.config import Settings, get_settings
from services.api.app.services.gateway_base import PaymentGateway
from services.api.app.services.gateway_mock import MockPaymentGateway


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    """Select a gateway from the explicit payment mode.

    Defaults to the mock gateway so tests and local dev never reach Cashfree unless
    explicitly configured.
    """

    if settings.payment_mode == "mock":
        return MockPaymentGateway(status=settings.mock_payment_status)

    if settings.payment_mode == "cashfree":
        from services.api.app.services.gateway_cashfree import CashfreeGateway

        return CashfreeGateway(settings)

    raise ValueError(
        f"Unknown FELIXMART_PAYMENT_MODE={settings.payment_mode!r}. Expected mock or cashfree."
    )


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    return build_payment_gateway(settings)
