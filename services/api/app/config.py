from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from fastapi import Request

PAYMENT_MODES = ("mock", "cashfree")
# UNKNOWN is reserved for "could not check" and is never a gateway answer.
MOCK_PAYMENT_STATUSES = ("SUCCESS", "PENDING", "FAILED", "CANCELLED")
CASHFREE_ENVIRONMENTS = {
    "sandbox": "https://sandbox.cashfree.com/pg",
    "production": "https://api.cashfree.com/pg",
}

_DEFAULT_RETURN_URL = "http://localhost:8080/order-success?order_id={order_id}"
_DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8080",
)


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide configuration, read from the environment once at startup.

    Env vars:
    - FELIXMART_PAYMENT_MODE (mock | cashfree, default: mock)
    - FELIXMART_CASHFREE_ENV (sandbox | production, default: sandbox)
    - CASHFREE_CLIENT_ID / CASHFREE_CLIENT_SECRET (required for cashfree)
    - FELIXMART_CASHFREE_API_VERSION (default: 2023-08-01)
    - FELIXMART_CASHFREE_TOKEN_URL (optional bearer token endpoint)
    - FELIXMART_GATEWAY_TIMEOUT_SECONDS (default: 10)
    - FELIXMART_RETURN_URL (must contain {order_id})
    - FELIXMART_NOTIFY_URL (optional)
    - FELIXMART_DELIVERY_CHARGE (default: 70)
    - FELIXMART_RECONCILE_ON_VERIFY (default: false)
    - FELIXMART_MOCK_PAYMENT_STATUS (default: SUCCESS)
    - FELIXMART_MOCK_REDIRECT_DELAY_SECONDS (default: 2)
    - FELIXMART_CORS_ORIGINS (comma separated)
    """

    payment_mode: str = "mock"
    cashfree_env: str = "sandbox"
    cashfree_client_id: str = ""
    cashfree_client_secret: str = field(default="", repr=False)
    cashfree_api_version: str = "2023-08-01"
    cashfree_token_url: str | None = None
    gateway_timeout_seconds: float = 10.0
    return_url_template: str = _DEFAULT_RETURN_URL
    notify_url: str | None = None
    currency: str = "INR"
    delivery_charge: Decimal = Decimal("70.00")
    reconcile_on_verify: bool = False
    mock_payment_status: str = "SUCCESS"
    mock_redirect_delay_seconds: float = 2.0
    cors_origins: tuple[str, ...] = _DEFAULT_CORS_ORIGINS

    @property
    def mock_mode(self) -> bool:
        return self.payment_mode == "mock"

    @property
    def cashfree_base_url(self) -> str:
        return CASHFREE_ENVIRONMENTS[self.cashfree_env]

    @classmethod
    def from_env(cls) -> "Settings":
        payment_mode = os.getenv("FELIXMART_PAYMENT_MODE", "mock").strip().lower()
        if payment_mode not in PAYMENT_MODES:
            raise ValueError(
                f"Unknown FELIXMART_PAYMENT_MODE={payment_mode!r}. Expected mock or cashfree."
            )

        cashfree_env = os.getenv("FELIXMART_CASHFREE_ENV", "sandbox").strip().lower()
        if cashfree_env not in CASHFREE_ENVIRONMENTS:
            raise ValueError(
                f"Unknown FELIXMART_CASHFREE_ENV={cashfree_env!r}. Expected sandbox or production."
            )

        if payment_mode == "mock" and cashfree_env == "production":
            raise ValueError("FELIXMART_PAYMENT_MODE=mock is not allowed in production")

        client_id = os.getenv("CASHFREE_CLIENT_ID", "").strip()
        client_secret = os.getenv("CASHFREE_CLIENT_SECRET", "").strip()
        if payment_mode == "cashfree" and not (client_id and client_secret):
            raise ValueError(
                "CASHFREE_CLIENT_ID and CASHFREE_CLIENT_SECRET are required "
                "when FELIXMART_PAYMENT_MODE=cashfree"
            )

        mock_status = os.getenv("FELIXMART_MOCK_PAYMENT_STATUS", "SUCCESS").strip().upper()
        if mock_status not in MOCK_PAYMENT_STATUSES:
            raise ValueError(
                f"Unknown FELIXMART_MOCK_PAYMENT_STATUS={mock_status!r}. "
                f"Expected one of {list(MOCK_PAYMENT_STATUSES)}."
            )

        return_url = os.getenv("FELIXMART_RETURN_URL", _DEFAULT_RETURN_URL).strip()
        if "{order_id}" not in return_url:
            raise ValueError("FELIXMART_RETURN_URL must contain an {order_id} placeholder")

        return cls(
            payment_mode=payment_mode,
            cashfree_env=cashfree_env,
            cashfree_client_id=client_id,
            cashfree_client_secret=client_secret,
            cashfree_api_version=os.getenv("FELIXMART_CASHFREE_API_VERSION", "2023-08-01"),
            cashfree_token_url=os.getenv("FELIXMART_CASHFREE_TOKEN_URL", "").strip() or None,
            gateway_timeout_seconds=float(os.getenv("FELIXMART_GATEWAY_TIMEOUT_SECONDS", "10")),
            return_url_template=return_url,
            notify_url=os.getenv("FELIXMART_NOTIFY_URL", "").strip() or None,
            delivery_charge=_parse_amount(os.getenv("FELIXMART_DELIVERY_CHARGE", "70")),
            reconcile_on_verify=_parse_bool(os.getenv("FELIXMART_RECONCILE_ON_VERIFY", "false")),
            mock_payment_status=mock_status,
            mock_redirect_delay_seconds=float(
                os.getenv("FELIXMART_MOCK_REDIRECT_DELAY_SECONDS", "2")
            ),
            cors_origins=cors_origins_from_env(),
        )


def cors_origins_from_env() -> tuple[str, ...]:
    raw = os.getenv("FELIXMART_CORS_ORIGINS", "")
    origins = tuple(o.strip() for o in raw.split(",") if o.strip())
    return origins or _DEFAULT_CORS_ORIGINS


def get_settings(request: Request) -> Settings:
    """FastAPI dependency returning the settings built at startup."""

    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = Settings.from_env()
        request.app.state.settings = settings
    return settings


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_amount(value: str) -> Decimal:
    try:
        amount = Decimal(value.strip()).quantize(Decimal("0.01"))
    except InvalidOperation as e:
        raise ValueError(f"Invalid FELIXMART_DELIVERY_CHARGE={value!r}") from e
    if amount < 0:
        raise ValueError("FELIXMART_DELIVERY_CHARGE must not be negative")
    return amount
