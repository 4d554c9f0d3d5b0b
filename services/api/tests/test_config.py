from __future__ import annotations

from decimal import Decimal

import pytest
from packages.shared.schemas.payment import CheckoutStateV1, PaymentStatusV1
from services.api.app.config import Settings
from services.api.app.services import gateway_mock
from services.api.app.services.checkout_base import CheckoutAttempt
from services.api.app.services.gateway_base import Customer, normalize_payment_status
from services.api.app.services.gateway_factory import build_payment_gateway
from services.api.app.services.gateway_mock import MockPaymentGateway

_ENV_VARS = (
    "FELIXMART_PAYMENT_MODE",
    "FELIXMART_CASHFREE_ENV",
    "CASHFREE_CLIENT_ID",
    "CASHFREE_CLIENT_SECRET",
    "FELIXMART_CASHFREE_TOKEN_URL",
    "FELIXMART_RETURN_URL",
    "FELIXMART_DELIVERY_CHARGE",
    "FELIXMART_RECONCILE_ON_VERIFY",
    "FELIXMART_MOCK_PAYMENT_STATUS",
    "FELIXMART_CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    gateway_mock.forget_orders()


def test_defaults_to_mock_sandbox() -> None:
    settings = Settings.from_env()

    assert settings.payment_mode == "mock"
    assert settings.mock_mode is True
    assert settings.cashfree_env == "sandbox"
    assert settings.cashfree_base_url == "https://sandbox.cashfree.com/pg"
    assert settings.delivery_charge == Decimal("70.00")
    assert settings.reconcile_on_verify is False
    assert "{order_id}" in settings.return_url_template


def test_cashfree_mode_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FELIXMART_PAYMENT_MODE", "cashfree")

    with pytest.raises(ValueError, match="CASHFREE_CLIENT_ID"):
        Settings.from_env()


def test_mock_mode_is_refused_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FELIXMART_CASHFREE_ENV", "production")

    with pytest.raises(ValueError, match="not allowed in production"):
        Settings.from_env()


def test_production_cashfree(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FELIXMART_PAYMENT_MODE", "cashfree")
    monkeypatch.setenv("FELIXMART_CASHFREE_ENV", "production")
    monkeypatch.setenv("CASHFREE_CLIENT_ID", "live-id")
    monkeypatch.setenv("CASHFREE_CLIENT_SECRET", "live-secret")

    settings = Settings.from_env()

    assert settings.mock_mode is False
    assert settings.cashfree_base_url == "https://api.cashfree.com/pg"
    assert "live-secret" not in repr(settings)


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("FELIXMART_PAYMENT_MODE", "stripe"),
        ("FELIXMART_CASHFREE_ENV", "staging"),
        ("FELIXMART_RETURN_URL", "http://localhost:8080/order-success"),
        ("FELIXMART_DELIVERY_CHARGE", "seventy"),
        ("FELIXMART_DELIVERY_CHARGE", "-5"),
        ("FELIXMART_MOCK_PAYMENT_STATUS", "BOGUS"),
        ("FELIXMART_MOCK_PAYMENT_STATUS", "UNKNOWN"),
    ],
)
def test_invalid_values_are_rejected(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        Settings.from_env()


def test_overrides_are_parsed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FELIXMART_DELIVERY_CHARGE", "49.5")
    monkeypatch.setenv("FELIXMART_RECONCILE_ON_VERIFY", "yes")
    monkeypatch.setenv("FELIXMART_MOCK_PAYMENT_STATUS", "failed")
    monkeypatch.setenv("FELIXMART_CORS_ORIGINS", "https://felixmart.in, https://admin.felixmart.in")

    settings = Settings.from_env()

    assert settings.delivery_charge == Decimal("49.50")
    assert settings.reconcile_on_verify is True
    assert settings.mock_payment_status == "FAILED"
    assert settings.cors_origins == ("https://felixmart.in", "https://admin.felixmart.in")


def test_factory_defaults_to_mock() -> None:
    gateway = build_payment_gateway(Settings.from_env())
    assert gateway.vendor == "CASHFREE_MOCK"


def test_factory_builds_cashfree_gateway() -> None:
    settings = Settings(
        payment_mode="cashfree", cashfree_client_id="id", cashfree_client_secret="secret"
    )
    assert build_payment_gateway(settings).vendor == "CASHFREE"


@pytest.mark.parametrize("status", ["MAYBE", "UNKNOWN"])
def test_mock_gateway_rejects_unknown_status(status: str) -> None:
    with pytest.raises(ValueError, match="FELIXMART_MOCK_PAYMENT_STATUS"):
        build_payment_gateway(Settings(mock_payment_status=status))


def test_mock_gateway_remembers_orders_across_instances() -> None:
    customer = Customer(id="u-1", email=None, phone="9999999999", name="Asha")
    MockPaymentGateway().create_remote_order(
        "ord-shared", Decimal("170.00"), customer=customer, return_url="http://x"
    )

    result = MockPaymentGateway("PENDING").fetch_payment_status("ord-shared")

    assert result.payment_amount == Decimal("170.00")
    assert result.payment_status == PaymentStatusV1.PENDING


def test_mock_gateway_forgets_oldest_orders(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(gateway_mock, "MAX_REMEMBERED_ORDERS", 2)
    gateway = MockPaymentGateway()
    customer = Customer(id="u-1", email=None, phone="9999999999", name="Asha")

    for n in range(3):
        gateway.create_remote_order(
            f"ord-{n}", Decimal("100.00"), customer=customer, return_url="http://x"
        )

    assert gateway.fetch_payment_status("ord-0").payment_amount is None
    assert gateway.fetch_payment_status("ord-2").payment_amount == Decimal("100.00")


@pytest.mark.parametrize(
    ("order_status", "payment_status", "expected"),
    [
        ("PAID", None, PaymentStatusV1.SUCCESS),
        ("PAID", "FAILED", PaymentStatusV1.SUCCESS),
        ("FAILED", None, PaymentStatusV1.FAILED),
        ("EXPIRED", None, PaymentStatusV1.CANCELLED),
        ("TERMINATED", None, PaymentStatusV1.CANCELLED),
        ("ACTIVE", "SUCCESS", PaymentStatusV1.SUCCESS),
        ("ACTIVE", "FAILED", PaymentStatusV1.FAILED),
        ("ACTIVE", "USER_DROPPED", PaymentStatusV1.CANCELLED),
        ("ACTIVE", "PENDING", PaymentStatusV1.PENDING),
        ("ACTIVE", None, PaymentStatusV1.PENDING),
        (None, None, PaymentStatusV1.PENDING),
        ("SOMETHING_NEW", "NOT_ATTEMPTED", PaymentStatusV1.PENDING),
    ],
)
def test_normalize_payment_status(
    order_status: str | None, payment_status: str | None, expected: PaymentStatusV1
) -> None:
    assert normalize_payment_status(order_status, payment_status) == expected


def test_checkout_attempt_follows_allowed_path() -> None:
    attempt = CheckoutAttempt()
    attempt.advance(CheckoutStateV1.SUBMITTING_ORDER)
    attempt.advance(CheckoutStateV1.AWAITING_GATEWAY_REDIRECT)

    resumed = CheckoutAttempt.resumed("ord-1", "session_1")
    resumed.advance(CheckoutStateV1.VERIFYING_PAYMENT)
    resumed.advance(CheckoutStateV1.SUCCESS)

    assert attempt.history == [
        CheckoutStateV1.COLLECTING_SHIPPING_INFO,
        CheckoutStateV1.SUBMITTING_ORDER,
        CheckoutStateV1.AWAITING_GATEWAY_REDIRECT,
    ]
    assert resumed.state.is_terminal


def test_checkout_attempt_rejects_skipping_verification() -> None:
    attempt = CheckoutAttempt.resumed("ord-1", "session_1")

    with pytest.raises(RuntimeError):
        attempt.advance(CheckoutStateV1.SUCCESS)
