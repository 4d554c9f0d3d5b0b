from __future__ import annotations

import json
import logging
from decimal import Decimal

import httpx
import pytest
from packages.shared.schemas.payment import PaymentStatusV1
from services.api.app.config import Settings
from services.api.app.services.gateway_base import (
    Customer,
    GatewayInputError,
    GatewayRequestFailed,
    GatewayResponseInvalid,
)
from services.api.app.services.gateway_cashfree import CashfreeGateway

CUSTOMER = Customer(id="u-1", email="asha@example.com", phone="9999999999", name="Asha Rao")
RETURN_URL = "http://localhost:8080/order-success?order_id={order_id}"


def _settings(**overrides) -> Settings:
    values = {
        "payment_mode": "cashfree",
        "cashfree_client_id": "cf-test-id",
        "cashfree_client_secret": "cf-test-secret",
    }
    values.update(overrides)
    return Settings(**values)


def _gateway(handler, **overrides) -> CashfreeGateway:
    return CashfreeGateway(_settings(**overrides), transport=httpx.MockTransport(handler))


def test_create_remote_order_sends_expected_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "order_id": "ord-1",
                "payment_session_id": "session_abc",
                "order_status": "ACTIVE",
                "order_amount": 270.0,
                "order_currency": "INR",
                "payment_links": {"web": "https://sandbox.cashfree.com/pay/abc"},
            },
        )

    gateway = _gateway(handler, notify_url="https://felixmart.example/hooks/cashfree")
    remote = gateway.create_remote_order(
        "ord-1", Decimal("270.00"), customer=CUSTOMER, return_url=RETURN_URL
    )

    assert remote.order_id == "ord-1"
    assert remote.payment_session_id == "session_abc"
    assert remote.order_status == "ACTIVE"
    assert remote.order_amount == Decimal("270.0")

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://sandbox.cashfree.com/pg/orders"
    assert request.headers["x-client-id"] == "cf-test-id"
    assert request.headers["x-client-secret"] == "cf-test-secret"
    assert request.headers["x-api-version"] == "2023-08-01"

    body = json.loads(request.content)
    assert body["order_id"] == "ord-1"
    assert body["order_amount"] == 270.0
    assert body["order_currency"] == "INR"
    assert body["customer_details"] == {
        "customer_id": "u-1",
        "customer_email": "asha@example.com",
        "customer_phone": "9999999999",
        "customer_name": "Asha Rao",
    }
    assert body["order_meta"]["return_url"] == RETURN_URL
    assert body["order_meta"]["notify_url"] == "https://felixmart.example/hooks/cashfree"


def test_production_env_uses_live_base_url() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"order_id": "ord-1", "payment_session_id": "s"})

    _gateway(handler, cashfree_env="production").create_remote_order(
        "ord-1", Decimal("10"), customer=CUSTOMER, return_url=RETURN_URL
    )

    assert str(seen[0].url) == "https://api.cashfree.com/pg/orders"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
def test_non_positive_amount_never_reaches_gateway(amount: Decimal) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(GatewayInputError):
        _gateway(handler).create_remote_order(
            "ord-1", amount, customer=CUSTOMER, return_url=RETURN_URL
        )
    assert calls == []


def test_http_error_carries_status_and_body(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "authentication Failed"})

    caplog.set_level(logging.DEBUG)
    with pytest.raises(GatewayRequestFailed) as exc_info:
        _gateway(handler).create_remote_order(
            "ord-1", Decimal("100"), customer=CUSTOMER, return_url=RETURN_URL
        )

    assert exc_info.value.status == 401
    assert "authentication Failed" in exc_info.value.body
    assert "[Order: ord-1]" in caplog.text
    assert "cf-test-secret" not in caplog.text


def test_transport_error_is_request_failed_without_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayRequestFailed) as exc_info:
        _gateway(handler).create_remote_order(
            "ord-1", Decimal("100"), customer=CUSTOMER, return_url=RETURN_URL
        )

    assert exc_info.value.status is None


def test_missing_session_id_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"order_id": "ord-1"})

    with pytest.raises(GatewayResponseInvalid):
        _gateway(handler).create_remote_order(
            "ord-1", Decimal("100"), customer=CUSTOMER, return_url=RETURN_URL
        )


def test_non_json_body_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(GatewayResponseInvalid):
        _gateway(handler).create_remote_order(
            "ord-1", Decimal("100"), customer=CUSTOMER, return_url=RETURN_URL
        )


def _status_handler(order: dict, payments: list | None, payments_status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        if request.url.path.endswith("/payments"):
            return httpx.Response(payments_status, json=payments or [])
        return httpx.Response(200, json=order)

    return handler


def test_fetch_payment_status_paid_order() -> None:
    handler = _status_handler(
        {"order_id": "ord-1", "order_status": "PAID", "order_amount": 270.0},
        [
            {"payment_status": "FAILED", "payment_amount": 270.0},
            {
                "payment_status": "SUCCESS",
                "payment_amount": 270.0,
                "payment_currency": "INR",
                "payment_time": "2024-03-01T10:00:00+05:30",
            },
        ],
    )

    result = _gateway(handler).fetch_payment_status("ord-1")

    assert result.payment_status == PaymentStatusV1.SUCCESS
    assert result.order_status == "PAID"
    assert result.payment_amount == Decimal("270.0")
    assert result.payment_currency == "INR"
    assert result.payment_time == "2024-03-01T10:00:00+05:30"


def test_fetch_payment_status_active_order_uses_latest_payment() -> None:
    handler = _status_handler(
        {"order_id": "ord-1", "order_status": "ACTIVE"},
        [{"payment_status": "SUCCESS"}, {"payment_status": "USER_DROPPED"}],
    )

    result = _gateway(handler).fetch_payment_status("ord-1")
    assert result.payment_status == PaymentStatusV1.CANCELLED


def test_fetch_payment_status_tolerates_missing_payments() -> None:
    handler = _status_handler(
        {
            "order_id": "ord-1",
            "order_status": "ACTIVE",
            "order_amount": 99.0,
            "order_currency": "INR",
        },
        None,
        payments_status=404,
    )

    result = _gateway(handler).fetch_payment_status("ord-1")

    assert result.payment_status == PaymentStatusV1.PENDING
    assert result.payment_amount == Decimal("99.0")
    assert result.payment_time is None


def test_fetch_payment_status_order_lookup_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "order not found"})

    with pytest.raises(GatewayRequestFailed) as exc_info:
        _gateway(handler).fetch_payment_status("ord-1")
    assert exc_info.value.status == 404


def test_access_token_is_empty_without_token_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert _gateway(handler).fetch_access_token() == ""


def test_access_token_is_used_as_bearer() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/pg/v1/authorize":
            return httpx.Response(200, json={"status": "SUCCESS", "data": {"token": "tok-123"}})
        if request.url.path.endswith("/payments"):
            return httpx.Response(200, json=[])
        return httpx.Response(200, json={"order_id": "ord-1", "order_status": "PAID"})

    gateway = _gateway(handler, cashfree_token_url="https://sandbox.cashfree.com/pg/v1/authorize")
    token = gateway.fetch_access_token()
    result = gateway.fetch_payment_status("ord-1", access_token=token)

    assert token == "tok-123"
    assert result.payment_status == PaymentStatusV1.SUCCESS

    status_request = seen[1]
    assert status_request.headers["authorization"] == "Bearer tok-123"
    assert "x-client-secret" not in status_request.headers
