from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import quote

import httpx

from services.api.app.config import Settings
from services.api.app.logging_config import get_logger
from services.api.app.services.gateway_base import (
    Customer,
    GatewayRequestFailed,
    GatewayResponseInvalid,
    PaymentStatusResult,
    RemoteOrder,
    normalize_payment_status,
    validate_remote_order_input,
)

log = get_logger(__name__)


class CashfreeGateway:
    """Cashfree Payment Gateway (PG) REST client.

    One httpx client per call, no retries. A failed call surfaces immediately as
    GatewayRequestFailed. Credentials are sent as headers and never logged.

    Env vars (see Settings):
    - FELIXMART_PAYMENT_MODE=cashfree
    - FELIXMART_CASHFREE_ENV (sandbox | production)
    - CASHFREE_CLIENT_ID / CASHFREE_CLIENT_SECRET
    - FELIXMART_CASHFREE_API_VERSION
    - FELIXMART_CASHFREE_TOKEN_URL (optional)
    - FELIXMART_GATEWAY_TIMEOUT_SECONDS
    """

    vendor = "CASHFREE"

    def __init__(
        self, settings: Settings, *, transport: httpx.BaseTransport | None = None
    ) -> None:
        self._settings = settings
        self._transport = transport

    def create_remote_order(
        self,
        order_id: str,
        amount: Decimal,
        *,
        customer: Customer,
        return_url: str,
        currency: str = "INR",
        notify_url: str | None = None,
    ) -> RemoteOrder:
        validate_remote_order_input(amount, customer)

        customer_details = {
            "customer_id": customer.id,
            "customer_email": customer.email,
            "customer_phone": customer.phone,
            "customer_name": customer.name,
        }
        order_meta = {"return_url": return_url}
        if notify_url:
            order_meta["notify_url"] = notify_url

        payload = {
            "order_id": order_id,
            "order_amount": float(amount),
            "order_currency": currency,
            "customer_details": {k: v for k, v in customer_details.items() if v},
            "order_meta": order_meta,
        }

        log.info(
            f"[Order: {order_id}] Creating Cashfree order "
            f"amount={amount} currency={currency} env={self._settings.cashfree_env}"
        )
        data = self._request("POST", "/orders", order_id=order_id, json=payload)

        session_id = data.get("payment_session_id")
        if not session_id:
            raise GatewayResponseInvalid(
                f"Cashfree response is missing payment_session_id for order {order_id}"
            )

        log.info(f"[Order: {order_id}] Cashfree order created, status={data.get('order_status')}")
        return RemoteOrder(
            order_id=str(data.get("order_id") or order_id),
            payment_session_id=str(session_id),
            payment_links=data.get("payment_links") or None,
            order_status=data.get("order_status"),
            order_amount=_to_decimal(data.get("order_amount")),
            order_currency=data.get("order_currency"),
            raw=data,
        )

    def fetch_access_token(self) -> str:
        """Return a bearer token when a token endpoint is configured.

        Cashfree PG accepts the client id/secret headers on every call, so without
        FELIXMART_CASHFREE_TOKEN_URL this returns "" and status calls use the headers.
        """

        token_url = self._settings.cashfree_token_url
        if not token_url:
            return ""

        data = self._request("POST", token_url, order_id=None)
        inner = data.get("data") if isinstance(data.get("data"), dict) else {}
        token = inner.get("token") or data.get("token")
        if not token:
            raise GatewayResponseInvalid("Token endpoint response is missing a token")
        return str(token)

    def fetch_payment_status(self, order_id: str, *, access_token: str = "") -> PaymentStatusResult:
        path = f"/orders/{quote(order_id, safe='')}"
        order_data = self._request("GET", path, order_id=order_id, access_token=access_token)

        latest_payment: dict[str, Any] = {}
        try:
            payments = self._request_list(
                f"{path}/payments", order_id=order_id, access_token=access_token
            )
        except GatewayRequestFailed as e:
            log.warning(f"[Order: {order_id}] Payment details not available: {e}")
            payments = []
        if payments and isinstance(payments[-1], dict):
            latest_payment = payments[-1]

        order_status = order_data.get("order_status")
        status = normalize_payment_status(order_status, latest_payment.get("payment_status"))
        log.info(
            f"[Order: {order_id}] Cashfree order_status={order_status} "
            f"latest_payment={latest_payment.get('payment_status')} -> {status.value}"
        )

        return PaymentStatusResult(
            order_id=order_id,
            payment_status=status,
            order_status=order_status,
            payment_amount=_to_decimal(
                latest_payment.get("payment_amount", order_data.get("order_amount"))
            ),
            payment_currency=latest_payment.get("payment_currency")
            or order_data.get("order_currency"),
            payment_time=latest_payment.get("payment_time"),
        )

    def _headers(self, access_token: str = "") -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "x-api-version": self._settings.cashfree_api_version,
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        else:
            headers["x-client-id"] = self._settings.cashfree_client_id
            headers["x-client-secret"] = self._settings.cashfree_client_secret
        return headers

    def _send(
        self,
        method: str,
        url: str,
        *,
        order_id: str | None,
        access_token: str = "",
        json: dict | None = None,
    ) -> Any:
        prefix = f"[Order: {order_id}] " if order_id else ""
        try:
            with httpx.Client(
                base_url=self._settings.cashfree_base_url,
                timeout=self._settings.gateway_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.request(
                    method, url, headers=self._headers(access_token), json=json
                )
        except httpx.TimeoutException as e:
            log.error(f"{prefix}Cashfree {method} {url} timed out")
            raise GatewayRequestFailed(None, f"timeout: {e}") from e
        except httpx.HTTPError as e:
            log.error(f"{prefix}Cashfree {method} {url} transport error: {e}")
            raise GatewayRequestFailed(None, str(e)) from e

        if response.is_error:
            log.error(f"{prefix}Cashfree {method} {url} -> {response.status_code}")
            raise GatewayRequestFailed(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise GatewayResponseInvalid(f"Cashfree returned non-JSON body for {url}") from e

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        data = self._send(method, url, **kwargs)
        if not isinstance(data, dict):
            raise GatewayResponseInvalid(f"Expected a JSON object from {url}")
        return data

    def _request_list(self, url: str, **kwargs: Any) -> list[Any]:
        data = self._send("GET", url, **kwargs)
        return data if isinstance(data, list) else []


def _to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None
