"""Monnify implementation of PaymentGateway over its REST API."""

from __future__ import annotations

import base64
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from shopcore.domain.exceptions import PaymentGatewayError
from shopcore.domain.gateway.payment_gateway import (
    CheckoutCustomer,
    HostedCheckout,
    PaymentGateway,
    TransactionStatus,
    parse_paid_on,
)
from shopcore.domain.model.value_objects import Money

logger = structlog.get_logger(__name__)

PAYMENT_METHODS = ["CARD", "USSD", "ACCOUNT_TRANSFER"]
_LOGIN_TIMEOUT = 10.0
_CHECKOUT_TIMEOUT = 15.0


def format_nigerian_phone(phone: str) -> str:
    """Normalize a Nigerian number to ``234XXXXXXXXXX`` as Monnify expects."""
    cleaned = "".join(phone.split()).replace("+", "", 1)
    if cleaned.startswith("2340"):
        cleaned = "234" + cleaned[4:]
    if cleaned.startswith("0"):
        cleaned = "234" + cleaned[1:]
    if not cleaned.startswith("234"):
        cleaned = "234" + cleaned
    return cleaned


class MonnifyGateway(PaymentGateway):

    def __init__(
        self,
        base_url: str,
        api_key: str,
        secret_key: str,
        contract_code: str,
        redirect_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._secret_key = secret_key
        self._contract_code = contract_code
        self._redirect_url = redirect_url
        self._transport = transport

    # --- PaymentGateway interface ---------------------------------------------

    async def create_hosted_checkout(
        self,
        amount: Money,
        customer: CheckoutCustomer,
        reference: str,
        description: str,
        metadata: dict[str, str] | None = None,
    ) -> HostedCheckout:
        if not customer.name.strip() or not customer.email.strip() or not customer.phone.strip():
            raise PaymentGatewayError("Customer name, email and phone are required")

        payload: dict[str, Any] = {
            "amount": float(amount.amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
            "customerName": customer.name.strip(),
            "customerEmail": customer.email.strip(),
            "customerPhoneNumber": format_nigerian_phone(customer.phone),
            "paymentDescription": description.strip(),
            "currencyCode": amount.currency,
            "contractCode": self._contract_code,
            "redirectUrl": self._redirect_url,
            "paymentReference": reference,
            "paymentMethods": PAYMENT_METHODS,
        }
        if metadata:
            payload["metaData"] = metadata

        async with self._client(_CHECKOUT_TIMEOUT) as client:
            token = await self._login(client)
            body = await self._call(
                client,
                "POST",
                "/api/v1/merchant/transactions/init-transaction",
                token,
                "Failed to create checkout URL",
                json=payload,
            )

        checkout_url = body.get("checkoutUrl")
        transaction_reference = body.get("transactionReference")
        if not checkout_url or not transaction_reference:
            raise PaymentGatewayError("Monnify response is missing the checkout URL")

        logger.info(
            "Monnify checkout created",
            payment_reference=reference,
            transaction_reference=transaction_reference,
        )
        return HostedCheckout(
            checkout_url=checkout_url,
            transaction_reference=transaction_reference,
            payment_reference=body.get("paymentReference"),
        )

    async def verify_transaction(self, transaction_reference: str) -> TransactionStatus:
        async with self._client(_LOGIN_TIMEOUT) as client:
            token = await self._login(client)
            body = await self._call(
                client,
                "GET",
                f"/api/v2/transactions/{quote(transaction_reference, safe='')}",
                token,
                "Failed to verify transaction",
            )
        return TransactionStatus(
            status=str(body.get("paymentStatus") or "").upper(),
            paid_on=parse_paid_on(body.get("paidOn")),
        )

    # --- HTTP helpers ---------------------------------------------------------

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=timeout, transport=self._transport
        )

    async def _login(self, client: httpx.AsyncClient) -> str:
        if not self._api_key or not self._secret_key:
            raise PaymentGatewayError("Monnify API credentials are not configured")
        credentials = base64.b64encode(
            f"{self._api_key}:{self._secret_key}".encode()
        ).decode()
        try:
            resp = await client.post(
                "/api/v1/auth/login",
                headers={"Authorization": f"Basic {credentials}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Monnify authentication request failed", error=str(exc))
            raise PaymentGatewayError("Failed to authenticate with Monnify") from exc

        data = _json(resp)
        token = (data.get("responseBody") or {}).get("accessToken")
        if resp.is_error or not data.get("requestSuccessful") or not token:
            logger.error(
                "Monnify authentication failed",
                status_code=resp.status_code,
                response_message=data.get("responseMessage"),
            )
            raise PaymentGatewayError(
                data.get("responseMessage") or "Failed to get Monnify authentication token"
            )
        return token

    async def _call(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        token: str,
        failure_message: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        try:
            resp = await client.request(
                method,
                path,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.error("Monnify request failed", path=path, error=str(exc))
            raise PaymentGatewayError(failure_message) from exc

        data = _json(resp)
        if resp.is_error or not data.get("requestSuccessful"):
            logger.error(
                "Monnify rejected request",
                path=path,
                status_code=resp.status_code,
                response_message=data.get("responseMessage"),
            )
            raise PaymentGatewayError(data.get("responseMessage") or failure_message)
        return data.get("responseBody") or {}


def _json(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
