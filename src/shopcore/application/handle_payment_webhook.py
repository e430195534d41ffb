"""Application service: Handle Payment Webhook use case.

Gateways retry deliveries until they get a success response, so the same
event can arrive many times.  Authentication happens on the raw bytes
before anything is parsed.
"""

from __future__ import annotations

import json

import structlog

from shopcore.application.confirm_paid_order import ConfirmPaidOrderHandler
from shopcore.application.dto import WebhookOutcome
from shopcore.application.record_payment_failure import (
    RecordPaymentFailureHandler,
    failure_status_for,
)
from shopcore.domain.exceptions import ValidationError, WebhookSignatureError
from shopcore.domain.gateway.payment_gateway import (
    FAILURE_STATUSES,
    PAID,
    WebhookSignatureVerifier,
    parse_paid_on,
)

logger = structlog.get_logger(__name__)

SUCCESSFUL_TRANSACTION = "SUCCESSFUL_TRANSACTION"


class HandlePaymentWebhookHandler:

    def __init__(
        self,
        verifier: WebhookSignatureVerifier,
        confirm: ConfirmPaidOrderHandler,
        record_failure: RecordPaymentFailureHandler,
    ) -> None:
        self._verifier = verifier
        self._confirm = confirm
        self._record_failure = record_failure

    async def handle(self, raw_body: bytes, signature: str) -> WebhookOutcome:
        if not signature or not self._verifier.verify(raw_body, signature):
            logger.warning("Rejected webhook with invalid signature", body_size=len(raw_body))
            raise WebhookSignatureError("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            raise ValidationError("Webhook body is not valid JSON") from exc

        event_type, data = _event(payload)
        transaction_reference = data["transactionReference"]
        status = str(data.get("paymentStatus") or "").upper()

        logger.info(
            "Payment webhook received",
            event_type=event_type,
            transaction_reference=transaction_reference,
            payment_reference=data["paymentReference"],
            payment_status=status,
        )

        if event_type == SUCCESSFUL_TRANSACTION or status == PAID:
            order = await self._confirm.handle(
                transaction_reference, parse_paid_on(data.get("paidOn"))
            )
            return WebhookOutcome(action="confirmed", order=order)
        if status in FAILURE_STATUSES:
            order = await self._record_failure.handle(
                transaction_reference, failure_status_for(status)
            )
            return WebhookOutcome(action="failed", order=order)

        logger.info("Ignoring webhook event", event_type=event_type, payment_status=status)
        return WebhookOutcome(action="ignored")


def _event(payload: object) -> tuple[str, dict]:
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    event_type = payload.get("eventType")
    data = payload.get("eventData")
    if not event_type or not isinstance(data, dict):
        raise ValidationError("Webhook is missing eventType or eventData")
    for key in ("transactionReference", "paymentReference"):
        if not data.get(key):
            raise ValidationError(f"Webhook eventData is missing {key}")
    return str(event_type), data
