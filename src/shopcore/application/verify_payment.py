"""Application service: Verify Payment use case.

The shopper lands back on the storefront after paying and we ask the
gateway directly instead of waiting for the webhook.  Either path may
arrive first; both end in the same idempotent handlers.
"""

from __future__ import annotations

import structlog

from shopcore.application.confirm_paid_order import ConfirmPaidOrderHandler
from shopcore.application.record_payment_failure import (
    RecordPaymentFailureHandler,
    failure_status_for,
)
from shopcore.domain.exceptions import EntityNotFoundError, PaymentGatewayError
from shopcore.domain.gateway.payment_gateway import PaymentGateway
from shopcore.domain.model.order import Order
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class VerifyPaymentHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        gateway: PaymentGateway,
        confirm: ConfirmPaidOrderHandler,
        record_failure: RecordPaymentFailureHandler,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._confirm = confirm
        self._record_failure = record_failure

    async def handle(self, reference: str) -> Order:
        """Accepts a transaction reference, gateway payment reference or order number."""
        order = await self._find(reference)
        if order.is_paid or not order.transaction_reference:
            return order

        try:
            status = await self._gateway.verify_transaction(order.transaction_reference)
        except PaymentGatewayError as exc:
            logger.warning(
                "Payment verification failed",
                order_number=order.order_number,
                error=str(exc),
            )
            return order

        if status.is_paid:
            return await self._confirm.handle(order.transaction_reference, status.paid_on)
        if status.is_failure:
            return await self._record_failure.handle(
                order.transaction_reference, failure_status_for(status.status)
            )
        logger.info(
            "Payment still pending",
            order_number=order.order_number,
            gateway_status=status.status,
        )
        return order

    async def _find(self, reference: str) -> Order:
        async with self._uow_factory() as uow:
            order = (
                await uow.orders.get_by_transaction_reference(reference)
                or await uow.orders.get_by_payment_reference(reference)
                or await uow.orders.get_by_order_number(reference)
            )
        if order is None:
            raise EntityNotFoundError(f"No order found for reference '{reference}'")
        return order
