"""Application service: Record Payment Failure use case.

The gateway reported that the shopper's payment failed or was
cancelled.  The order's hold is released right away instead of waiting
for the reaper.  A paid order is never touched: paid wins.
"""

from __future__ import annotations

import structlog

from shopcore.domain.clock import Clock, utc_now
from shopcore.domain.exceptions import EntityNotFoundError
from shopcore.domain.model.order import Order, PaymentStatus
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)

logger = structlog.get_logger(__name__)


class RecordPaymentFailureHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def handle(self, transaction_reference: str, status: PaymentStatus) -> Order:
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_transaction_reference(transaction_reference)
            if order is None:
                raise EntityNotFoundError(
                    f"No order for transaction '{transaction_reference}'"
                )

            now = self._clock()
            if not order.record_payment_failure(status, now):
                logger.info(
                    "Ignoring payment failure for paid order",
                    order_number=order.order_number,
                    reported_status=status.value,
                )
                return order

            svc = InventoryReservationService(uow.products)
            await svc.release_for_order(order, now)
            await uow.orders.save(order)
            await uow.commit()

        logger.info(
            "Payment failure recorded",
            order_number=order.order_number,
            payment_status=order.payment_status.value,
        )
        return order


def failure_status_for(gateway_status: str) -> PaymentStatus:
    """Map a gateway failure status onto our payment status."""
    return PaymentStatus.FAILED if gateway_status == "FAILED" else PaymentStatus.CANCELLED
