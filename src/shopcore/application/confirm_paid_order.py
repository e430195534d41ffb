"""Application service: Confirm Paid Order use case.

Called whenever the gateway tells us money arrived (webhook, polling or
an operator).  The gateway may deliver the same notification many times
and in any order relative to the reservation reaper, so the whole use
case is idempotent: stock is deducted at most once per order.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from shopcore.domain.clock import Clock, utc_now
from shopcore.domain.exceptions import DeductionIntegrityError, EntityNotFoundError
from shopcore.domain.gateway.notifier import Notifier
from shopcore.domain.model.order import Order
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)

logger = structlog.get_logger(__name__)


class ConfirmPaidOrderHandler:

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: Notifier,
        clock: Clock = utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._notifier = notifier
        self._clock = clock

    async def handle(
        self,
        transaction_reference: str,
        paid_at: datetime | None = None,
        retry_failed: bool = False,
    ) -> Order:
        """Mark the order paid and deduct its stock, once.

        Steps:
        1. Record the payment (order moves to PROCESSING).
        2. Already deducted → nothing else to do.
        3. Pinned by an earlier deduction failure → stays FAILED unless
           ``retry_failed`` is set by an operator.
        4. Otherwise validate and deduct; an integrity failure is stored
           on the order instead of raised.
        """
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_transaction_reference(transaction_reference)
            if order is None:
                raise EntityNotFoundError(
                    f"No order for transaction '{transaction_reference}'"
                )

            now = self._clock()
            was_paid = order.is_paid
            order.mark_paid(now, paid_at)

            if order.inventory.deducted_at is not None:
                order.clear_deduction_failure()
            elif order.inventory.deduction_failed_at is not None and not retry_failed:
                logger.warning(
                    "Paid order pinned by earlier deduction failure",
                    order_number=order.order_number,
                    deduction_error=order.inventory.deduction_error,
                )
            else:
                svc = InventoryReservationService(uow.products)
                try:
                    await svc.deduct_for_order(order, now)
                except DeductionIntegrityError as exc:
                    order.mark_deduction_failed(now, exc.messages)
                    logger.error(
                        "Inventory deduction failed for paid order",
                        order_number=order.order_number,
                        transaction_reference=transaction_reference,
                        problems=exc.messages,
                    )

            await uow.orders.save(order)
            await uow.commit()

        logger.info(
            "Payment confirmed",
            order_number=order.order_number,
            order_status=order.order_status.value,
            already_paid=was_paid,
        )
        if not was_paid:
            await self._notify(order)
        return order

    async def _notify(self, order: Order) -> None:
        try:
            await self._notifier.payment_confirmed(order)
        except Exception:
            logger.exception(
                "Failed to send payment confirmation",
                order_number=order.order_number,
            )
