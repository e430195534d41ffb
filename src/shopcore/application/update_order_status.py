"""Application service: Update Order Status use case (admin).

Moves an order along fulfillment.  Cancelling or failing an unpaid order that
still holds stock gives the stock back in the same unit of work.
"""

from __future__ import annotations

import structlog

from shopcore.domain.clock import Clock, utc_now
from shopcore.domain.exceptions import EntityNotFoundError, ValidationError
from shopcore.domain.model.order import Order, OrderStatus
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)

logger = structlog.get_logger(__name__)


class UpdateOrderStatusHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def handle(self, order_id: str, status: str, reason: str | None = None) -> Order:
        try:
            target = OrderStatus(status)
        except ValueError as exc:
            allowed = ", ".join(s.value for s in OrderStatus)
            raise ValidationError(f"Unknown order status '{status}' (expected one of {allowed})") from exc

        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise EntityNotFoundError(f"Order {order_id} not found")

            now = self._clock()
            previous = order.order_status
            order.advance_to(target, now, reason)
            if target in (OrderStatus.CANCELLED, OrderStatus.FAILED) and not order.is_paid:
                svc = InventoryReservationService(uow.products)
                await svc.release_for_order(order, now)

            await uow.orders.save(order)
            await uow.commit()

        logger.info(
            "Order status updated",
            order_number=order.order_number,
            previous=previous.value,
            current=order.order_status.value,
        )
        return order
