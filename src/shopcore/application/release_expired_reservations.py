"""Application service: Release Expired Reservations use case.

Run periodically (CLI ``reservations release-expired``).  Unpaid orders
whose hold ran out give their units back and are cancelled.  Each order
is handled in its own unit of work and re-checked there, so a payment
confirmation that committed after the scan always wins.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from shopcore.application.dto import ReleaseSummary
from shopcore.domain.clock import Clock, utc_now
from shopcore.domain.model.order import Order, PaymentStatus
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_LIMIT = 100


class ReleaseExpiredReservationsHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock = utc_now) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def handle(self, batch_limit: int = DEFAULT_BATCH_LIMIT) -> ReleaseSummary:
        now = self._clock()
        async with self._uow_factory() as uow:
            candidates = await uow.orders.list_expired_reservations(now, batch_limit)
        candidate_ids = [order.id for order in candidates]

        released = 0
        for order_id in candidate_ids:
            if await self._release_one(order_id):
                released += 1

        if candidate_ids:
            logger.info(
                "Expired reservations processed",
                scanned=len(candidate_ids),
                released=released,
            )
        return ReleaseSummary(scanned=len(candidate_ids), released=released)

    async def _release_one(self, order_id: str) -> bool:
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            now = self._clock()
            if order is None or not _still_expired(order, now):
                logger.info("Skipping reservation no longer eligible for release", order_id=order_id)
                return False

            svc = InventoryReservationService(uow.products)
            await svc.release_for_order(order, now)
            order.expire(now)
            await uow.orders.save(order)
            await uow.commit()

        logger.info("Reservation expired", order_number=order.order_number)
        return True


def _still_expired(order: Order, now: datetime) -> bool:
    return (
        order.payment_status == PaymentStatus.PENDING
        and order.inventory.has_active_reservation
        and order.inventory.deducted_at is None
        and order.inventory.is_expired(now)
    )
