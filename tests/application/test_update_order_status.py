"""Integration tests for admin order status changes."""

import asyncio
from datetime import timedelta

import pytest

from shopcore.application.update_order_status import UpdateOrderStatusHandler
from shopcore.domain.exceptions import EntityNotFoundError, ValidationError
from shopcore.domain.model.order import OrderStatus
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)
from tests.fakes import (
    T0,
    FakeClock,
    FakeProductRepository,
    InMemoryStore,
    make_order,
    make_product,
)


def _setup(paid: bool = False):
    """One order holding 2 units, optionally paid and deducted."""
    store = InMemoryStore([make_product()])
    order = make_order()
    svc = InventoryReservationService(FakeProductRepository(store.products))
    asyncio.run(svc.reserve_for_order(order, T0, timedelta(minutes=15)))
    if paid:
        order.mark_paid(T0)
        asyncio.run(svc.deduct_for_order(order, T0))
    store.orders[order.id] = order
    handler = UpdateOrderStatusHandler(store.uow_factory, clock=FakeClock())
    return handler, store, order.id


class TestUpdateOrderStatus:

    def test_advances_paid_order(self):
        handler, store, order_id = _setup(paid=True)

        order = asyncio.run(handler.handle(order_id, "shipped"))

        assert order.order_status == OrderStatus.SHIPPED
        assert store.only_order().shipped_at == T0

    def test_unpaid_order_cannot_be_packed(self):
        handler, store, order_id = _setup()

        with pytest.raises(ValidationError, match="not paid"):
            asyncio.run(handler.handle(order_id, "packed"))
        assert store.only_order().order_status == OrderStatus.ORDER_PLACED

    def test_cancelling_unpaid_order_releases_hold(self):
        handler, store, order_id = _setup()

        asyncio.run(handler.handle(order_id, "cancelled", reason="Duplicate order"))

        order = store.only_order()
        assert order.order_status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "Duplicate order"
        assert store.variant().reserved_quantity == 0

    def test_failing_unpaid_order_releases_hold(self):
        handler, store, order_id = _setup()
        asyncio.run(handler.handle(order_id, "failed"))
        assert store.variant().reserved_quantity == 0

    def test_cancelling_paid_order_keeps_stock_deducted(self):
        handler, store, order_id = _setup(paid=True)

        asyncio.run(handler.handle(order_id, "cancelled"))

        assert store.variant().quantity == 8
        assert store.variant().reserved_quantity == 0

    def test_unknown_status_rejected(self):
        handler, _, order_id = _setup()
        with pytest.raises(ValidationError, match="Unknown order status 'lost'"):
            asyncio.run(handler.handle(order_id, "lost"))

    def test_unknown_order_rejected(self):
        handler, _, _ = _setup()
        with pytest.raises(EntityNotFoundError):
            asyncio.run(handler.handle("64b0c0ffee0000000000beef", "shipped"))
