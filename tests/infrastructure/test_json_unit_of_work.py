"""Tests for the JSON document store and its unit of work."""

import asyncio
import json
from datetime import timedelta

import pytest

from shopcore.domain.exceptions import ConcurrencyConflictError
from shopcore.domain.model.shipping import ShippingSettings
from shopcore.domain.model.value_objects import Money
from shopcore.domain.service.inventory_reservation_service import (
    InventoryReservationService,
)
from shopcore.infrastructure.persistence.json_document_store import JsonDocumentStore
from shopcore.infrastructure.persistence.json_unit_of_work import JsonUnitOfWork
from tests.fakes import (
    PRODUCT_ID,
    T0,
    VARIANT_ID,
    make_order,
    make_product,
)


def _setup(tmp_path, lock_timeout=1.0):
    store = JsonDocumentStore(tmp_path / "data" / "store.json", lock_timeout=lock_timeout)
    return store, lambda: JsonUnitOfWork(store)


def _seed(uow_factory, *products):
    async def seed():
        async with uow_factory() as uow:
            for product in products:
                await uow.products.save(product)
            await uow.commit()

    asyncio.run(seed())


class TestDocumentStore:

    def test_creates_empty_document(self, tmp_path):
        store, _ = _setup(tmp_path)
        raw = json.loads(store.file_path.read_text())
        assert raw == {"products": [], "orders": [], "shipping_settings": None}

    def test_commit_persists(self, tmp_path):
        store, uow_factory = _setup(tmp_path)
        _seed(uow_factory, make_product())

        raw = json.loads(store.file_path.read_text())
        assert raw["products"][0]["id"] == PRODUCT_ID
        assert raw["products"][0]["variants"][0]["in_stock"] is True

    def test_leaving_without_commit_discards(self, tmp_path):
        _, uow_factory = _setup(tmp_path)
        _seed(uow_factory, make_product())

        async def scenario():
            async with uow_factory() as uow:
                product = await uow.products.get_by_id(PRODUCT_ID)
                product.variants[0].reserve(5)
                await uow.products.save(product)
            async with uow_factory() as uow:
                return await uow.products.get_by_id(PRODUCT_ID)

        assert asyncio.run(scenario()).variants[0].reserved_quantity == 0

    def test_error_inside_block_discards(self, tmp_path):
        _, uow_factory = _setup(tmp_path)
        _seed(uow_factory, make_product())

        async def failing():
            async with uow_factory() as uow:
                product = await uow.products.get_by_id(PRODUCT_ID)
                product.name = "Renamed"
                await uow.products.save(product)
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(failing())

        async def read():
            async with uow_factory() as uow:
                return await uow.products.get_by_id(PRODUCT_ID)

        assert asyncio.run(read()).name == "Agbada"

    def test_lock_timeout_raises_conflict(self, tmp_path):
        store, _ = _setup(tmp_path, lock_timeout=0.05)

        async def scenario():
            session = await store.open_session()
            try:
                with pytest.raises(ConcurrencyConflictError):
                    await store.open_session()
            finally:
                session.close()
            # released: a new session opens fine
            (await store.open_session()).close()

        asyncio.run(scenario())

    def test_concurrent_units_of_work_serialize(self, tmp_path):
        _, uow_factory = _setup(tmp_path)
        _seed(uow_factory, make_product())

        async def reserve_one():
            async with uow_factory() as uow:
                product = await uow.products.get_by_id(PRODUCT_ID)
                await asyncio.sleep(0)
                product.variants[0].reserve(1)
                await uow.products.save(product)
                await uow.commit()

        async def scenario():
            await asyncio.gather(*(reserve_one() for _ in range(5)))
            async with uow_factory() as uow:
                return await uow.products.get_by_id(PRODUCT_ID)

        assert asyncio.run(scenario()).variants[0].reserved_quantity == 5


class TestProductSerialization:

    def test_lenient_load_of_malformed_variant(self, tmp_path):
        store, uow_factory = _setup(tmp_path)
        _seed(uow_factory, make_product())
        raw = json.loads(store.file_path.read_text())
        variant = raw["products"][0]["variants"][0]
        variant.update(price="abc", size="HUGE", quantity=2.5, in_stock=True)
        store.file_path.write_text(json.dumps(raw))

        async def read():
            async with uow_factory() as uow:
                return await uow.products.get_by_id(PRODUCT_ID)

        loaded = asyncio.run(read()).variants[0]
        assert loaded.price is None
        assert loaded.size is None
        assert loaded.quantity is None
        assert not loaded.in_stock
        assert "invalid price" in loaded.problems()


class TestOrderSerialization:

    def test_order_survives_round_trip(self, tmp_path):
        _, uow_factory = _setup(tmp_path)
        product = make_product()
        _seed(uow_factory, product)
        order = make_order()

        async def scenario():
            async with uow_factory() as uow:
                svc = InventoryReservationService(uow.products)
                await svc.reserve_for_order(order, T0, timedelta(minutes=15))
                order.attach_payment("MNFY|1", order.order_number, "https://pay/1", T0)
                await uow.orders.save(order)
                await uow.commit()
            async with uow_factory() as uow:
                return (
                    await uow.orders.get_by_transaction_reference("MNFY|1"),
                    await uow.products.get_by_id(PRODUCT_ID),
                )

        loaded, stocked = asyncio.run(scenario())
        assert loaded == order
        assert stocked.find_variant(VARIANT_ID).reserved_quantity == 2

    def test_expired_reservations_listed_oldest_first(self, tmp_path):
        _, uow_factory = _setup(tmp_path)
        _seed(uow_factory, make_product())
        later, earlier, paid = make_order(), make_order(), make_order()
        later.mark_reserved(T0 + timedelta(minutes=5), timedelta(minutes=15))
        earlier.mark_reserved(T0, timedelta(minutes=15))
        paid.mark_reserved(T0, timedelta(minutes=15))
        paid.mark_paid(T0)

        async def scenario():
            async with uow_factory() as uow:
                for order in (later, earlier, paid):
                    await uow.orders.save(order)
                await uow.commit()
            async with uow_factory() as uow:
                return await uow.orders.list_expired_reservations(
                    T0 + timedelta(hours=1), limit=10
                )

        assert [o.id for o in asyncio.run(scenario())] == [earlier.id, later.id]


class TestShippingSerialization:

    def test_settings_round_trip(self, tmp_path):
        _, uow_factory = _setup(tmp_path)
        settings = ShippingSettings.create(
            {"Lagos": Money.of("1500"), "Abuja": Money.of("3000.50")},
            free_shipping_threshold=Money.of("50000"),
        )

        async def scenario():
            async with uow_factory() as uow:
                assert await uow.shipping.get() == ShippingSettings()
                await uow.shipping.save(settings)
                await uow.commit()
            async with uow_factory() as uow:
                return await uow.shipping.get()

        assert asyncio.run(scenario()) == settings
