"""Integration tests for the Checkout use case.

Uses the in-memory store and a fake gateway, no file I/O.
"""

import asyncio
from datetime import timedelta

import pytest

from shopcore.application.checkout import CheckoutHandler
from shopcore.application.dto import CheckoutRequest
from shopcore.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStockError,
    PaymentGatewayError,
    ValidationError,
)
from shopcore.domain.model.order import OrderStatus
from shopcore.domain.model.shipping import ShippingSettings
from shopcore.domain.model.value_objects import Address, Money
from tests.fakes import (
    PRODUCT_ID,
    T0,
    VARIANT_ID,
    FakeClock,
    FakeCustomerDirectory,
    FakePaymentGateway,
    InMemoryStore,
    make_address,
    make_product,
    make_variant,
)

TTL = timedelta(minutes=15)


def _setup(quantity: int = 10, customers=None, shipping=None):
    store = InMemoryStore(
        [make_product(variants=[make_variant(quantity=quantity)])],
        shipping=shipping,
    )
    gateway = FakePaymentGateway()
    handler = CheckoutHandler(
        store.uow_factory,
        FakeCustomerDirectory(customers),
        gateway,
        reservation_ttl=TTL,
        clock=FakeClock(),
    )
    return handler, store, gateway


def _guest_request(qty: int = 2, **kwargs) -> CheckoutRequest:
    return CheckoutRequest(
        items=[(PRODUCT_ID, VARIANT_ID, qty)],
        shipping_address=make_address(),
        **kwargs,
    )


class TestGuestCheckout:

    def test_places_order_and_holds_stock(self):
        handler, store, _ = _setup()

        result = asyncio.run(handler.handle(None, _guest_request(2)))

        order = store.only_order()
        assert result.order_id == order.id
        assert result.total == "NGN 1,720.00"
        assert order.order_status == OrderStatus.ORDER_PLACED
        assert order.guest_email == "ada@example.com"
        assert order.inventory.reserved_at == T0
        assert order.inventory.reservation_expires_at == T0 + TTL
        assert result.reservation_expires_at == (T0 + TTL).isoformat()
        assert store.variant().reserved_quantity == 2
        assert store.variant().quantity == 10

    def test_attaches_payment_linkage(self):
        handler, store, _ = _setup()

        result = asyncio.run(handler.handle(None, _guest_request()))

        order = store.only_order()
        assert order.transaction_reference == result.transaction_reference
        assert order.payment_url == result.payment_url
        assert order.gateway_payment_reference == order.order_number

    def test_gateway_receives_order_details(self):
        handler, store, gateway = _setup()

        asyncio.run(handler.handle(None, _guest_request()))

        order = store.only_order()
        call = gateway.checkouts[0]
        assert call["amount"] == order.total
        assert call["reference"] == order.order_number
        assert call["description"] == f"Order {order.order_number} - 1 item(s)"
        assert call["customer"].name == "Ada Obi"
        assert call["metadata"] == {
            "orderId": order.id,
            "orderNumber": order.order_number,
            "userId": "guest",
            "isGuest": "true",
        }

    def test_separate_billing_address(self):
        handler, store, _ = _setup()
        billing = make_address(email="billing@example.com")

        asyncio.run(
            handler.handle(
                None, _guest_request(billing_address=billing, same_as_shipping=False)
            )
        )

        assert store.only_order().billing_address.email == "billing@example.com"

    def test_missing_address_rejected(self):
        handler, store, _ = _setup()
        request = CheckoutRequest(items=[(PRODUCT_ID, VARIANT_ID, 1)])

        with pytest.raises(ValidationError, match="Shipping address is required"):
            asyncio.run(handler.handle(None, request))
        assert store.orders == {}

    def test_incomplete_address_rejected(self):
        handler, _, _ = _setup()
        partial = Address(**{**make_address().to_dict(), "phone": ""})
        request = CheckoutRequest(items=[(PRODUCT_ID, VARIANT_ID, 1)], shipping_address=partial)

        with pytest.raises(ValidationError, match="missing: phone"):
            asyncio.run(handler.handle(None, request))


class TestRegisteredCheckout:

    def test_ships_to_address_on_file(self):
        address = make_address(email="member@example.com")
        handler, store, gateway = _setup(customers={"user-1": address})

        asyncio.run(handler.handle("user-1", CheckoutRequest(items=[(PRODUCT_ID, VARIANT_ID, 1)])))

        order = store.only_order()
        assert order.user_id == "user-1"
        assert order.shipping_address == address
        assert order.billing_address == address
        assert gateway.checkouts[0]["metadata"]["userId"] == "user-1"
        assert gateway.checkouts[0]["metadata"]["isGuest"] == "false"

    def test_unknown_user_rejected(self):
        handler, _, _ = _setup()
        with pytest.raises(EntityNotFoundError, match="User account not found"):
            asyncio.run(handler.handle("ghost", CheckoutRequest(items=[(PRODUCT_ID, VARIANT_ID, 1)])))

    def test_incomplete_address_on_file_rejected(self):
        partial = Address(**{**make_address().to_dict(), "city": ""})
        handler, store, _ = _setup(customers={"user-1": partial})

        with pytest.raises(ValidationError, match="account settings"):
            asyncio.run(handler.handle("user-1", CheckoutRequest(items=[(PRODUCT_ID, VARIANT_ID, 1)])))
        assert store.orders == {}


class TestCheckoutPricing:

    def test_shipping_fee_from_settings(self):
        settings = ShippingSettings.create(
            {"Lagos": Money.of("1500")}, free_shipping_threshold=Money.of("50000")
        )
        handler, store, _ = _setup(shipping=settings)

        result = asyncio.run(handler.handle(None, _guest_request(1, shipping_location="Lagos")))

        order = store.only_order()
        assert order.shipping == Money.of("1500")
        assert order.shipping_location == "Lagos"
        assert result.total == "NGN 2,360.00"

    def test_empty_cart_rejected(self):
        handler, store, _ = _setup()
        request = CheckoutRequest(items=[("bad", VARIANT_ID, 1)], shipping_address=make_address())

        with pytest.raises(ValidationError, match="Invalid cart items or cart is empty"):
            asyncio.run(handler.handle(None, request))
        assert store.orders == {}


class TestCheckoutStock:

    def test_more_than_available_rejected(self):
        handler, store, gateway = _setup(quantity=3)

        with pytest.raises(InsufficientStockError, match="Only 3 units available"):
            asyncio.run(handler.handle(None, _guest_request(4)))

        assert store.orders == {}
        assert store.variant().reserved_quantity == 0
        assert gateway.checkouts == []

    def test_out_of_stock_rejected(self):
        handler, _, _ = _setup(quantity=0)
        with pytest.raises(InsufficientStockError, match="out of stock"):
            asyncio.run(handler.handle(None, _guest_request(1)))

    def test_last_unit_race_has_one_winner(self):
        handler, store, _ = _setup(quantity=1)

        async def race():
            return await asyncio.gather(
                handler.handle(None, _guest_request(1)),
                handler.handle(None, _guest_request(1)),
                return_exceptions=True,
            )

        results = asyncio.run(race())

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientStockError)
        assert len(store.orders) == 1
        assert store.variant().reserved_quantity == 1
        assert store.variant().available_quantity == 0


class TestGatewayFailure:

    def test_hold_kept_until_reaper(self):
        handler, store, gateway = _setup()
        gateway.checkout_error = PaymentGatewayError("Failed to create checkout URL")

        with pytest.raises(PaymentGatewayError):
            asyncio.run(handler.handle(None, _guest_request(2)))

        order = store.only_order()
        assert order.transaction_reference is None
        assert order.inventory.has_active_reservation
        assert store.variant().reserved_quantity == 2
