"""Unit tests for the Order aggregate: creation, payment and status rules."""

import re
from datetime import timedelta

import pytest

from shopcore.domain.exceptions import ValidationError
from shopcore.domain.model.cart import PricedCart
from shopcore.domain.model.order import (
    MAX_DEDUCTION_ERROR_LENGTH,
    RESERVATION_EXPIRED_REASON,
    Order,
    OrderStatus,
    PaymentStatus,
    generate_order_number,
)
from tests.fakes import (
    OTHER_VARIANT_ID,
    T0,
    make_address,
    make_order,
    make_product,
    make_variant,
)

TTL = timedelta(minutes=15)


def _paid_order() -> Order:
    order = make_order()
    order.mark_paid(T0)
    return order


class TestOrderCreation:

    def test_order_number_format(self):
        number = generate_order_number(T0)
        assert re.fullmatch(r"ORD-20240301-[0-9A-Z]{6}", number)

    def test_create_snapshots_cart(self):
        order = make_order()
        assert order.order_status == OrderStatus.ORDER_PLACED
        assert order.payment_status == PaymentStatus.PENDING
        assert order.payment_reference == order.order_number
        assert len(order.items) == 1
        item = order.items[0]
        assert item.product_name == "Agbada"
        assert item.quantity.value == 2
        assert str(item.item_total) == "NGN 1,600.00"
        assert str(order.total) == "NGN 1,720.00"

    def test_guest_order_keeps_email(self):
        order = make_order()
        assert order.is_guest
        assert order.guest_email == "ada@example.com"

    def test_registered_order_has_no_guest_email(self):
        order = make_order(user_id="user-1")
        assert not order.is_guest
        assert order.guest_email is None

    def test_empty_cart_rejected(self):
        address = make_address()
        with pytest.raises(ValidationError, match="at least one item"):
            Order.create(
                order_number=generate_order_number(T0),
                cart=PricedCart.empty(),
                shipping_address=address,
                billing_address=address,
                now=T0,
            )

    def test_malformed_order_number_rejected(self):
        order = make_order()
        address = make_address()
        cart = PricedCart(
            items=[],
            subtotal=order.subtotal,
            shipping=order.shipping,
            tax=order.tax,
            total=order.total,
        )
        with pytest.raises(ValidationError, match="Malformed order number"):
            Order.create("ORDER-1", cart, address, address, T0)

    def test_required_quantities_sum_repeated_lines(self):
        product = make_product(
            variants=[make_variant(), make_variant(variant_id=OTHER_VARIANT_ID)]
        )
        order = make_order(
            [
                (product, product.variants[0], 2),
                (product, product.variants[1], 1),
                (product, product.variants[0], 3),
            ]
        )
        assert order.required_quantities() == {
            product.id: {product.variants[0].id: 5, OTHER_VARIANT_ID: 1}
        }


class TestMarkPaid:

    def test_moves_placed_order_to_processing(self):
        order = make_order()
        order.mark_paid(T0, paid_at=T0 - timedelta(minutes=1))
        assert order.is_paid
        assert order.order_status == OrderStatus.PROCESSING
        assert order.paid_at == T0 - timedelta(minutes=1)

    def test_repeat_keeps_first_paid_at(self):
        order = _paid_order()
        order.mark_paid(T0 + timedelta(hours=1))
        assert order.paid_at == T0

    def test_payment_revives_expired_order(self):
        order = make_order()
        order.expire(T0)
        order.mark_paid(T0 + timedelta(minutes=1))
        assert order.order_status == OrderStatus.PROCESSING
        assert order.cancelled_at is None
        assert order.cancellation_reason is None

    def test_does_not_rewind_fulfillment(self):
        order = _paid_order()
        order.advance_to(OrderStatus.PACKED, T0)
        order.mark_paid(T0)
        assert order.order_status == OrderStatus.PACKED

    def test_pinned_order_stays_failed(self):
        order = _paid_order()
        order.mark_deduction_failed(T0, ["Insufficient stock for Agbada"])
        order.mark_paid(T0 + timedelta(minutes=5))
        assert order.order_status == OrderStatus.FAILED
        assert order.inventory.deduction_error == "Insufficient stock for Agbada"


class TestPaymentFailure:

    def test_failed_payment_fails_order(self):
        order = make_order()
        assert order.record_payment_failure(PaymentStatus.FAILED, T0)
        assert order.payment_status == PaymentStatus.FAILED
        assert order.order_status == OrderStatus.FAILED

    def test_cancelled_payment_cancels_order(self):
        order = make_order()
        assert order.record_payment_failure(PaymentStatus.CANCELLED, T0)
        assert order.order_status == OrderStatus.CANCELLED
        assert order.cancelled_at == T0

    def test_paid_order_ignores_failure(self):
        order = _paid_order()
        assert not order.record_payment_failure(PaymentStatus.FAILED, T0)
        assert order.is_paid
        assert order.order_status == OrderStatus.PROCESSING

    def test_non_failure_status_rejected(self):
        with pytest.raises(ValidationError):
            make_order().record_payment_failure(PaymentStatus.PAID, T0)


class TestInventoryLifecycle:

    def test_mark_reserved_sets_expiry(self):
        order = make_order()
        order.mark_reserved(T0, TTL)
        assert order.inventory.has_active_reservation
        assert order.inventory.reservation_expires_at == T0 + TTL
        assert not order.inventory.is_expired(T0 + TTL)
        assert order.inventory.is_expired(T0 + TTL + timedelta(seconds=1))

    def test_reserve_twice_rejected(self):
        order = make_order()
        order.mark_reserved(T0, TTL)
        with pytest.raises(ValidationError, match="already holds"):
            order.mark_reserved(T0, TTL)

    def test_release_is_idempotent(self):
        order = make_order()
        order.mark_reserved(T0, TTL)
        order.mark_reservation_released(T0 + timedelta(minutes=1))
        order.mark_reservation_released(T0 + timedelta(minutes=2))
        assert order.inventory.reservation_released_at == T0 + timedelta(minutes=1)
        assert not order.inventory.has_active_reservation

    def test_deduction_consumes_hold(self):
        order = make_order()
        order.mark_reserved(T0, TTL)
        order.mark_deducted(T0 + timedelta(minutes=2))
        assert order.inventory.deducted_at == T0 + timedelta(minutes=2)
        assert order.inventory.reservation_released_at == T0 + timedelta(minutes=2)

    def test_deduct_twice_rejected(self):
        order = make_order()
        order.mark_deducted(T0)
        with pytest.raises(ValidationError, match="already deducted"):
            order.mark_deducted(T0)

    def test_deduction_failure_is_capped(self):
        order = _paid_order()
        order.mark_deduction_failed(T0, ["x" * 400, "y" * 400])
        assert len(order.inventory.deduction_error) == MAX_DEDUCTION_ERROR_LENGTH
        assert order.order_status == OrderStatus.FAILED

    def test_successful_retry_clears_failure(self):
        order = _paid_order()
        order.mark_deduction_failed(T0, ["short"])
        order.mark_deducted(T0 + timedelta(hours=1))
        assert order.inventory.deduction_failed_at is None
        assert order.inventory.deduction_error is None
        assert order.order_status == OrderStatus.PROCESSING


class TestExpire:

    def test_expire_cancels_with_reason(self):
        order = make_order()
        order.expire(T0)
        assert order.order_status == OrderStatus.CANCELLED
        assert order.cancellation_reason == RESERVATION_EXPIRED_REASON

    def test_expire_already_cancelled_is_noop(self):
        order = make_order()
        order.record_payment_failure(PaymentStatus.CANCELLED, T0)
        order.expire(T0 + timedelta(hours=1))
        assert order.cancelled_at == T0
        assert order.cancellation_reason != RESERVATION_EXPIRED_REASON


class TestAdvanceTo:

    def test_full_fulfillment_path(self):
        order = _paid_order()
        for status in (
            OrderStatus.PACKED,
            OrderStatus.SHIPPED,
            OrderStatus.IN_TRANSIT,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ):
            order.advance_to(status, T0)
        assert order.order_status == OrderStatus.DELIVERED
        assert order.shipped_at == T0
        assert order.delivered_at == T0

    def test_skipping_ahead_is_allowed(self):
        order = _paid_order()
        order.advance_to(OrderStatus.OUT_FOR_DELIVERY, T0)
        assert order.shipped_at == T0

    def test_backwards_rejected(self):
        order = _paid_order()
        order.advance_to(OrderStatus.SHIPPED, T0)
        with pytest.raises(ValidationError, match="back from shipped to packed"):
            order.advance_to(OrderStatus.PACKED, T0)

    def test_unpaid_order_cannot_ship(self):
        with pytest.raises(ValidationError, match="not paid"):
            make_order().advance_to(OrderStatus.SHIPPED, T0)

    def test_cancel_records_reason(self):
        order = make_order()
        order.advance_to(OrderStatus.CANCELLED, T0, reason="Customer request")
        assert order.cancelled_at == T0
        assert order.cancellation_reason == "Customer request"

    @pytest.mark.parametrize(
        "final", [OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.FAILED]
    )
    def test_terminal_states_are_final(self, final):
        order = _paid_order()
        order.advance_to(final, T0)
        with pytest.raises(ValidationError, match="is final"):
            order.advance_to(OrderStatus.PROCESSING, T0)

    def test_same_status_rejected(self):
        with pytest.raises(ValidationError, match="already processing"):
            _paid_order().advance_to(OrderStatus.PROCESSING, T0)
