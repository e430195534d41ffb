"""Order aggregate: the core of the domain.

The Order is an aggregate root that owns immutable snapshots of what was
bought, the money owed, the payment linkage and the inventory lifecycle
of its stock hold. All status transitions are enforced here; inventory
changes happen separately via the domain service.
"""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from shopcore.domain.clock import utc_now
from shopcore.domain.exceptions import ValidationError
from shopcore.domain.model.cart import PricedCart, PricedCartItem
from shopcore.domain.model.product import Measurements
from shopcore.domain.model.value_objects import Address, Money, Quantity, new_id


class OrderStatus(Enum):
    ORDER_PLACED = "order_placed"
    PROCESSING = "processing"
    PACKED = "packed"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
FULFILLMENT_SEQUENCE = (
    OrderStatus.ORDER_PLACED,
    OrderStatus.PROCESSING,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
    OrderStatus.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)
TERMINAL_STATUSES = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.FAILED}
)
MAX_LINE_ITEMS = 50
MAX_DEDUCTION_ERROR_LENGTH = 500
RESERVATION_EXPIRED_REASON = "Reservation expired"
PAYMENT_CANCELLED_REASON = "Payment cancelled"

_ORDER_NUMBER = re.compile(r"^ORD-\d{8}-[0-9A-Z]{6}$")
_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


def generate_order_number(now: datetime) -> str:
    """Format: ORD-YYYYMMDD-XXXXXX where XXXXXX is random base-36."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"ORD-{now:%Y%m%d}-{suffix}"


@dataclass(frozen=True)
class OrderItem:
    """Snapshot of a priced cart line at checkout time.

    Never a live reference to the variant: the order stays readable even
    if the product is later edited or deleted.
    """

    product_id: str
    variant_id: str
    product_name: str
    product_slug: str
    variant_image_urls: tuple[str, ...]
    variant_color: str
    variant_size: str
    variant_price: Money
    variant_discount_price: Money
    quantity: Quantity
    item_subtotal: Money
    item_total: Money
    measurements: Measurements | None = None

    @staticmethod
    def from_priced(item: PricedCartItem) -> OrderItem:
        return OrderItem(
            product_id=item.product_id,
            variant_id=item.variant_id,
            product_name=item.product_name,
            product_slug=item.product_slug,
            variant_image_urls=tuple(item.variant_image_urls),
            variant_color=item.variant_color,
            variant_size=item.variant_size,
            variant_price=item.variant_price,
            variant_discount_price=item.variant_discount_price,
            quantity=Quantity(item.quantity),
            item_subtotal=item.item_subtotal,
            item_total=item.item_total,
            measurements=item.measurements,
        )


@dataclass
class InventoryLifecycle:
    """Timestamps tracking what happened to the order's stock hold."""

    reserved_at: datetime | None = None
    reservation_expires_at: datetime | None = None
    reservation_released_at: datetime | None = None
    deducted_at: datetime | None = None
    deduction_failed_at: datetime | None = None
    deduction_error: str | None = None

    @property
    def has_active_reservation(self) -> bool:
        return self.reserved_at is not None and self.reservation_released_at is None

    def is_expired(self, now: datetime) -> bool:
        return (
            self.reservation_expires_at is not None
            and self.reservation_expires_at < now
        )


@dataclass
class Order:
    """Aggregate root for a checkout attempt.

    Use the ``Order.create()`` factory for new orders; it enforces all
    business rules.  The ``__init__`` is intentionally simple so the
    repository can reconstitute persisted orders without re-validating.
    """

    id: str
    order_number: str
    items: list[OrderItem]
    shipping_address: Address
    billing_address: Address
    subtotal: Money
    shipping: Money
    tax: Money
    total: Money
    user_id: str | None = None
    guest_email: str | None = None
    shipping_location: str | None = None
    order_status: OrderStatus = OrderStatus.ORDER_PLACED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str = "monnify"
    payment_reference: str | None = None
    transaction_reference: str | None = None
    gateway_payment_reference: str | None = None
    payment_url: str | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    inventory: InventoryLifecycle = field(default_factory=InventoryLifecycle)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        order_number: str,
        cart: PricedCart,
        shipping_address: Address,
        billing_address: Address,
        now: datetime,
        user_id: str | None = None,
        shipping_location: str | None = None,
    ) -> Order:
        """Create a new order from a priced cart, enforcing all invariants."""
        if not _ORDER_NUMBER.match(order_number):
            raise ValidationError(f"Malformed order number '{order_number}'")
        if cart.is_empty:
            raise ValidationError("Order must contain at least one item")
        if cart.item_count > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        if not shipping_address.is_complete() or not billing_address.is_complete():
            raise ValidationError("Complete shipping and billing addresses are required")

        return Order(
            id=new_id(),
            order_number=order_number,
            items=[OrderItem.from_priced(item) for item in cart.items],
            shipping_address=shipping_address,
            billing_address=billing_address,
            subtotal=cart.subtotal,
            shipping=cart.shipping,
            tax=cart.tax,
            total=cart.total,
            user_id=user_id,
            guest_email=None if user_id else shipping_address.email,
            shipping_location=shipping_location,
            payment_reference=order_number,
            created_at=now,
            updated_at=now,
        )

    # --- Computed properties --------------------------------------------------

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def required_quantities(self) -> dict[str, dict[str, int]]:
        """Units per product id -> variant id, summed across line items."""
        required: dict[str, dict[str, int]] = {}
        for item in self.items:
            per_variant = required.setdefault(item.product_id, {})
            per_variant[item.variant_id] = (
                per_variant.get(item.variant_id, 0) + item.quantity.value
            )
        return required

    # --- Payment linkage ------------------------------------------------------

    def attach_payment(
        self,
        transaction_reference: str,
        gateway_payment_reference: str | None,
        payment_url: str | None,
        now: datetime,
    ) -> None:
        if not transaction_reference:
            raise ValidationError("Transaction reference is required")
        self.transaction_reference = transaction_reference
        self.gateway_payment_reference = gateway_payment_reference
        self.payment_url = payment_url
        self.updated_at = now

    def mark_paid(self, now: datetime, paid_at: datetime | None = None) -> None:
        """Record a confirmed payment. Safe to call repeatedly.

        Moves the order into PROCESSING unless it has already progressed
        further along fulfillment; payment wins over an expired hold, so a
        CANCELLED or FAILED order is brought back to PROCESSING.  An order
        pinned by a deduction failure stays FAILED.
        """
        self.payment_status = PaymentStatus.PAID
        self.paid_at = paid_at or self.paid_at or now
        pinned = self.inventory.deduction_failed_at is not None
        if not pinned and self.order_status in (
            OrderStatus.ORDER_PLACED,
            OrderStatus.CANCELLED,
            OrderStatus.FAILED,
        ):
            self.order_status = OrderStatus.PROCESSING
            self.cancelled_at = None
            self.cancellation_reason = None
        self.updated_at = now

    def record_payment_failure(self, status: PaymentStatus, now: datetime) -> bool:
        """Record a failed or cancelled payment.

        Returns False (and changes nothing) when the order is already paid.
        """
        if status not in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            raise ValidationError(f"Not a payment failure status: {status.value}")
        if self.is_paid:
            return False
        self.payment_status = status
        if status == PaymentStatus.FAILED:
            self.order_status = OrderStatus.FAILED
        else:
            self.order_status = OrderStatus.CANCELLED
            self.cancelled_at = self.cancelled_at or now
            self.cancellation_reason = self.cancellation_reason or PAYMENT_CANCELLED_REASON
        self.updated_at = now
        return True

    # --- Inventory lifecycle --------------------------------------------------

    def mark_reserved(self, now: datetime, ttl: timedelta) -> None:
        if self.inventory.reserved_at is not None:
            raise ValidationError(f"Order {self.order_number} already holds a reservation")
        self.inventory.reserved_at = now
        self.inventory.reservation_expires_at = now + ttl
        self.updated_at = now

    def mark_reservation_released(self, now: datetime) -> None:
        if self.inventory.reservation_released_at is None:
            self.inventory.reservation_released_at = now
        self.updated_at = now

    def mark_deducted(self, now: datetime) -> None:
        """Stamp the one-time stock deduction.

        An active hold is consumed by the deduction, so it is stamped as
        released at the same moment.
        """
        if self.inventory.deducted_at is not None:
            raise ValidationError(f"Inventory for order {self.order_number} already deducted")
        if self.inventory.has_active_reservation:
            self.inventory.reservation_released_at = now
        self.inventory.deducted_at = now
        if self.inventory.deduction_failed_at is not None:
            self.clear_deduction_failure()
            if self.order_status == OrderStatus.FAILED:
                self.order_status = OrderStatus.PROCESSING
        self.updated_at = now

    def mark_deduction_failed(self, now: datetime, messages: list[str]) -> None:
        """Pin a paid-but-unfulfillable order for operator action."""
        error = "; ".join(messages) or "Inventory deduction failed"
        self.inventory.deduction_failed_at = now
        self.inventory.deduction_error = error[:MAX_DEDUCTION_ERROR_LENGTH]
        self.order_status = OrderStatus.FAILED
        self.updated_at = now

    def clear_deduction_failure(self) -> None:
        self.inventory.deduction_failed_at = None
        self.inventory.deduction_error = None

    # --- Status transitions ---------------------------------------------------

    def expire(self, now: datetime) -> None:
        """Cancel an unpaid order whose hold ran out. No-op if already cancelled."""
        if self.order_status == OrderStatus.CANCELLED:
            return
        self.order_status = OrderStatus.CANCELLED
        self.cancelled_at = now
        self.cancellation_reason = RESERVATION_EXPIRED_REASON
        self.updated_at = now

    def advance_to(self, status: OrderStatus, now: datetime, reason: str | None = None) -> None:
        """Admin-driven transition.

        Only forward moves along the fulfillment sequence, or a side exit
        to CANCELLED/FAILED from any state before DELIVERED.
        """
        current = self.order_status
        if current in TERMINAL_STATUSES:
            raise ValidationError(
                f"Cannot change order {self.order_number}: status {current.value} is final"
            )
        if status == current:
            raise ValidationError(f"Order {self.order_number} is already {status.value}")
        if status not in (OrderStatus.CANCELLED, OrderStatus.FAILED):
            if FULFILLMENT_SEQUENCE.index(status) < FULFILLMENT_SEQUENCE.index(current):
                raise ValidationError(
                    f"Cannot move order {self.order_number} back from "
                    f"{current.value} to {status.value}"
                )
            if status != OrderStatus.PROCESSING and not self.is_paid:
                raise ValidationError(
                    f"Order {self.order_number} is not paid, cannot move to {status.value}"
                )

        self.order_status = status
        if status == OrderStatus.SHIPPED:
            self.shipped_at = now
        elif status == OrderStatus.OUT_FOR_DELIVERY and self.shipped_at is None:
            self.shipped_at = now
        elif status == OrderStatus.DELIVERED:
            self.delivered_at = now
        elif status == OrderStatus.CANCELLED:
            self.cancelled_at = now
            self.cancellation_reason = reason
        self.updated_at = now
