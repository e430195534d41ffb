"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass

from shopcore.domain.model.cart import PricedCart
from shopcore.domain.model.order import Order
from shopcore.domain.model.value_objects import Address


@dataclass(frozen=True)
class CheckoutRequest:
    """Input: a checkout attempt.

    Registered users ship to their address on file, so ``shipping_address``
    only matters for guests.
    """

    items: list[tuple[str, str, int]]  # (product id, variant id, quantity)
    shipping_location: str | None = None
    shipping_address: Address | None = None
    billing_address: Address | None = None
    same_as_shipping: bool = True


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    order_number: str
    total: str
    payment_url: str
    transaction_reference: str
    reservation_expires_at: str


@dataclass(frozen=True)
class OrderItemDTO:
    """Output: a single line item as displayed to the user."""

    product_name: str
    color: str
    size: str
    quantity: int
    unit_price: str  # formatted, e.g. "NGN 800.00"
    line_total: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: str
    order_number: str
    customer: str
    order_status: str
    payment_status: str
    items: list[OrderItemDTO]
    subtotal: str
    shipping: str
    tax: str
    total: str
    created_at: str
    paid_at: str | None
    reservation: str
    deduction_error: str | None


@dataclass(frozen=True)
class CartItemDTO:
    product_name: str
    color: str
    size: str
    quantity: int
    line_total: str
    available_quantity: int


@dataclass(frozen=True)
class CartDTO:
    items: list[CartItemDTO]
    subtotal: str
    shipping: str
    tax: str
    total: str


@dataclass(frozen=True)
class InventoryLineDTO:
    """Output: one variant's stock position."""

    product_id: str
    product_name: str
    variant_id: str
    color: str
    size: str
    quantity: int
    reserved: int
    available: int
    in_stock: bool


@dataclass(frozen=True)
class ReleaseSummary:
    scanned: int
    released: int


@dataclass(frozen=True)
class WebhookOutcome:
    """What a webhook delivery did: ``confirmed``, ``failed`` or ``ignored``."""

    action: str
    order: Order | None = None


# --- Mapping ------------------------------------------------------------------

_TIMESTAMP = "%Y-%m-%d %H:%M UTC"


def order_to_dto(order: Order) -> OrderDTO:
    inventory = order.inventory
    if inventory.deducted_at:
        reservation = f"deducted {inventory.deducted_at.strftime(_TIMESTAMP)}"
    elif inventory.reservation_released_at:
        reservation = f"released {inventory.reservation_released_at.strftime(_TIMESTAMP)}"
    elif inventory.reservation_expires_at:
        reservation = f"held until {inventory.reservation_expires_at.strftime(_TIMESTAMP)}"
    else:
        reservation = "none"

    return OrderDTO(
        id=order.id,
        order_number=order.order_number,
        customer=order.user_id or f"guest <{order.guest_email}>",
        order_status=order.order_status.value,
        payment_status=order.payment_status.value,
        items=[
            OrderItemDTO(
                product_name=item.product_name,
                color=item.variant_color,
                size=item.variant_size,
                quantity=item.quantity.value,
                unit_price=str(item.variant_price),
                line_total=str(item.item_total),
            )
            for item in order.items
        ],
        subtotal=str(order.subtotal),
        shipping=str(order.shipping),
        tax=str(order.tax),
        total=str(order.total),
        created_at=order.created_at.strftime(_TIMESTAMP),
        paid_at=order.paid_at.strftime(_TIMESTAMP) if order.paid_at else None,
        reservation=reservation,
        deduction_error=inventory.deduction_error,
    )


def cart_to_dto(cart: PricedCart) -> CartDTO:
    return CartDTO(
        items=[
            CartItemDTO(
                product_name=item.product_name,
                color=item.variant_color,
                size=item.variant_size,
                quantity=item.quantity,
                line_total=str(item.item_total),
                available_quantity=item.available_quantity,
            )
            for item in cart.items
        ],
        subtotal=str(cart.subtotal),
        shipping=str(cart.shipping),
        tax=str(cart.tax),
        total=str(cart.total),
    )
