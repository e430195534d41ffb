"""JSON-document-backed implementation of OrderRepository."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from shopcore.domain.model.order import (
    InventoryLifecycle,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from shopcore.domain.model.product import Measurements
from shopcore.domain.model.value_objects import DEFAULT_CURRENCY, Address, Money, Quantity
from shopcore.domain.repository.order_repository import OrderRepository

_LIFECYCLE_TIMESTAMPS = (
    "reserved_at",
    "reservation_expires_at",
    "reservation_released_at",
    "deducted_at",
    "deduction_failed_at",
)
_ORDER_TIMESTAMPS = ("paid_at", "shipped_at", "delivered_at", "cancelled_at")


class JsonOrderRepository(OrderRepository):

    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document

    # --- OrderRepository interface --------------------------------------------

    async def get_by_id(self, order_id: str) -> Order | None:
        return self._find("id", order_id)

    async def get_by_order_number(self, order_number: str) -> Order | None:
        return self._find("order_number", order_number)

    async def get_by_transaction_reference(self, reference: str) -> Order | None:
        return self._find("transaction_reference", reference)

    async def get_by_payment_reference(self, reference: str) -> Order | None:
        return self._find("gateway_payment_reference", reference)

    async def order_number_exists(self, order_number: str) -> bool:
        return any(raw["order_number"] == order_number for raw in self._raw_orders())

    async def list_expired_reservations(self, now: datetime, limit: int) -> list[Order]:
        expired = [
            order
            for order in (self._to_domain(raw) for raw in self._raw_orders())
            if order.payment_status == PaymentStatus.PENDING
            and order.inventory.has_active_reservation
            and order.inventory.deducted_at is None
            and order.inventory.is_expired(now)
        ]
        expired.sort(key=lambda o: o.inventory.reservation_expires_at or now)
        return expired[:limit]

    async def save(self, order: Order) -> None:
        orders = self._raw_orders()

        # Upsert: replace if exists, otherwise append
        for i, raw in enumerate(orders):
            if raw["id"] == order.id:
                orders[i] = self._to_raw(order)
                return
        orders.append(self._to_raw(order))

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict[str, Any]:
        inventory = order.inventory
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "is_guest": order.is_guest,
            "guest_email": order.guest_email,
            "items": [
                {
                    "product_id": item.product_id,
                    "variant_id": item.variant_id,
                    "product_name": item.product_name,
                    "product_slug": item.product_slug,
                    "variant_image_urls": list(item.variant_image_urls),
                    "variant_color": item.variant_color,
                    "variant_size": item.variant_size,
                    "variant_price": str(item.variant_price.amount),
                    "variant_discount_price": str(item.variant_discount_price.amount),
                    "quantity": item.quantity.value,
                    "item_subtotal": str(item.item_subtotal.amount),
                    "item_total": str(item.item_total.amount),
                    "measurements": (
                        item.measurements.populated() if item.measurements else None
                    ),
                }
                for item in order.items
            ],
            "shipping_address": order.shipping_address.to_dict(),
            "billing_address": order.billing_address.to_dict(),
            "shipping_location": order.shipping_location,
            "currency": order.total.currency,
            "subtotal": str(order.subtotal.amount),
            "shipping": str(order.shipping.amount),
            "tax": str(order.tax.amount),
            "total": str(order.total.amount),
            "order_status": order.order_status.value,
            "payment_status": order.payment_status.value,
            "payment_method": order.payment_method,
            "payment_reference": order.payment_reference,
            "transaction_reference": order.transaction_reference,
            "gateway_payment_reference": order.gateway_payment_reference,
            "payment_url": order.payment_url,
            **{name: _iso(getattr(order, name)) for name in _ORDER_TIMESTAMPS},
            "cancellation_reason": order.cancellation_reason,
            "inventory": {
                **{name: _iso(getattr(inventory, name)) for name in _LIFECYCLE_TIMESTAMPS},
                "deduction_error": inventory.deduction_error,
            },
            "created_at": order.created_at.isoformat(),
            "updated_at": order.updated_at.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict[str, Any]) -> Order:
        currency = raw.get("currency", DEFAULT_CURRENCY)

        def money(value: str) -> Money:
            return Money(Decimal(value), currency)

        items = [
            OrderItem(
                product_id=i["product_id"],
                variant_id=i["variant_id"],
                product_name=i["product_name"],
                product_slug=i["product_slug"],
                variant_image_urls=tuple(i["variant_image_urls"]),
                variant_color=i["variant_color"],
                variant_size=i["variant_size"],
                variant_price=money(i["variant_price"]),
                variant_discount_price=money(i["variant_discount_price"]),
                quantity=Quantity(i["quantity"]),
                item_subtotal=money(i["item_subtotal"]),
                item_total=money(i["item_total"]),
                measurements=Measurements(**i["measurements"]) if i.get("measurements") else None,
            )
            for i in raw["items"]
        ]
        lifecycle = raw.get("inventory") or {}
        return Order(
            id=raw["id"],
            order_number=raw["order_number"],
            items=items,
            shipping_address=Address(**raw["shipping_address"]),
            billing_address=Address(**raw["billing_address"]),
            subtotal=money(raw["subtotal"]),
            shipping=money(raw["shipping"]),
            tax=money(raw["tax"]),
            total=money(raw["total"]),
            user_id=raw.get("user_id"),
            guest_email=raw.get("guest_email"),
            shipping_location=raw.get("shipping_location"),
            order_status=OrderStatus(raw["order_status"]),
            payment_status=PaymentStatus(raw["payment_status"]),
            payment_method=raw.get("payment_method", "monnify"),
            payment_reference=raw.get("payment_reference"),
            transaction_reference=raw.get("transaction_reference"),
            gateway_payment_reference=raw.get("gateway_payment_reference"),
            payment_url=raw.get("payment_url"),
            **{name: _parse(raw.get(name)) for name in _ORDER_TIMESTAMPS},
            cancellation_reason=raw.get("cancellation_reason"),
            inventory=InventoryLifecycle(
                **{name: _parse(lifecycle.get(name)) for name in _LIFECYCLE_TIMESTAMPS},
                deduction_error=lifecycle.get("deduction_error"),
            ),
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
        )

    # --- Document helpers -----------------------------------------------------

    def _find(self, key: str, value: str) -> Order | None:
        if not value:
            return None
        for raw in self._raw_orders():
            if raw.get(key) == value:
                return self._to_domain(raw)
        return None

    def _raw_orders(self) -> list[dict[str, Any]]:
        return self._document.setdefault("orders", [])


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
