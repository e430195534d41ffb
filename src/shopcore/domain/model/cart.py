"""Cart input lines and their priced snapshots."""

from __future__ import annotations

from dataclasses import dataclass

from shopcore.domain.model.product import Measurements
from shopcore.domain.model.value_objects import Money


@dataclass(frozen=True)
class CartLine:
    """What the shopper asked for: canonical ids plus a quantity."""

    product_id: str
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class LegacyCartLine:
    """Cart line from older clients that send id fingerprints."""

    product_fingerprint: int
    variant_fingerprint: int
    quantity: int


@dataclass(frozen=True)
class PricedCartItem:
    """A cart line resolved against the catalog at pricing time."""

    product_id: str
    variant_id: str
    product_name: str
    product_slug: str
    product_description: str
    product_category: str
    variant_image_urls: tuple[str, ...]
    variant_color: str
    variant_size: str
    variant_price: Money
    variant_discount_price: Money
    quantity: int
    item_subtotal: Money  # quantity x regular price
    item_total: Money  # quantity x effective price
    in_stock: bool
    available_quantity: int
    measurements: Measurements | None = None


@dataclass(frozen=True)
class PricedCart:
    items: list[PricedCartItem]
    subtotal: Money
    shipping: Money
    tax: Money
    total: Money
    free_shipping_threshold: Money | None = None

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @staticmethod
    def empty(free_shipping_threshold: Money | None = None) -> PricedCart:
        zero = Money.zero()
        return PricedCart(
            items=[],
            subtotal=zero,
            shipping=zero,
            tax=zero,
            total=zero,
            free_shipping_threshold=free_shipping_threshold,
        )
