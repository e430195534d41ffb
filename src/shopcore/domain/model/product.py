"""Product aggregate and its embedded variants.

Products live independently of orders. Only the stock fields of a variant
(``quantity`` and ``reserved_quantity``) are mutated by this package, and
only through ``reserve``, ``release`` and ``deduct``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum

from shopcore.domain.exceptions import InsufficientStockError, ValidationError

MIN_MEASUREMENTS = 5


class Size(Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    XXXL = "XXXL"

    @staticmethod
    def parse(value: object) -> Size | None:
        if isinstance(value, Size):
            return value
        try:
            return Size(str(value).strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Measurements:
    """Garment measurements for a variant, in inches."""

    neck: float | None = None
    shoulder: float | None = None
    chest: float | None = None
    short_sleeve: float | None = None
    long_sleeve: float | None = None
    round_sleeve: float | None = None
    tummy: float | None = None
    top_length: float | None = None
    waist: float | None = None
    laps: float | None = None
    knee_length: float | None = None
    round_knee: float | None = None
    trouser_length: float | None = None
    quarter_length: float | None = None
    ankle: float | None = None

    def populated(self) -> dict[str, float]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @staticmethod
    def create(**values: object) -> Measurements:
        """Validate input measurements: known names, positive numbers, enough of them."""
        known = {f.name for f in fields(Measurements)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValidationError(f"Unknown measurement(s): {', '.join(unknown)}")

        parsed: dict[str, float] = {}
        for name, raw in values.items():
            if raw is None:
                continue
            if isinstance(raw, bool) or not isinstance(raw, (int, float, Decimal)):
                raise ValidationError(f"Measurement '{name}' must be a number")
            if raw <= 0:
                raise ValidationError(f"Measurement '{name}' must be positive")
            parsed[name] = float(raw)

        if len(parsed) < MIN_MEASUREMENTS:
            raise ValidationError(
                f"At least {MIN_MEASUREMENTS} measurements are required, got {len(parsed)}"
            )
        return Measurements(**parsed)


@dataclass
class Variant:
    """A sellable color/size/price combination of a product.

    Fields may hold malformed values loaded from storage (missing price,
    unknown size, no images). ``problems()`` reports them so the pricing
    engine can drop such variants instead of failing a whole cart.
    ``in_stock`` is always derived from the stock counters.
    """

    id: str
    image_urls: list[str]
    color: str
    size: Size | None
    price: Decimal | None
    discount_price: Decimal | None
    quantity: int | None
    reserved_quantity: int = 0
    measurements: Measurements | None = None

    # --- Derived state --------------------------------------------------------

    @property
    def available_quantity(self) -> int:
        return max(0, (self.quantity or 0) - self.reserved_quantity)

    @property
    def in_stock(self) -> bool:
        return (self.quantity or 0) - self.reserved_quantity > 0

    @property
    def effective_price(self) -> Decimal:
        """Discount price when ``0 < discount_price < price``, else price."""
        price = self.price if self.price is not None else Decimal("0")
        discount = self.discount_price
        if discount is not None and 0 < discount < price:
            return discount
        return price

    def problems(self) -> list[str]:
        found: list[str] = []
        if not self.id:
            found.append("missing id")
        if not any(str(url).strip() for url in self.image_urls):
            found.append("no image")
        if not str(self.color or "").strip():
            found.append("no color")
        if self.size is None:
            found.append("no size")
        for name in ("price", "discount_price"):
            value = getattr(self, name)
            if value is None or not value.is_finite() or value < 0:
                found.append(f"invalid {name}")
        if self.quantity is None or self.quantity < 0:
            found.append("invalid quantity")
        if self.reserved_quantity < 0:
            found.append("invalid reserved quantity")
        return found

    # --- Stock mutations ------------------------------------------------------

    def reserve(self, quantity: int, product_name: str = "") -> None:
        """Hold ``quantity`` units for an unpaid order.

        Raises InsufficientStockError if fewer units are available.
        """
        if quantity <= 0:
            raise ValidationError("Reservation quantity must be positive")
        if quantity > self.available_quantity:
            name = product_name or self.id
            raise InsufficientStockError(
                name,
                [
                    f"Insufficient available stock for {name} "
                    f"(need {quantity}, have {self.available_quantity} available)"
                ],
            )
        self.reserved_quantity += quantity

    def release(self, quantity: int) -> int:
        """Give held units back. Never drops below zero; returns units released."""
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive")
        released = min(quantity, self.reserved_quantity)
        self.reserved_quantity -= released
        return released

    def deduct(self, quantity: int, consume_reservation: bool) -> None:
        """Permanently remove sold units from on-hand stock.

        With ``consume_reservation`` the units come out of this order's
        hold, so ``reserved_quantity`` drops by the same amount.
        """
        if quantity <= 0:
            raise ValidationError("Deduction quantity must be positive")
        if consume_reservation:
            self.reserved_quantity = max(0, self.reserved_quantity - quantity)
        self.quantity = max(0, (self.quantity or 0) - quantity)


@dataclass
class Product:
    """A product in the catalog.

    This is an aggregate root: variants are only reachable through it and
    a product is always saved as a whole document.
    """

    id: str
    name: str
    slug: str
    description: str | None
    category: str
    material: str = ""
    owner: str = "self"
    is_featured: bool = False
    variants: list[Variant] = field(default_factory=list)

    def find_variant(self, variant_id: str) -> Variant | None:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def problems(self) -> list[str]:
        found: list[str] = []
        if not self.id:
            found.append("missing id")
        if not str(self.name or "").strip():
            found.append("missing name")
        if not str(self.slug or "").strip():
            found.append("missing slug")
        if self.description is None:
            found.append("missing description")
        if not str(self.category or "").strip():
            found.append("missing category")
        return found
