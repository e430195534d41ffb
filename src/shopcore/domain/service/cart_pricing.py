"""Domain service: price a cart against the live catalog.

A line that cannot be priced (bad ids, missing product, malformed
variant) is dropped and logged; the rest of the cart is still priced.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import structlog

from shopcore.domain.model.cart import CartLine, PricedCart, PricedCartItem
from shopcore.domain.model.product import Product, Variant
from shopcore.domain.model.value_objects import Money, is_canonical_id
from shopcore.domain.repository.product_repository import ProductRepository

logger = structlog.get_logger(__name__)

TAX_RATE = Decimal("0.075")


class CartPricingEngine:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    async def price(
        self,
        lines: list[CartLine],
        shipping_location: str | None = None,
        free_shipping_threshold: Money | None = None,
        location_fees: dict[str, Money] | None = None,
    ) -> PricedCart | None:
        """Price ``lines`` in input order.

        Returns None when pricing fails unexpectedly, which callers must
        tell apart from an empty cart.
        """
        try:
            return await self._price(
                lines, shipping_location, free_shipping_threshold, location_fees
            )
        except Exception:
            logger.exception("Error calculating cart", line_count=len(lines))
            return None

    async def _price(
        self,
        lines: list[CartLine],
        shipping_location: str | None,
        free_shipping_threshold: Money | None,
        location_fees: dict[str, Money] | None,
    ) -> PricedCart:
        valid_lines: list[CartLine] = []
        for line in lines:
            if not (is_canonical_id(line.product_id) and is_canonical_id(line.variant_id)):
                logger.warning(
                    "Invalid id format in cart item",
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                )
                continue
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                logger.warning(
                    "Invalid quantity in cart item",
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                )
                continue
            # stored ids are lowercase hex
            valid_lines.append(
                replace(
                    line,
                    product_id=line.product_id.lower(),
                    variant_id=line.variant_id.lower(),
                )
            )

        if not valid_lines:
            return PricedCart.empty(free_shipping_threshold)

        product_ids = list(dict.fromkeys(line.product_id for line in valid_lines))
        products = {p.id: p for p in await self._product_repo.find_by_ids(product_ids)}

        items: list[PricedCartItem] = []
        subtotal = Decimal("0")
        for line in valid_lines:
            product = products.get(line.product_id)
            variant = product.find_variant(line.variant_id) if product else None
            if product is None or variant is None:
                logger.warning(
                    "Product variant not found",
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    has_product=product is not None,
                )
                continue

            product_problems = product.problems()
            if product_problems:
                logger.warning(
                    "Missing required product fields",
                    product_id=product.id,
                    problems=product_problems,
                )
                continue
            variant_problems = variant.problems()
            if variant_problems:
                logger.warning(
                    "Missing or invalid variant fields",
                    product_id=product.id,
                    variant_id=variant.id,
                    problems=variant_problems,
                )
                continue

            item = _priced_item(product, variant, line.quantity)
            subtotal += item.item_total.amount
            items.append(item)

        shipping = self._shipping_fee(
            subtotal, shipping_location, free_shipping_threshold, location_fees
        )
        tax = subtotal * TAX_RATE
        total = subtotal + shipping + tax

        return PricedCart(
            items=items,
            subtotal=Money(subtotal).rounded(),
            shipping=Money(shipping).rounded(),
            tax=Money(tax).rounded(),
            total=Money(total).rounded(),
            free_shipping_threshold=free_shipping_threshold,
        )

    @staticmethod
    def _shipping_fee(
        subtotal: Decimal,
        shipping_location: str | None,
        free_shipping_threshold: Money | None,
        location_fees: dict[str, Money] | None,
    ) -> Decimal:
        if free_shipping_threshold is not None and subtotal >= free_shipping_threshold.amount:
            return Decimal("0")
        if shipping_location and location_fees:
            fee = location_fees.get(shipping_location)
            if fee is not None:
                return fee.amount
            logger.warning(
                "No shipping fee configured for location",
                shipping_location=shipping_location,
            )
        return Decimal("0")


def _priced_item(product: Product, variant: Variant, quantity: int) -> PricedCartItem:
    # problems() was empty, so price/discount/size are present
    assert variant.price is not None and variant.discount_price is not None
    assert variant.size is not None
    price = Money(variant.price)
    effective = Money(variant.effective_price)
    return PricedCartItem(
        product_id=product.id,
        variant_id=variant.id,
        product_name=product.name,
        product_slug=product.slug,
        product_description=product.description or "",
        product_category=product.category,
        variant_image_urls=tuple(str(url) for url in variant.image_urls),
        variant_color=variant.color,
        variant_size=variant.size.value,
        variant_price=price,
        variant_discount_price=Money(variant.discount_price),
        quantity=quantity,
        item_subtotal=price * quantity,
        item_total=effective * quantity,
        in_stock=variant.in_stock,
        available_quantity=variant.available_quantity,
        measurements=variant.measurements,
    )
