"""Domain service: Inventory Reservation.

This service coordinates the cross-aggregate operation of holding,
releasing and permanently deducting variant stock for an order.  It
lives in the domain layer because the logic is a core business rule,
not just orchestration.

Every path uses a two-phase approach (validate-then-mutate) so stock is
never left partially changed when one line fails validation.  All of
them must run inside a unit of work; nothing here commits.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from shopcore.domain.exceptions import (
    DeductionIntegrityError,
    EntityNotFoundError,
    InsufficientStockError,
)
from shopcore.domain.model.order import Order
from shopcore.domain.model.product import Product, Variant
from shopcore.domain.repository.product_repository import ProductRepository

logger = structlog.get_logger(__name__)

MAX_REPORTED_PROBLEMS = 5

# (product, variant, units) for one line of the mutation phase
_Plan = list[tuple[Product, Variant, int]]


class InventoryReservationService:

    def __init__(self, product_repo: ProductRepository) -> None:
        self._product_repo = product_repo

    async def reserve_for_order(self, order: Order, now: datetime, ttl: timedelta) -> None:
        """Hold stock for every line item in the order.

        Uses a two-phase approach:
          Phase 1, load and validate.  Every variant must exist and have
                   enough available (unreserved) stock.  Fails fast
                   before any mutation.
          Phase 2, mutate and persist.  ``reserve()`` on each variant,
                   each touched product saved once.
        """
        products = await self._load(order)

        # Phase 1: validate
        missing: list[str] = []
        shortfalls: list[str] = []
        first_short: str | None = None
        plan: _Plan = []
        for product_id, per_variant in order.required_quantities().items():
            product = products.get(product_id)
            for variant_id, qty in per_variant.items():
                name = _line_name(order, product_id, variant_id)
                variant = product.find_variant(variant_id) if product else None
                if product is None:
                    missing.append(f"Product {name} not found")
                    continue
                if variant is None:
                    missing.append(f"Variant of {name} not found")
                    continue
                if qty > variant.available_quantity:
                    first_short = first_short or product.name
                    shortfalls.append(
                        f"Insufficient available stock for {product.name} "
                        f"(need {qty}, have {variant.available_quantity} available)"
                    )
                    continue
                plan.append((product, variant, qty))

        if missing:
            raise EntityNotFoundError(
                "; ".join((missing + shortfalls)[:MAX_REPORTED_PROBLEMS])
            )
        if shortfalls:
            raise InsufficientStockError(
                first_short or "", shortfalls[:MAX_REPORTED_PROBLEMS]
            )

        # Phase 2: mutate and persist
        for product, variant, qty in plan:
            variant.reserve(qty, product.name)
        await self._save_touched(plan)
        order.mark_reserved(now, ttl)

        logger.info(
            "Inventory reserved",
            order_number=order.order_number,
            variant_count=len(plan),
            expires_at=order.inventory.reservation_expires_at.isoformat()
            if order.inventory.reservation_expires_at
            else None,
        )

    async def release_for_order(self, order: Order, now: datetime) -> int:
        """Give an order's active hold back to the catalog.

        No-op (returns 0) when the hold was already released or consumed.
        Missing products or variants are logged and skipped.  Returns the
        number of units released.
        """
        if not order.inventory.has_active_reservation or order.inventory.deducted_at:
            return 0

        products = await self._load(order)
        plan: _Plan = []
        for product_id, per_variant in order.required_quantities().items():
            product = products.get(product_id)
            for variant_id, qty in per_variant.items():
                variant = product.find_variant(variant_id) if product else None
                if product is None or variant is None:
                    logger.warning(
                        "Cannot release stock for missing product variant",
                        order_number=order.order_number,
                        product_id=product_id,
                        variant_id=variant_id,
                    )
                    continue
                plan.append((product, variant, qty))

        released = sum(variant.release(qty) for _, variant, qty in plan)
        await self._save_touched(plan)
        order.mark_reservation_released(now)

        logger.info(
            "Reservation released",
            order_number=order.order_number,
            units=released,
        )
        return released

    async def deduct_for_order(self, order: Order, now: datetime) -> None:
        """Permanently remove the order's units from on-hand stock.

        With an active hold the units come out of it, otherwise they must
        still be free for sale.  Raises DeductionIntegrityError (with no
        stock changed) when any line cannot be covered.
        """
        if order.inventory.deducted_at is not None:
            return

        holding = order.inventory.has_active_reservation
        products = await self._load(order)

        # Phase 1: validate
        problems: list[str] = []
        plan: _Plan = []
        for product_id, per_variant in order.required_quantities().items():
            product = products.get(product_id)
            for variant_id, qty in per_variant.items():
                name = _line_name(order, product_id, variant_id)
                if product is None:
                    problems.append(f"Product {name} not found")
                    continue
                variant = product.find_variant(variant_id)
                if variant is None:
                    problems.append(f"Variant of {name} not found")
                    continue
                on_hand = variant.quantity or 0
                if on_hand < qty:
                    problems.append(
                        f"Insufficient stock for {name} (need {qty}, have {on_hand})"
                    )
                    continue
                if holding and variant.reserved_quantity < qty:
                    problems.append(
                        f"Reservation for {name} is short "
                        f"(need {qty}, have {variant.reserved_quantity} reserved)"
                    )
                    continue
                if not holding and variant.available_quantity < qty:
                    problems.append(
                        f"Insufficient available stock for {name} "
                        f"(need {qty}, have {variant.available_quantity} available)"
                    )
                    continue
                plan.append((product, variant, qty))

        if problems:
            raise DeductionIntegrityError(problems)

        # Phase 2: mutate and persist
        for _, variant, qty in plan:
            variant.deduct(qty, consume_reservation=holding)
        await self._save_touched(plan)
        order.mark_deducted(now)

        logger.info(
            "Inventory deducted",
            order_number=order.order_number,
            consumed_reservation=holding,
            variant_count=len(plan),
        )

    # --- Internal helpers -----------------------------------------------------

    async def _load(self, order: Order) -> dict[str, Product]:
        product_ids = list(order.required_quantities())
        found = await self._product_repo.find_by_ids(product_ids)
        return {product.id: product for product in found}

    async def _save_touched(self, plan: _Plan) -> None:
        touched: dict[str, Product] = {}
        for product, _, _ in plan:
            touched.setdefault(product.id, product)
        for product in touched.values():
            await self._product_repo.save(product)


def _line_name(order: Order, product_id: str, variant_id: str) -> str:
    for item in order.items:
        if item.product_id == product_id and item.variant_id == variant_id:
            return f"{item.product_name} ({item.variant_color}, {item.variant_size})"
    return product_id
