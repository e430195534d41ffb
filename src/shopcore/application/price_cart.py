"""Application service: Price Cart use case (query)."""

from __future__ import annotations

import structlog

from shopcore.domain.model.cart import CartLine, LegacyCartLine, PricedCart
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory
from shopcore.domain.service.cart_pricing import CartPricingEngine
from shopcore.domain.service.id_resolution_cache import IdResolutionCache

logger = structlog.get_logger(__name__)


class PriceCartHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory, id_cache: IdResolutionCache) -> None:
        self._uow_factory = uow_factory
        self._id_cache = id_cache

    async def handle(
        self, lines: list[CartLine], shipping_location: str | None = None
    ) -> PricedCart | None:
        """Price a cart with the current shipping settings.

        Returns None when pricing failed, as opposed to an empty cart.
        """
        async with self._uow_factory() as uow:
            settings = await uow.shipping.get()
            engine = CartPricingEngine(uow.products)
            return await engine.price(
                lines,
                shipping_location=shipping_location,
                free_shipping_threshold=settings.free_shipping_threshold,
                location_fees=settings.location_fees,
            )

    async def handle_legacy(
        self, lines: list[LegacyCartLine], shipping_location: str | None = None
    ) -> PricedCart | None:
        """Price a cart sent by an older client that uses id fingerprints."""
        resolved: list[CartLine] = []
        for line in lines:
            ids = await self._id_cache.resolve(line.product_fingerprint, line.variant_fingerprint)
            if ids is None:
                logger.warning(
                    "Could not resolve cart item fingerprints",
                    product_fingerprint=line.product_fingerprint,
                    variant_fingerprint=line.variant_fingerprint,
                )
                continue
            resolved.append(
                CartLine(product_id=ids.product_id, variant_id=ids.variant_id, quantity=line.quantity)
            )
        return await self.handle(resolved, shipping_location)
