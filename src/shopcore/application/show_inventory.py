"""Application service: Show Inventory use case (query)."""

from __future__ import annotations

from shopcore.application.dto import InventoryLineDTO
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory


class ShowInventoryHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self) -> list[InventoryLineDTO]:
        async with self._uow_factory() as uow:
            products = await uow.products.list_all()
        return [
            InventoryLineDTO(
                product_id=product.id,
                product_name=product.name,
                variant_id=variant.id,
                color=variant.color,
                size=variant.size.value if variant.size else "?",
                quantity=variant.quantity or 0,
                reserved=variant.reserved_quantity,
                available=variant.available_quantity,
                in_stock=variant.in_stock,
            )
            for product in products
            for variant in product.variants
        ]
