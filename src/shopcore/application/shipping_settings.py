"""Application services: Show / Update Shipping Settings use cases."""

from __future__ import annotations

import structlog

from shopcore.domain.model.shipping import ShippingSettings
from shopcore.domain.model.value_objects import Money
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class ShowShippingSettingsHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(self) -> ShippingSettings:
        async with self._uow_factory() as uow:
            return await uow.shipping.get()


class UpdateShippingSettingsHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(
        self, location_fees: dict[str, str], free_shipping_threshold: str
    ) -> ShippingSettings:
        """Replace the fee table and threshold wholesale."""
        settings = ShippingSettings.create(
            location_fees={location: Money.of(fee) for location, fee in location_fees.items()},
            free_shipping_threshold=Money.of(free_shipping_threshold),
        )
        async with self._uow_factory() as uow:
            await uow.shipping.save(settings)
            await uow.commit()

        logger.info(
            "Shipping settings updated",
            locations=sorted(settings.location_fees),
            free_shipping_threshold=str(settings.free_shipping_threshold),
        )
        return settings
