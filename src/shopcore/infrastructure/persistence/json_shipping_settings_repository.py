"""JSON-document-backed implementation of ShippingSettingsRepository."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from shopcore.domain.model.shipping import ShippingSettings
from shopcore.domain.model.value_objects import DEFAULT_CURRENCY, Money
from shopcore.domain.repository.shipping_settings_repository import (
    ShippingSettingsRepository,
)


class JsonShippingSettingsRepository(ShippingSettingsRepository):

    def __init__(self, document: dict[str, Any]) -> None:
        self._document = document

    async def get(self) -> ShippingSettings:
        raw = self._document.get("shipping_settings")
        if not raw:
            return ShippingSettings()
        currency = raw.get("currency", DEFAULT_CURRENCY)
        return ShippingSettings(
            location_fees={
                entry["location"]: Money(Decimal(entry["fee"]), currency)
                for entry in raw.get("location_fees", [])
            },
            free_shipping_threshold=Money(
                Decimal(raw.get("free_shipping_threshold", "0")), currency
            ),
        )

    async def save(self, settings: ShippingSettings) -> None:
        self._document["shipping_settings"] = {
            "currency": settings.free_shipping_threshold.currency,
            "location_fees": [
                {"location": location, "fee": str(fee.amount)}
                for location, fee in settings.location_fees.items()
            ],
            "free_shipping_threshold": str(settings.free_shipping_threshold.amount),
        }
