"""Shipping settings: per-location fees and the free-shipping threshold."""

from __future__ import annotations

from dataclasses import dataclass, field

from shopcore.domain.exceptions import ValidationError
from shopcore.domain.model.value_objects import Money


@dataclass(frozen=True)
class ShippingSettings:

    location_fees: dict[str, Money] = field(default_factory=dict)
    free_shipping_threshold: Money = field(default_factory=Money.zero)

    @staticmethod
    def create(
        location_fees: dict[str, Money], free_shipping_threshold: Money
    ) -> ShippingSettings:
        cleaned: dict[str, Money] = {}
        for location, fee in location_fees.items():
            name = location.strip()
            if not name:
                raise ValidationError("Shipping location name is required")
            if name in cleaned:
                raise ValidationError(f"Duplicate shipping location '{name}'")
            cleaned[name] = fee
        return ShippingSettings(
            location_fees=cleaned, free_shipping_threshold=free_shipping_threshold
        )
