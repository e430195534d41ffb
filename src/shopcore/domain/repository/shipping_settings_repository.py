"""Abstract repository for the shipping settings document."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shopcore.domain.model.shipping import ShippingSettings


class ShippingSettingsRepository(ABC):

    @abstractmethod
    async def get(self) -> ShippingSettings:
        """Return the current settings, or empty defaults when none are stored."""

    @abstractmethod
    async def save(self, settings: ShippingSettings) -> None:
        """Replace the stored settings."""
