"""Abstract sender of transactional messages to shoppers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shopcore.domain.model.order import Order


class Notifier(ABC):

    @abstractmethod
    async def payment_confirmed(self, order: Order) -> None:
        """Tell the shopper their payment for ``order`` went through."""
