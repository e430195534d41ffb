"""Abstract repository for Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from shopcore.domain.model.order import Order


class OrderRepository(ABC):

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    async def get_by_order_number(self, order_number: str) -> Order | None:
        """Return an order by its human-readable number."""

    @abstractmethod
    async def get_by_transaction_reference(self, reference: str) -> Order | None:
        """Return the order linked to a gateway transaction reference."""

    @abstractmethod
    async def get_by_payment_reference(self, reference: str) -> Order | None:
        """Return the order linked to the gateway's own payment reference."""

    @abstractmethod
    async def order_number_exists(self, order_number: str) -> bool:
        """True if any order already uses this number."""

    @abstractmethod
    async def list_expired_reservations(self, now: datetime, limit: int) -> list[Order]:
        """Return up to ``limit`` unpaid orders whose hold expired before ``now``.

        Only orders with a reservation that was neither released nor
        deducted qualify.
        """

    @abstractmethod
    async def save(self, order: Order) -> None:
        """Persist a new or updated order."""
