"""Unit of Work: one store transaction spanning several repositories.

Usage::

    async with uow_factory() as uow:
        order = await uow.orders.get_by_id(order_id)
        ...
        await uow.commit()

Leaving the block without ``commit()`` discards every change made
through the repositories.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from types import TracebackType

from shopcore.domain.repository.order_repository import OrderRepository
from shopcore.domain.repository.product_repository import ProductRepository
from shopcore.domain.repository.shipping_settings_repository import (
    ShippingSettingsRepository,
)


class UnitOfWork(ABC):

    products: ProductRepository
    orders: OrderRepository
    shipping: ShippingSettingsRepository

    async def __aenter__(self) -> UnitOfWork:
        await self.begin()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.rollback()

    @abstractmethod
    async def begin(self) -> None:
        """Acquire the store and take a working snapshot."""

    @abstractmethod
    async def commit(self) -> None:
        """Atomically persist every change made in this unit of work."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard uncommitted changes and release the store.

        Safe to call after ``commit()``.
        """


UnitOfWorkFactory = Callable[[], UnitOfWork]
