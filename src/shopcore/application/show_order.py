"""Application service: Show Order use case (query)."""

from __future__ import annotations

from shopcore.application.dto import OrderDTO, order_to_dto
from shopcore.domain.exceptions import EntityNotFoundError, ValidationError
from shopcore.domain.repository.unit_of_work import UnitOfWorkFactory


class ShowOrderHandler:

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def handle(
        self, order_id: str | None = None, order_number: str | None = None
    ) -> OrderDTO:
        if not order_id and not order_number:
            raise ValidationError("An order id or order number is required")
        async with self._uow_factory() as uow:
            if order_id:
                order = await uow.orders.get_by_id(order_id)
            else:
                order = await uow.orders.get_by_order_number(order_number or "")
        if order is None:
            raise EntityNotFoundError(f"Order {order_id or order_number} not found")
        return order_to_dto(order)
