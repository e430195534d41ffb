"""Unit of work over the JSON document store."""

from __future__ import annotations

from shopcore.domain.repository.unit_of_work import UnitOfWork
from shopcore.infrastructure.persistence.json_document_store import (
    JsonDocumentStore,
    StoreSession,
)
from shopcore.infrastructure.persistence.json_order_repository import (
    JsonOrderRepository,
)
from shopcore.infrastructure.persistence.json_product_repository import (
    JsonProductRepository,
)
from shopcore.infrastructure.persistence.json_shipping_settings_repository import (
    JsonShippingSettingsRepository,
)


class JsonUnitOfWork(UnitOfWork):
    """Repositories read and write the session's working copy; ``commit``
    replaces the stored document with it."""

    def __init__(self, store: JsonDocumentStore) -> None:
        self._store = store
        self._session: StoreSession | None = None

    async def begin(self) -> None:
        self._session = await self._store.open_session()
        document = self._session.document
        self.products = JsonProductRepository(document)
        self.orders = JsonOrderRepository(document)
        self.shipping = JsonShippingSettingsRepository(document)

    async def commit(self) -> None:
        if self._session is None:
            raise RuntimeError("Unit of work is not active")
        self._session.write()

    async def rollback(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
