"""Abstract repository for Product aggregate.

Defined in the domain layer so the domain never depends on
infrastructure. Concrete implementations (JSON document store,
in-memory) live in the infrastructure layer and in the tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from shopcore.domain.model.product import Product


class ProductRepository(ABC):

    @abstractmethod
    async def get_by_id(self, product_id: str) -> Product | None:
        """Return a product by its ID, or None if not found."""

    @abstractmethod
    async def find_by_ids(self, product_ids: list[str]) -> list[Product]:
        """Return every product whose ID is listed, in one fetch.

        Unknown IDs are silently absent from the result.
        """

    @abstractmethod
    async def list_all(self) -> list[Product]:
        """Return every product in the catalog."""

    @abstractmethod
    async def save(self, product: Product) -> None:
        """Persist a new or updated product (whole document)."""
