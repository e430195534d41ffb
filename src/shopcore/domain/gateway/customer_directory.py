"""Abstract lookup of registered customers' addresses on file."""

from __future__ import annotations

from abc import ABC, abstractmethod

from shopcore.domain.model.value_objects import Address


class CustomerDirectory(ABC):

    @abstractmethod
    async def exists(self, user_id: str) -> bool:
        """True if the user is known."""

    @abstractmethod
    async def get_address(self, user_id: str) -> Address | None:
        """Return the user's address on file, or None if they have none."""
