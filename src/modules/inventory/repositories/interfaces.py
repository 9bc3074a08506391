"""Product variant repository interface.

Besides the generic CRUD contract, exposes the two counter primitives the
Stock Ledger is built on.  Both must be single conditional statements so
concurrent callers serialise on the variant row, not on a process lock.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.inventory.models import ProductVariant


class IVariantRepository(IRepository["ProductVariant"]):
    @abstractmethod
    def get_many(self, ids: Iterable[UUID]) -> Dict[UUID, ProductVariant]:
        """Fetch live variants (with their product) keyed by id."""

    @abstractmethod
    def get_stock(self, id: UUID) -> Optional[int]:
        """Current stock of a variant, ``None`` if it does not exist."""

    @abstractmethod
    def decrement_stock(self, id: UUID, quantity: int) -> bool:
        """Subtract *quantity* only if at least that much is on hand.

        Returns ``False`` (and changes nothing) otherwise.
        """

    @abstractmethod
    def increment_stock(self, id: UUID, quantity: int) -> bool:
        """Add *quantity* back.  Returns ``False`` if the row is missing."""
