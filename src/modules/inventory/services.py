"""Stock Ledger.

The single authority for "can this quantity be sold".  Every mutation of
``ProductVariant.stock`` goes through ``reserve`` or ``release``, which
delegate to one conditional ``UPDATE`` on the variant row, so concurrent
reservations serialise on that row and the stock counter never drops
below zero.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from modules.inventory.exceptions import InsufficientStock, VariantNotFound

if TYPE_CHECKING:
    from modules.inventory.repositories.interfaces import IVariantRepository

logger = structlog.get_logger(__name__)


class StockLedger:
    def __init__(self, repository: IVariantRepository) -> None:
        self._repo = repository

    def reserve(self, variant_id: UUID, quantity: int) -> None:
        """Take *quantity* units off the variant's stock.

        Raises:
            ValueError: quantity is lower than 1.
            VariantNotFound: the variant does not exist.
            InsufficientStock: fewer than *quantity* units are on hand;
                nothing was reserved.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        log = logger.bind(variant_id=str(variant_id), quantity=quantity)

        if self._repo.decrement_stock(variant_id, quantity):
            log.info("inventory.stock_reserved")
            return

        available = self._repo.get_stock(variant_id)
        if available is None:
            raise VariantNotFound(variant_id)
        log.warning("inventory.insufficient_stock", available=available)
        raise InsufficientStock(variant_id, available=available, requested=quantity)

    def release(self, variant_id: UUID, quantity: int) -> None:
        """Put *quantity* previously reserved units back.

        Raises:
            ValueError: quantity is lower than 1.
            VariantNotFound: the variant row is gone.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        if not self._repo.increment_stock(variant_id, quantity):
            raise VariantNotFound(variant_id)
        logger.info(
            "inventory.stock_released",
            variant_id=str(variant_id),
            quantity=quantity,
        )

    def available(self, variant_id: UUID) -> int:
        stock = self._repo.get_stock(variant_id)
        if stock is None:
            raise VariantNotFound(variant_id)
        return stock
