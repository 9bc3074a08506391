"""Inventory domain exceptions.

Raised by the Stock Ledger; the order service lets them propagate to the
API layer, which maps them to HTTP responses.
"""

from __future__ import annotations

from typing import Any


class VariantNotFound(Exception):
    """The requested product variant does not exist or has been removed."""

    def __init__(self, variant_id: Any) -> None:
        self.variant_id = variant_id
        super().__init__(f"Product variant {variant_id} not found.")


class InsufficientStock(Exception):
    """Requested quantity exceeds what the variant has on hand.

    Nothing was reserved by the failing call.
    """

    def __init__(self, variant_id: Any, available: int, requested: int) -> None:
        self.variant_id = variant_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Variant {variant_id}: requested {requested}, available {available}."
        )
