"""Order repository interface.

Extends ``IRepository[Order]`` with what the Order Builder, the state
machine and the reversal handler need: atomic creation of the whole
aggregate, row locking, compare-and-set on ``status``, one-shot claims
of the reversal flags, the status timeline and reconciliation records.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db import models

    from modules.orders.models import Order, OrderStatusHistory, ReversalFailure


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Persist an order, its items and its first history entry atomically.

        ``data`` carries the order fields plus ``items`` (list of dicts with
        the item snapshot fields).  An ``OrderCreated`` event is written to
        the outbox in the same transaction.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Order with items and history prefetched, ``None`` if missing."""

    @abstractmethod
    def get_by_number(self, order_number: str) -> Optional[Order]:
        """Order by its human-readable number."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Order with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Order created with this idempotency key."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Order]":
        """Orders with optional ORM look-ups."""

    @abstractmethod
    def compare_and_set_status(
        self, id: UUID, expected: str, new_status: str, payment_status: str
    ) -> bool:
        """Set ``status`` only if it still equals *expected*."""

    @abstractmethod
    def set_payment_status(self, id: UUID, payment_status: str) -> None:
        """Overwrite the payment status of an order."""

    @abstractmethod
    def claim_stock_release(self, id: UUID) -> bool:
        """Flip ``stock_released`` to true; ``False`` if it already was."""

    @abstractmethod
    def claim_coupon_revert(self, id: UUID) -> bool:
        """Flip ``coupon_reverted`` to true; ``False`` if it already was."""

    @abstractmethod
    def append_history(
        self,
        order: Order,
        status: str,
        note: str = "",
        old_status: Optional[str] = None,
        actor: Any = None,
    ) -> OrderStatusHistory:
        """Append one entry to the order's status timeline."""

    @abstractmethod
    def record_events(self, order: Order) -> int:
        """Write the order's pending domain events to the outbox."""

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @abstractmethod
    def add_reversal_failures(
        self, order: Order, failures: Sequence[Dict[str, Any]]
    ) -> List[ReversalFailure]:
        """Store failed reversal steps for later retry."""

    @abstractmethod
    def pending_reversal_failures(self, limit: int) -> List[ReversalFailure]:
        """Unresolved failures, oldest first, locked for the caller."""

    @abstractmethod
    def resolve_reversal_failure(self, failure: ReversalFailure) -> None:
        """Mark a failure as resolved."""

    @abstractmethod
    def bump_reversal_failure(self, failure: ReversalFailure, error: str) -> None:
        """Record one more failed attempt."""

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @abstractmethod
    def status_breakdown(self) -> Dict[str, Dict[str, Any]]:
        """``{status: {"count": n, "total": amount}}`` over all orders."""

    @abstractmethod
    def revenue(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """``{"orders": n, "revenue": amount}``.

        ``orders`` counts every order created since *since* (all orders when
        ``None``); ``revenue`` sums delivered, paid orders in that window.
        """
