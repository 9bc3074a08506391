"""Append-only status timeline of an order.

``StatusTimeline`` is the only writer of ``OrderStatusHistory``.  It
exposes ``append``, iteration, ``len`` and ``latest``; there is no way to
edit or remove an entry through it, and the model refuses both anyway.

Appends after creation happen while the order row is locked, so the
next ``sequence`` is computed without racing another writer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Optional

from django.utils import timezone

from modules.orders.models import OrderStatusHistory

if TYPE_CHECKING:
    from modules.orders.models import Order


class StatusTimeline:
    def __init__(self, order: Order) -> None:
        self._order = order

    def _entries(self):
        return OrderStatusHistory.objects.filter(order_id=self._order.pk).order_by(
            "sequence"
        )

    def latest(self) -> Optional[OrderStatusHistory]:
        return self._entries().last()

    def append(
        self,
        status: str,
        note: str = "",
        old_status: Optional[str] = None,
        actor: Any = None,
    ) -> OrderStatusHistory:
        previous = self.latest()
        now = timezone.now()
        if previous is None:
            sequence, timestamp = 1, now
        else:
            sequence = previous.sequence + 1
            timestamp = max(now, previous.timestamp)
        return OrderStatusHistory.objects.create(
            order_id=self._order.pk,
            sequence=sequence,
            old_status=old_status,
            status=status,
            note=note,
            timestamp=timestamp,
            actor_id=getattr(actor, "pk", None),
        )

    def __iter__(self) -> Iterator[OrderStatusHistory]:
        return iter(self._entries())

    def __len__(self) -> int:
        return self._entries().count()
