"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  The aggregate
(order, items, first history entry, outbox row) is created inside one
``transaction.atomic()`` block.

Status changes and reversal flags are written with conditional
``UPDATE ... WHERE`` statements; the service additionally holds the
order row lock (``select_for_update``) while it decides.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.events import OrderCreated
from modules.orders.history import StatusTimeline
from modules.orders.models import (
    Order,
    OrderItem,
    OrderStatusHistory,
    ReversalFailure,
)
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def _with_relations(self) -> "models.QuerySet[Order]":
        return Order.objects.select_related("buyer", "coupon").prefetch_related(
            "items", "status_history"
        )

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        fields = dict(data)
        items = fields.pop("items")
        history_note = fields.pop("history_note", "Order placed")

        order = Order(**fields)
        order.save()

        for item_data in items:
            OrderItem(order=order, **item_data).save()

        StatusTimeline(order).append(OrderStatus.PENDING, note=history_note)

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order.order_number,
                total=str(order.total),
            )
        )
        self.record_events(order)

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Order with eager-loaded relations; ``None`` for unknown or invalid IDs."""
        try:
            return self._with_relations().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return self._with_relations().filter(order_number=order_number).first()

    def get_for_update(self, id: str) -> Optional[Order]:
        """Lock the order row.  Must run inside a transaction."""
        try:
            return (
                Order.objects.select_for_update()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self._with_relations().filter(idempotency_key=key).first()

    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Order]":
        queryset = Order.objects.select_related("buyer")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        entity.save()
        self.record_events(entity)
        return entity

    def delete(self, id: str) -> bool:
        """Orders are kept for audit; deletion is refused."""
        logger.warning("order.delete_refused", order_id=str(id))
        return False

    # ------------------------------------------------------------------
    # Conditional writes
    # ------------------------------------------------------------------

    def compare_and_set_status(
        self, id: UUID, expected: str, new_status: str, payment_status: str
    ) -> bool:
        updated = Order.objects.filter(id=id, status=expected).update(
            status=new_status,
            payment_status=payment_status,
            updated_at=timezone.now(),
        )
        return bool(updated)

    def set_payment_status(self, id: UUID, payment_status: str) -> None:
        Order.objects.filter(id=id).update(
            payment_status=payment_status, updated_at=timezone.now()
        )

    def claim_stock_release(self, id: UUID) -> bool:
        updated = Order.objects.filter(id=id, stock_released=False).update(
            stock_released=True, updated_at=timezone.now()
        )
        return bool(updated)

    def claim_coupon_revert(self, id: UUID) -> bool:
        updated = Order.objects.filter(id=id, coupon_reverted=False).update(
            coupon_reverted=True, updated_at=timezone.now()
        )
        return bool(updated)

    def append_history(
        self,
        order: Order,
        status: str,
        note: str = "",
        old_status: Optional[str] = None,
        actor: Any = None,
    ) -> OrderStatusHistory:
        entry = StatusTimeline(order).append(
            status, note=note, old_status=old_status, actor=actor
        )
        logger.info(
            "order.history_added",
            order_id=str(order.id),
            sequence=entry.sequence,
            old_status=old_status,
            new_status=status,
        )
        return entry

    def record_events(self, order: Order) -> int:
        events = order.domain_events
        for event in events:
            OutboxEvent.from_event(event, topic=OUTBOX_TOPIC)
        order.clear_domain_events()
        return len(events)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def add_reversal_failures(
        self, order: Order, failures: Sequence[Dict[str, Any]]
    ) -> List[ReversalFailure]:
        return [
            ReversalFailure.objects.create(order=order, **failure)
            for failure in failures
        ]

    def pending_reversal_failures(self, limit: int) -> List[ReversalFailure]:
        return list(
            ReversalFailure.objects.select_for_update()
            .filter(resolved_at__isnull=True)
            .order_by("created_at")[:limit]
        )

    def resolve_reversal_failure(self, failure: ReversalFailure) -> None:
        failure.resolved_at = timezone.now()
        failure.save(update_fields=["resolved_at"])

    def bump_reversal_failure(self, failure: ReversalFailure, error: str) -> None:
        failure.attempts += 1
        failure.error = error
        failure.save(update_fields=["attempts", "error"])

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status_breakdown(self) -> Dict[str, Dict[str, Any]]:
        rows = (
            Order.objects.order_by()
            .values("status")
            .annotate(count=Count("id"), total=Sum("total"))
        )
        return {
            row["status"]: {
                "count": row["count"],
                "total": row["total"] or Decimal("0"),
            }
            for row in rows
        }

    def revenue(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        queryset = Order.objects.order_by()
        if since is not None:
            queryset = queryset.filter(created_at__gte=since)
        paid = queryset.filter(
            status=OrderStatus.DELIVERED, payment_status=PaymentStatus.PAID
        ).aggregate(total=Sum("total"))["total"]
        return {"orders": queryset.count(), "revenue": paid or Decimal("0")}
