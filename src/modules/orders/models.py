"""Order, OrderItem, OrderStatusHistory and ReversalFailure models.

Rules implemented here:
- ``total == subtotal - discount + shipping_fee`` and every amount is
  non-negative (CHECK constraints).
- ``order_number`` is ``<prefix><YYMMDD><6 random digits>``, generated on
  first save.
- Order items are frozen snapshots of the variant at purchase time.
- Status history is append-only: entries cannot be updated or deleted,
  through the model or through a queryset.
- ``stock_released`` / ``coupon_reverted`` guard the reversal so it
  happens at most once per order.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ReversalKind,
)
from modules.orders.exceptions import HistoryIsAppendOnly, OrderNumberUnavailable
from modules.orders.state_machine import can_transition, is_terminal
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY = {"max_digits": 12, "decimal_places": 2}


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``idempotency_key`` is nullable: only API requests carrying an
    ``Idempotency-Key`` header set it.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.COD,
    )

    # Shipping snapshot
    shipping_full_name = models.CharField(max_length=150)
    shipping_email = models.EmailField()
    shipping_phone = models.CharField(max_length=20)
    shipping_address = models.CharField(max_length=255)
    shipping_city = models.CharField(max_length=100)

    subtotal = models.DecimalField(**MONEY, default=Decimal("0"))
    discount = models.DecimalField(**MONEY, default=Decimal("0"))
    shipping_fee = models.DecimalField(**MONEY, default=Decimal("0"))
    total = models.DecimalField(**MONEY, default=Decimal("0"))

    coupon = models.ForeignKey(
        "coupons.Coupon",
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    coupon_code = models.CharField(max_length=50, blank=True, default="")
    coupon_reverted = models.BooleanField(default=False)
    stock_released = models.BooleanField(default=False)

    notes = models.TextField(blank=True, default="")
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["buyer", "-created_at"], name="orders_buyer_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(subtotal__gte=0)
                & Q(discount__gte=0)
                & Q(shipping_fee__gte=0)
                & Q(total__gte=0),
                name="orders_amounts_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(discount__lte=F("subtotal")),
                name="orders_discount_within_subtotal",
            ),
            models.CheckConstraint(
                condition=Q(
                    total=F("subtotal") - F("discount") + F("shipping_fee")
                ),
                name="orders_total_consistent",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def can_transition_to(self, new_status: str) -> bool:
        return can_transition(self.status, new_status)

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """``SP`` + local ``YYMMDD`` + six random digits."""
        prefix = getattr(settings, "ORDER_NUMBER_PREFIX", "SP")
        suffix = 100000 + secrets.randbelow(900000)
        return f"{prefix}{timezone.localdate():%y%m%d}{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise OrderNumberUnavailable(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Frozen snapshot of one purchased variant.

    ``product_name`` is ``"<product> - <size>, <color>"`` as it read at
    purchase time; ``unit_price`` is base price plus the variant's
    additional price at that instant.  ``subtotal`` is always
    ``quantity * unit_price``.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    variant = models.ForeignKey(
        "inventory.ProductVariant",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    product_name = models.CharField(max_length=255)
    sku = models.CharField(max_length=64)
    size = models.CharField(max_length=50)
    color = models.CharField(max_length=50)
    unit_price = models.DecimalField(**MONEY)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    subtotal = models.DecimalField(**MONEY, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.UniqueConstraint(
                fields=["order", "variant"],
                name="order_items_unique_variant",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValueError("Order items are immutable snapshots.")
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity}"


# ---------------------------------------------------------------------------
# Status history (append-only)
# ---------------------------------------------------------------------------


class AppendOnlyQuerySet(models.QuerySet):
    def update(self, **kwargs: Any) -> int:
        raise HistoryIsAppendOnly("Status history entries cannot be updated.")

    def delete(self) -> tuple[int, dict[str, int]]:
        raise HistoryIsAppendOnly("Status history entries cannot be deleted.")


class OrderStatusHistory(BaseModel):
    """One entry of an order's audit trail.

    Entries are written through ``StatusTimeline``; ``sequence`` is unique
    per order and ``timestamp`` never goes below the previous entry's.
    ``actor`` is ``None`` for changes made by the system.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="status_history",
    )
    sequence = models.PositiveIntegerField()
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    note = models.TextField(blank=True, default="")
    timestamp = models.DateTimeField()
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
    )

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        db_table = "order_status_history"
        ordering = ["order", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="osh_order_sequence_unique",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise HistoryIsAppendOnly("Status history entries cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise HistoryIsAppendOnly("Status history entries cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence}: {self.old_status} -> {self.status}"


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class ReversalFailure(BaseModel):
    """A stock release or coupon revert that failed during a reversal.

    Picked up by ``orders.retry_reversal_failures`` until it succeeds.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="reversal_failures",
    )
    kind = models.CharField(max_length=20, choices=ReversalKind.choices)
    variant_id = models.UUIDField(null=True, blank=True)
    coupon_code = models.CharField(max_length=50, blank=True, default="")
    quantity = models.PositiveIntegerField(default=0)
    error = models.TextField(blank=True, default="")
    attempts = models.PositiveIntegerField(default=1)
    resolved_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "order_reversal_failures"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["resolved_at"], name="orf_resolved_idx"),
        ]

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def __str__(self) -> str:
        return f"{self.order_id}: {self.kind} (attempts={self.attempts})"
