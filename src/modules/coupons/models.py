"""Coupon model.

Rules implemented here:
- ``code`` is stored uppercase, so look-ups are case-insensitive.
- ``max_usage == 0`` means unlimited; otherwise ``usage_count`` never
  exceeds ``max_usage`` (enforced by the conditional increment in the
  repository and a CHECK constraint).
- A coupon is valid while active, inside ``[start_date, end_date]`` and
  below its usage cap.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import structlog
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)

WHOLE_UNIT = Decimal("1")


class CouponType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed amount"


def compute_discount(
    coupon_type: str,
    value: Decimal,
    order_amount: Decimal,
    max_discount: Decimal = Decimal("0"),
) -> Decimal:
    """Discount a coupon grants on *order_amount*.

    Percentage discounts are rounded half-up to whole currency units and
    capped by ``max_discount`` when it is positive.  The result never
    exceeds the order amount.
    """
    if order_amount <= 0:
        return Decimal("0")
    if coupon_type == CouponType.PERCENTAGE:
        discount = (order_amount * value / Decimal("100")).quantize(
            WHOLE_UNIT, rounding=ROUND_HALF_UP
        )
        if max_discount > 0:
            discount = min(discount, max_discount)
    else:
        discount = value
    return max(Decimal("0"), min(discount, order_amount))


class Coupon(SoftDeleteModel):
    code = models.CharField(max_length=50, unique=True)
    type = models.CharField(max_length=20, choices=CouponType.choices)
    value = models.DecimalField(max_digits=12, decimal_places=2)
    max_discount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0")
    )
    min_order_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0")
    )
    max_usage = models.PositiveIntegerField(default=0)
    usage_count = models.PositiveIntegerField(default=0)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "coupons"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active", "end_date"], name="coupons_active_end_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(value__gte=0),
                name="coupons_value_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(max_usage=0) | Q(usage_count__lte=F("max_usage")),
                name="coupons_usage_within_cap",
            ),
            models.CheckConstraint(
                condition=Q(end_date__gt=F("start_date")),
                name="coupons_window_ordered",
            ),
        ]

    # ------------------------------------------------------------------
    # Validity
    # ------------------------------------------------------------------

    def is_in_window(self, now: datetime | None = None) -> bool:
        now = now or timezone.now()
        return self.is_active and self.start_date <= now <= self.end_date

    @property
    def is_exhausted(self) -> bool:
        return self.max_usage > 0 and self.usage_count >= self.max_usage

    @property
    def is_valid(self) -> bool:
        return self.is_in_window() and not self.is_exhausted

    def discount_for(self, order_amount: Decimal) -> Decimal:
        return compute_discount(
            self.type, self.value, order_amount, self.max_discount
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)
        if is_new:
            logger.info("coupon_created", coupon_id=str(self.id), code=self.code)

    def __str__(self) -> str:
        return self.code
