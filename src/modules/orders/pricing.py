"""Order money arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Tuple

from django.conf import settings

ZERO = Decimal("0")


def flat_shipping_fee() -> Decimal:
    return Decimal(str(getattr(settings, "ORDER_SHIPPING_FEE", "0")))


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return unit_price * quantity


@dataclass(frozen=True)
class OrderTotals:
    """``total = subtotal - discount + shipping_fee``, never negative.

    The discount is clamped to ``[0, subtotal]``.
    """

    subtotal: Decimal
    discount: Decimal
    shipping_fee: Decimal
    total: Decimal

    @classmethod
    def compute(
        cls,
        lines: Iterable[Tuple[Decimal, int]],
        discount: Decimal = ZERO,
        shipping_fee: Decimal = ZERO,
    ) -> OrderTotals:
        subtotal = sum((line_total(price, qty) for price, qty in lines), ZERO)
        discount = min(max(discount, ZERO), subtotal)
        if shipping_fee < 0:
            raise ValueError("shipping fee cannot be negative")
        return cls(
            subtotal=subtotal,
            discount=discount,
            shipping_fee=shipping_fee,
            total=subtotal - discount + shipping_fee,
        )

    def with_discount(self, discount: Decimal) -> OrderTotals:
        discount = min(max(discount, ZERO), self.subtotal)
        return OrderTotals(
            subtotal=self.subtotal,
            discount=discount,
            shipping_fee=self.shipping_fee,
            total=self.subtotal - discount + self.shipping_fee,
        )
