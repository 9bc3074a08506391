"""Unit tests for the coupon discount arithmetic."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.coupons.models import CouponType, compute_discount

pytestmark = pytest.mark.unit

D = Decimal


@pytest.mark.parametrize(
    "coupon_type, value, amount, max_discount, expected",
    [
        (CouponType.PERCENTAGE, D("10"), D("200000"), D("0"), D("20000")),
        (CouponType.PERCENTAGE, D("15"), D("99999"), D("0"), D("15000")),
        (CouponType.PERCENTAGE, D("50"), D("400000"), D("100000"), D("100000")),
        (CouponType.PERCENTAGE, D("150"), D("100000"), D("0"), D("100000")),
        (CouponType.FIXED, D("50000"), D("300000"), D("0"), D("50000")),
        (CouponType.FIXED, D("50000"), D("30000"), D("0"), D("30000")),
        (CouponType.FIXED, D("50000"), D("0"), D("0"), D("0")),
    ],
    ids=[
        "percentage",
        "percentage-rounds-half-up",
        "percentage-capped",
        "percentage-over-100-clamped",
        "fixed",
        "fixed-clamped-to-amount",
        "zero-amount",
    ],
)
def test_compute_discount(coupon_type, value, amount, max_discount, expected):
    assert compute_discount(coupon_type, value, amount, max_discount) == expected


def test_max_discount_does_not_apply_to_fixed_coupons():
    assert compute_discount(
        CouponType.FIXED, D("80000"), D("500000"), D("10000")
    ) == D("80000")
