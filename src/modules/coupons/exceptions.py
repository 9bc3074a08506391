"""Coupon domain exceptions.

Raised by the Coupon Validator and the coupon management use-cases.
Every rejection a buyer can fix by changing or dropping the code derives
from ``CouponError``, so the API layer can map them all to 400.
"""

from __future__ import annotations

from decimal import Decimal


class CouponError(Exception):
    """A coupon cannot be applied to the order."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


class CouponNotFound(CouponError):
    def __init__(self, code: str) -> None:
        super().__init__(code, f"Coupon '{code}' not found.")


class CouponExpired(CouponError):
    """The coupon is inactive or outside its validity window."""

    def __init__(self, code: str) -> None:
        super().__init__(code, f"Coupon '{code}' is expired or inactive.")


class CouponExhausted(CouponError):
    """The coupon reached its usage cap."""

    def __init__(self, code: str) -> None:
        super().__init__(code, f"Coupon '{code}' has reached its usage limit.")


class CouponMinimumNotMet(CouponError):
    def __init__(self, code: str, required: Decimal, actual: Decimal) -> None:
        self.required = required
        self.actual = actual
        super().__init__(
            code,
            f"Coupon '{code}' requires a minimum order of {required} "
            f"(order amount: {actual}).",
        )


class CouponAlreadyExists(Exception):
    """A coupon with the same code is already registered."""
