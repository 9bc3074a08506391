"""Coupon DTOs for the Service Layer.

Immutable Pydantic v2 models exchanged between the API layer and
``CouponService``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.coupons.models import CouponType


def _check_value(coupon_type: str, value: Decimal) -> None:
    if value < 0:
        raise ValueError("Coupon value cannot be negative.")
    if coupon_type == CouponType.PERCENTAGE and value > 100:
        raise ValueError("Percentage coupons must have a value between 0 and 100.")


class CreateCouponDTO(BaseModel):
    """Input for coupon creation.

    Validates:
    - ``code`` is non-empty and is uppercased.
    - percentage ``value`` lies in 0-100, fixed ``value`` is non-negative.
    - ``end_date`` is after ``start_date``.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    type: CouponType
    value: Decimal
    max_discount: Decimal = Decimal("0")
    min_order_amount: Decimal = Decimal("0")
    max_usage: int = 0
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def code_must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Coupon code must not be empty.")
        return v.strip().upper()

    @field_validator("max_discount", "min_order_amount")
    @classmethod
    def amount_must_be_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Amounts cannot be negative.")
        return v

    @field_validator("max_usage")
    @classmethod
    def max_usage_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_usage cannot be negative (0 means unlimited).")
        return v

    @model_validator(mode="after")
    def check_rules(self) -> CreateCouponDTO:
        _check_value(self.type, self.value)
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date.")
        return self


class UpdateCouponDTO(BaseModel):
    """Partial update; ``None`` fields are left untouched.

    ``code`` and ``usage_count`` cannot be changed here.
    """

    model_config = ConfigDict(frozen=True)

    type: CouponType | None = None
    value: Decimal | None = None
    max_discount: Decimal | None = None
    min_order_amount: Decimal | None = None
    max_usage: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None

    @field_validator("max_discount", "min_order_amount")
    @classmethod
    def amount_must_be_non_negative(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("Amounts cannot be negative.")
        return v

    @field_validator("max_usage")
    @classmethod
    def max_usage_must_be_non_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("max_usage cannot be negative (0 means unlimited).")
        return v

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class CouponQuoteDTO(BaseModel):
    """Result of checking a code against an order amount."""

    model_config = ConfigDict(frozen=True)

    code: str
    type: str
    value: Decimal
    order_amount: Decimal
    discount: Decimal
