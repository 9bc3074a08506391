"""Coupon Validator and coupon management use-cases.

``validate`` is read-only.  ``redeem`` is what order placement calls:
it validates and then consumes the coupon with a single conditional
``UPDATE``, so between the check and the increment no other order can
act on a stale ``usage_count``.  ``revert`` undoes one consumption and
is floored at zero; per-order idempotency is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.db import models, transaction
from django.utils import timezone

from modules.coupons.exceptions import (
    CouponAlreadyExists,
    CouponExhausted,
    CouponExpired,
    CouponMinimumNotMet,
    CouponNotFound,
)
from modules.coupons.models import Coupon, CouponType

if TYPE_CHECKING:
    from modules.coupons.dtos import CreateCouponDTO, UpdateCouponDTO
    from modules.coupons.repositories.interfaces import ICouponRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Redemption:
    coupon: Coupon
    discount: Decimal


class CouponService:
    def __init__(self, repository: ICouponRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Validator
    # ------------------------------------------------------------------

    def check(self, code: str, order_amount: Decimal) -> Redemption:
        """Validate *code* for *order_amount* without touching usage.

        Raises:
            CouponNotFound: no live coupon has this code.
            CouponExpired: inactive, or outside its date window.
            CouponExhausted: usage cap reached.
            CouponMinimumNotMet: order amount below the coupon minimum.
        """
        coupon = self._repo.get_by_code(code)
        if coupon is None:
            raise CouponNotFound(code.strip().upper())
        if not coupon.is_in_window(timezone.now()):
            raise CouponExpired(coupon.code)
        if coupon.is_exhausted:
            raise CouponExhausted(coupon.code)
        if order_amount < coupon.min_order_amount:
            raise CouponMinimumNotMet(
                coupon.code, required=coupon.min_order_amount, actual=order_amount
            )
        return Redemption(coupon=coupon, discount=coupon.discount_for(order_amount))

    def validate(self, code: str, order_amount: Decimal) -> Decimal:
        """Return the discount *code* grants on *order_amount*."""
        return self.check(code, order_amount).discount

    def consume(self, code: str) -> None:
        """Count one use of *code*.

        Raises the same errors as ``check`` when the coupon stopped being
        usable; ``CouponExhausted`` if the cap was reached concurrently.
        """
        if self._repo.try_consume(code, timezone.now()):
            logger.info("coupon.consumed", code=code.strip().upper())
            return
        coupon = self._repo.get_by_code(code)
        if coupon is None:
            raise CouponNotFound(code.strip().upper())
        if not coupon.is_in_window(timezone.now()):
            raise CouponExpired(coupon.code)
        logger.warning("coupon.consume_rejected", code=coupon.code)
        raise CouponExhausted(coupon.code)

    def redeem(self, code: str, order_amount: Decimal) -> Redemption:
        """Validate and consume *code* as one step."""
        redemption = self.check(code, order_amount)
        self.consume(redemption.coupon.code)
        logger.info(
            "coupon.redeemed",
            code=redemption.coupon.code,
            order_amount=str(order_amount),
            discount=str(redemption.discount),
        )
        return redemption

    def revert(self, code: str) -> bool:
        """Give back one use.  Returns ``False`` when usage was already 0."""
        reverted = self._repo.revert(code)
        if reverted:
            logger.info("coupon.reverted", code=code)
        else:
            logger.warning("coupon.revert_noop", code=code)
        return reverted

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_coupon(self, dto: CreateCouponDTO) -> Coupon:
        """Raises ``CouponAlreadyExists`` if the code is taken."""
        if self._repo.code_exists(dto.code):
            logger.warning("coupon.duplicate_code", code=dto.code)
            raise CouponAlreadyExists(f"Coupon code '{dto.code}' already exists.")

        coupon = Coupon(
            code=dto.code,
            type=dto.type,
            value=dto.value,
            max_discount=dto.max_discount,
            min_order_amount=dto.min_order_amount,
            max_usage=dto.max_usage,
            start_date=dto.start_date,
            end_date=dto.end_date,
            is_active=dto.is_active,
        )
        coupon = self._repo.save(coupon)
        logger.info("coupon.created", coupon_id=str(coupon.id), code=coupon.code)
        return coupon

    @transaction.atomic
    def update_coupon(self, id: str, dto: UpdateCouponDTO) -> Coupon:
        """Apply a partial update, writing only the changed columns.

        Raises:
            CouponNotFound: the coupon does not exist.
            ValueError: the result breaks the value, date or usage-cap rules.
        """
        coupon = self._repo.get_by_id(id)
        if not coupon:
            raise CouponNotFound(str(id))

        changes = dto.changes()
        for field, value in changes.items():
            setattr(coupon, field, value)

        if coupon.type == CouponType.PERCENTAGE and not 0 <= coupon.value <= 100:
            raise ValueError("Percentage coupons must have a value between 0 and 100.")
        if coupon.value < 0:
            raise ValueError("Coupon value cannot be negative.")
        if coupon.end_date <= coupon.start_date:
            raise ValueError("end_date must be after start_date.")
        if coupon.max_usage and coupon.max_usage < coupon.usage_count:
            raise ValueError(
                "max_usage cannot be lower than the current usage "
                f"({coupon.usage_count})."
            )

        if changes and not self._repo.apply_changes(coupon.id, changes):
            current = self._repo.get_by_id(id)
            if current is None:
                raise CouponNotFound(str(id))
            raise ValueError(
                "max_usage cannot be lower than the current usage "
                f"({current.usage_count})."
            )

        coupon.refresh_from_db()
        logger.info("coupon.updated", coupon_id=str(id), fields=sorted(changes))
        return coupon

    def list_coupons(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Coupon]":
        return self._repo.list(filters)

    def get_coupon(self, id: str) -> Coupon:
        coupon = self._repo.get_by_id(id)
        if not coupon:
            raise CouponNotFound(str(id))
        return coupon

    @transaction.atomic
    def delete_coupon(self, id: str) -> None:
        if not self._repo.delete(id):
            raise CouponNotFound(str(id))
        logger.info("coupon.soft_deleted", coupon_id=str(id))
