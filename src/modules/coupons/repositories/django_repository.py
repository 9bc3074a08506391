"""Django ORM implementation of the Coupon repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F, Q
from django.utils import timezone

from modules.coupons.models import Coupon
from modules.coupons.repositories.interfaces import ICouponRepository

logger = structlog.get_logger(__name__)


def _normalise(code: str) -> str:
    return code.strip().upper()


class CouponDjangoRepository(ICouponRepository):
    """Concrete Coupon repository backed by Django ORM.

    Returns ``None`` for missing rows; the service decides which domain
    exception that becomes.
    """

    def get_by_id(self, id: str) -> Optional[Coupon]:
        try:
            return Coupon.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Coupon]":
        queryset = Coupon.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    @transaction.atomic
    def save(self, entity: Coupon) -> Coupon:
        entity.save()
        logger.info("coupon.saved", coupon_id=str(entity.id), code=entity.code)
        return entity

    def apply_changes(self, id: str, changes: Dict[str, Any]) -> bool:
        """Write only *changes*; ``usage_count`` is never part of the statement.

        A lowered ``max_usage`` is applied only while ``usage_count`` still
        fits under it.
        """
        queryset = Coupon.objects.alive().filter(id=id)
        if changes.get("max_usage"):
            queryset = queryset.filter(usage_count__lte=changes["max_usage"])
        updated = queryset.update(**changes, updated_at=timezone.now())
        return bool(updated)

    @transaction.atomic
    def delete(self, id: str) -> bool:
        coupon = self.get_by_id(id)
        if not coupon:
            return False
        coupon.delete()
        logger.info("coupon.soft_deleted", coupon_id=str(id))
        return True

    def get_by_code(self, code: str) -> Optional[Coupon]:
        return Coupon.objects.alive().filter(code=_normalise(code)).first()

    def code_exists(self, code: str) -> bool:
        return Coupon.objects.filter(code=_normalise(code)).exists()

    # ------------------------------------------------------------------
    # Usage counter primitives
    # ------------------------------------------------------------------

    def try_consume(self, code: str, now: datetime) -> bool:
        updated = (
            Coupon.objects.alive()
            .filter(
                code=_normalise(code),
                is_active=True,
                start_date__lte=now,
                end_date__gte=now,
            )
            .filter(Q(max_usage=0) | Q(usage_count__lt=F("max_usage")))
            .update(usage_count=F("usage_count") + 1, updated_at=timezone.now())
        )
        return bool(updated)

    def revert(self, code: str) -> bool:
        updated = Coupon.objects.filter(
            code=_normalise(code), usage_count__gt=0
        ).update(usage_count=F("usage_count") - 1, updated_at=timezone.now())
        return bool(updated)
