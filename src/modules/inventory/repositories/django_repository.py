"""Django ORM implementation of the product variant repository."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Case, F, Value, When
from django.utils import timezone

from modules.inventory.models import ProductVariant, VariantStatus
from modules.inventory.repositories.interfaces import IVariantRepository

logger = structlog.get_logger(__name__)


def _derived_status() -> Case:
    return Case(
        When(stock__gt=0, then=Value(VariantStatus.ACTIVE)),
        default=Value(VariantStatus.OUT_OF_STOCK),
    )


class VariantDjangoRepository(IVariantRepository):
    """Concrete variant repository backed by Django ORM.

    Stock counters are changed with ``UPDATE ... SET stock = stock +/- n``
    guarded by a ``WHERE`` clause, followed by a status refresh inside the
    same transaction.
    """

    def get_by_id(self, id: str) -> Optional[ProductVariant]:
        try:
            return (
                ProductVariant.objects.alive()
                .select_related("product")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[UUID]) -> Dict[UUID, ProductVariant]:
        variants = (
            ProductVariant.objects.alive()
            .select_related("product")
            .filter(id__in=list(ids), product__deleted_at__isnull=True)
        )
        return {variant.id: variant for variant in variants}

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[ProductVariant]:
        queryset = ProductVariant.objects.alive().select_related("product")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: ProductVariant) -> ProductVariant:
        entity.save()
        logger.info("variant.saved", variant_id=str(entity.id), sku=entity.sku)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        variant = self.get_by_id(id)
        if not variant:
            return False
        variant.delete()
        logger.info("variant.soft_deleted", variant_id=str(id))
        return True

    # ------------------------------------------------------------------
    # Stock counter primitives
    # ------------------------------------------------------------------

    def get_stock(self, id: UUID) -> Optional[int]:
        return (
            ProductVariant.objects.alive()
            .filter(id=id)
            .values_list("stock", flat=True)
            .first()
        )

    @transaction.atomic
    def decrement_stock(self, id: UUID, quantity: int) -> bool:
        updated = (
            ProductVariant.objects.alive()
            .filter(id=id, stock__gte=quantity)
            .update(stock=F("stock") - quantity, updated_at=timezone.now())
        )
        if updated:
            self._refresh_status(id)
        return bool(updated)

    @transaction.atomic
    def increment_stock(self, id: UUID, quantity: int) -> bool:
        updated = ProductVariant.objects.filter(id=id).update(
            stock=F("stock") + quantity, updated_at=timezone.now()
        )
        if updated:
            self._refresh_status(id)
        return bool(updated)

    @staticmethod
    def _refresh_status(id: UUID) -> None:
        ProductVariant.objects.filter(id=id).update(status=_derived_status())
