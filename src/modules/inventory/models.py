"""Product and ProductVariant models.

A ``ProductVariant`` is one (product x size x color) combination and is the
unit the Stock Ledger counts.

Rules implemented here:
- ``stock`` is never negative (``PositiveIntegerField`` + CHECK constraint).
- ``status`` is derived from ``stock`` on every save and every ledger
  mutation; it is not independently settable.
- The sale price of a variant is ``product.base_price + additional_price``.
- SKUs are normalised to uppercase.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class ProductStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"


class VariantStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    OUT_OF_STOCK = "out_of_stock", "Out of stock"


def status_for_stock(stock: int) -> str:
    return VariantStatus.ACTIVE if stock > 0 else VariantStatus.OUT_OF_STOCK


class Product(SoftDeleteModel):
    """Catalog product; only the fields order placement needs."""

    name = models.CharField(max_length=200)
    base_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        default=Decimal("0"),
    )
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(base_price__gte=0),
                name="products_base_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class ProductVariant(SoftDeleteModel):
    """Variant Stock Record.

    ``stock`` is mutated only by the Stock Ledger through conditional
    ``UPDATE`` statements.  Saving a variant through the ORM (catalog
    administration, seeding) still re-derives ``status``.
    """

    product = models.ForeignKey(
        "inventory.Product",
        on_delete=models.PROTECT,
        related_name="variants",
    )
    size = models.CharField(max_length=50)
    color = models.CharField(max_length=50)
    sku = models.CharField(max_length=64, unique=True)
    additional_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
    )
    stock = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=VariantStatus.choices,
        default=VariantStatus.OUT_OF_STOCK,
        editable=False,
    )

    class Meta:
        db_table = "product_variants"
        ordering = ["product_id", "size", "color"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "size", "color"],
                name="product_variants_unique_combination",
            ),
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="product_variants_stock_non_negative",
            ),
        ]

    @property
    def unit_price(self) -> Decimal:
        return self.product.base_price + self.additional_price

    @property
    def display_name(self) -> str:
        return f"{self.product.name} - {self.size}, {self.color}"

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        self.status = status_for_stock(self.stock)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "stock" in update_fields:
            kwargs["update_fields"] = list(set(update_fields) | {"status"})
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "variant_created",
                variant_id=str(self.id),
                sku=self.sku,
                stock=self.stock,
            )

    def __str__(self) -> str:
        return f"{self.sku} ({self.display_name})"
