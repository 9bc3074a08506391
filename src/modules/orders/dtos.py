"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  These are
the contracts between the API layer (DRF Serializers) and the Service
layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: one cart line (variant + quantity).
- ``ShippingDetailsDTO``: delivery contact snapshot.
- ``CreateOrderDTO``: input of CreateOrder.
- ``OrderStatisticsDTO``: admin dashboard figures.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.orders.constants import PaymentMethod

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """A cart line.  Unit price is resolved by the service, never sent."""

    model_config = ConfigDict(frozen=True)

    variant_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class ShippingDetailsDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    full_name: str
    email: str
    phone: str
    address: str
    city: str

    @field_validator("full_name", "email", "phone", "address", "city")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Shipping fields must not be blank.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``items`` contains at least one line.
    - a variant appears at most once (lines are not merged).
    - ``coupon_code`` is normalised to uppercase, blank means none.
    """

    model_config = ConfigDict(frozen=True)

    buyer_id: int
    items: List[CreateOrderItemDTO]
    shipping: ShippingDetailsDTO
    payment_method: PaymentMethod = PaymentMethod.COD
    coupon_code: Optional[str] = None
    notes: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("coupon_code")
    @classmethod
    def normalise_coupon_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().upper()

    @model_validator(mode="after")
    def no_duplicate_variants(self) -> CreateOrderDTO:
        variant_ids = [item.variant_id for item in self.items]
        if len(variant_ids) != len(set(variant_ids)):
            raise ValueError("Duplicate variant IDs are not allowed in the same order.")
        return self


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class StatusFigures(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    total: Decimal = Decimal("0")


class PeriodFigures(BaseModel):
    model_config = ConfigDict(frozen=True)

    orders: int = 0
    revenue: Decimal = Decimal("0")


class OrderStatisticsDTO(BaseModel):
    """Revenue counts only delivered orders whose payment is ``paid``."""

    model_config = ConfigDict(frozen=True)

    total_orders: int
    by_status: Dict[str, StatusFigures]
    total_revenue: Decimal
    today: PeriodFigures
    this_month: PeriodFigures
