"""Unit tests for the order input DTOs."""

from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from modules.orders.constants import PaymentMethod
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO

pytestmark = pytest.mark.unit


def _dto(shipping, **overrides) -> CreateOrderDTO:
    fields = {
        "buyer_id": 1,
        "items": [CreateOrderItemDTO(variant_id=uuid4(), quantity=1)],
        "shipping": shipping,
    }
    fields.update(overrides)
    return CreateOrderDTO(**fields)


def test_defaults(shipping):
    dto = _dto(shipping)
    assert dto.payment_method == PaymentMethod.COD
    assert dto.coupon_code is None
    assert dto.idempotency_key is None


def test_empty_items_rejected(shipping):
    with pytest.raises(ValidationError):
        _dto(shipping, items=[])


def test_duplicate_variants_rejected(shipping):
    variant_id = uuid4()
    with pytest.raises(ValidationError, match="Duplicate variant"):
        _dto(
            shipping,
            items=[
                CreateOrderItemDTO(variant_id=variant_id, quantity=1),
                CreateOrderItemDTO(variant_id=variant_id, quantity=2),
            ],
        )


@pytest.mark.parametrize("quantity", [0, -3])
def test_quantity_must_be_positive(quantity):
    with pytest.raises(ValidationError):
        CreateOrderItemDTO(variant_id=uuid4(), quantity=quantity)


@pytest.mark.parametrize("raw, expected", [(" save10 ", "SAVE10"), ("   ", None), (None, None)])
def test_coupon_code_is_normalised(shipping, raw, expected):
    assert _dto(shipping, coupon_code=raw).coupon_code == expected


def test_blank_shipping_field_rejected(shipping):
    with pytest.raises(ValidationError):
        shipping.model_validate({**shipping.model_dump(), "city": "  "})


def test_dto_is_frozen(shipping):
    dto = _dto(shipping)
    with pytest.raises(ValidationError):
        dto.notes = "changed"
