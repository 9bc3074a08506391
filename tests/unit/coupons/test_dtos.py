"""Unit tests for coupon DTO validation."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.coupons.dtos import CreateCouponDTO, UpdateCouponDTO

pytestmark = pytest.mark.unit

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
END = datetime(2026, 2, 1, tzinfo=timezone.utc)


def _create(**overrides) -> CreateCouponDTO:
    fields = {
        "code": " welcome ",
        "type": "fixed",
        "value": Decimal("50000"),
        "start_date": START,
        "end_date": END,
    }
    fields.update(overrides)
    return CreateCouponDTO(**fields)


def test_code_is_normalised():
    assert _create().code == "WELCOME"


def test_blank_code_rejected():
    with pytest.raises(ValidationError):
        _create(code="   ")


def test_percentage_above_100_rejected():
    with pytest.raises(ValidationError):
        _create(type="percentage", value=Decimal("101"))


def test_negative_value_rejected():
    with pytest.raises(ValidationError):
        _create(value=Decimal("-1"))


def test_end_date_must_follow_start_date():
    with pytest.raises(ValidationError):
        _create(end_date=START)


def test_negative_max_usage_rejected():
    with pytest.raises(ValidationError):
        _create(max_usage=-1)


def test_update_changes_skip_unset_fields():
    dto = UpdateCouponDTO(is_active=False, max_usage=10)
    assert dto.changes() == {"is_active": False, "max_usage": 10}
