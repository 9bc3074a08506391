"""Unit tests for the Coupon Validator (``CouponService``)."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from modules.coupons.dtos import UpdateCouponDTO
from modules.coupons.exceptions import (
    CouponExhausted,
    CouponExpired,
    CouponMinimumNotMet,
    CouponNotFound,
)
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.services import CouponService

pytestmark = pytest.mark.unit


@pytest.fixture()
def service():
    return CouponService(CouponDjangoRepository())


class TestValidate:
    def test_returns_discount_without_consuming(self, service, make_coupon):
        coupon = make_coupon(min_order_amount=Decimal("100000"), max_usage=1)

        assert service.validate("SAVE10", Decimal("200000")) == Decimal("20000")

        coupon.refresh_from_db()
        assert coupon.usage_count == 0

    def test_code_lookup_is_case_insensitive(self, service, make_coupon):
        make_coupon()
        assert service.validate("  save10 ", Decimal("100000")) == Decimal("10000")

    def test_unknown_code(self, service):
        with pytest.raises(CouponNotFound) as exc_info:
            service.validate("nope", Decimal("100000"))
        assert exc_info.value.code == "NOPE"

    def test_soft_deleted_coupon_is_not_found(self, service, make_coupon):
        make_coupon().delete()
        with pytest.raises(CouponNotFound):
            service.validate("SAVE10", Decimal("100000"))

    def test_not_started_yet(self, service, make_coupon):
        now = timezone.now()
        make_coupon(start_date=now + timedelta(days=1), end_date=now + timedelta(days=2))
        with pytest.raises(CouponExpired):
            service.validate("SAVE10", Decimal("100000"))

    def test_past_end_date(self, service, make_coupon):
        now = timezone.now()
        make_coupon(start_date=now - timedelta(days=10), end_date=now - timedelta(days=1))
        with pytest.raises(CouponExpired):
            service.validate("SAVE10", Decimal("100000"))

    def test_inactive_counts_as_expired(self, service, make_coupon):
        make_coupon(is_active=False)
        with pytest.raises(CouponExpired):
            service.validate("SAVE10", Decimal("100000"))

    def test_exhausted(self, service, make_coupon):
        make_coupon(max_usage=2, usage_count=2)
        with pytest.raises(CouponExhausted):
            service.validate("SAVE10", Decimal("100000"))

    def test_minimum_not_met(self, service, make_coupon):
        make_coupon(min_order_amount=Decimal("100000"))
        with pytest.raises(CouponMinimumNotMet) as exc_info:
            service.validate("SAVE10", Decimal("99999"))
        assert exc_info.value.required == Decimal("100000")
        assert exc_info.value.actual == Decimal("99999")

    def test_expiry_is_reported_before_exhaustion(self, service, make_coupon):
        now = timezone.now()
        make_coupon(
            max_usage=1,
            usage_count=1,
            start_date=now - timedelta(days=10),
            end_date=now - timedelta(days=1),
        )
        with pytest.raises(CouponExpired):
            service.validate("SAVE10", Decimal("100000"))

    def test_exhaustion_is_reported_before_minimum(self, service, make_coupon):
        make_coupon(max_usage=1, usage_count=1, min_order_amount=Decimal("500000"))
        with pytest.raises(CouponExhausted):
            service.validate("SAVE10", Decimal("100000"))


class TestConsumeAndRevert:
    def test_redeem_increments_usage(self, service, make_coupon):
        coupon = make_coupon(max_usage=3)

        redemption = service.redeem("save10", Decimal("200000"))

        assert redemption.discount == Decimal("20000")
        coupon.refresh_from_db()
        assert coupon.usage_count == 1

    def test_consume_never_exceeds_the_cap(self, service, make_coupon):
        coupon = make_coupon(max_usage=1)
        service.consume("SAVE10")

        with pytest.raises(CouponExhausted):
            service.consume("SAVE10")

        coupon.refresh_from_db()
        assert coupon.usage_count == 1

    def test_unlimited_coupon(self, service, make_coupon):
        coupon = make_coupon(max_usage=0)
        for _ in range(5):
            service.consume("SAVE10")
        coupon.refresh_from_db()
        assert coupon.usage_count == 5

    def test_consume_expired(self, service, make_coupon):
        make_coupon(is_active=False)
        with pytest.raises(CouponExpired):
            service.consume("SAVE10")

    def test_consume_unknown(self, service):
        with pytest.raises(CouponNotFound):
            service.consume("GHOST")

    def test_revert_decrements_once(self, service, make_coupon):
        coupon = make_coupon(usage_count=1, max_usage=5)

        assert service.revert("SAVE10") is True

        coupon.refresh_from_db()
        assert coupon.usage_count == 0

    def test_revert_is_floored_at_zero(self, service, make_coupon):
        coupon = make_coupon()

        assert service.revert("SAVE10") is False

        coupon.refresh_from_db()
        assert coupon.usage_count == 0


class TestCouponModel:
    def test_code_is_uppercased_on_save(self, make_coupon):
        assert make_coupon(code="welcome").code == "WELCOME"

    def test_is_valid(self, make_coupon):
        assert make_coupon(max_usage=1).is_valid is True
        assert make_coupon(code="USED", max_usage=1, usage_count=1).is_valid is False


class TestUpdateCoupon:
    def test_update_keeps_usage_consumed_after_the_read(self, make_coupon):
        coupon = make_coupon(max_usage=5)
        repo = CouponDjangoRepository()
        read_coupon = repo.get_by_id

        def read_then_redeem(id):
            stale = read_coupon(id)
            assert repo.try_consume("SAVE10", timezone.now())
            return stale

        with patch.object(repo, "get_by_id", side_effect=read_then_redeem):
            CouponService(repo).update_coupon(
                coupon.id, UpdateCouponDTO(is_active=True)
            )

        coupon.refresh_from_db()
        assert coupon.usage_count == 1

    def test_writes_only_changed_fields(self, service, make_coupon):
        coupon = make_coupon(max_usage=10, usage_count=4)

        updated = service.update_coupon(
            coupon.id, UpdateCouponDTO(max_usage=20, is_active=False)
        )

        assert updated.max_usage == 20
        assert updated.is_active is False
        assert updated.usage_count == 4

    def test_max_usage_below_current_usage_rejected(self, service, make_coupon):
        coupon = make_coupon(max_usage=5, usage_count=3)

        with pytest.raises(ValueError, match="current usage"):
            service.update_coupon(coupon.id, UpdateCouponDTO(max_usage=2))

        coupon.refresh_from_db()
        assert coupon.max_usage == 5

    def test_cap_is_rechecked_when_usage_grew_after_the_read(self, make_coupon):
        coupon = make_coupon(max_usage=5, usage_count=2)
        repo = CouponDjangoRepository()
        read_coupon = repo.get_by_id
        calls = []

        def read_then_redeem(id):
            stale = read_coupon(id)
            if not calls:
                assert repo.try_consume("SAVE10", timezone.now())
            calls.append(id)
            return stale

        with patch.object(repo, "get_by_id", side_effect=read_then_redeem):
            with pytest.raises(ValueError, match="current usage"):
                CouponService(repo).update_coupon(
                    coupon.id, UpdateCouponDTO(max_usage=2)
                )

        coupon.refresh_from_db()
        assert coupon.max_usage == 5

    def test_unlimited_cap_is_always_allowed(self, service, make_coupon):
        coupon = make_coupon(max_usage=5, usage_count=5)

        updated = service.update_coupon(coupon.id, UpdateCouponDTO(max_usage=0))

        assert updated.max_usage == 0
        assert updated.usage_count == 5

    def test_unknown_coupon(self, service):
        with pytest.raises(CouponNotFound):
            service.update_coupon(
                "00000000-0000-0000-0000-000000000000", UpdateCouponDTO(is_active=False)
            )
