"""Integration tests for ``POST /api/v1/orders/``."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.models import Order

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


def _stock(variant) -> int:
    variant.refresh_from_db()
    return variant.stock


class TestCreateOrderAPI:
    def test_creates_order(self, buyer_client, buyer, make_variant, order_payload):
        variant = make_variant(stock=5, price=Decimal("120000"))

        response = buyer_client.post(
            URL, order_payload([(variant, 2)], payment_method="momo"), format="json"
        )

        assert response.status_code == 201, response.data
        body = response.json()
        assert body["status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["payment_method"] == "momo"
        assert body["buyer_id"] == buyer.pk
        assert Decimal(body["subtotal"]) == Decimal("240000")
        assert Decimal(body["shipping_fee"]) == Decimal("30000")
        assert Decimal(body["total"]) == Decimal("270000")
        assert body["shipping"]["city"] == "Hồ Chí Minh"
        assert body["items"][0]["quantity"] == 2
        assert body["items"][0]["variant_id"] == str(variant.id)
        assert [h["status"] for h in body["status_history"]] == ["pending"]
        assert body["order_number"].startswith("SP")
        assert _stock(variant) == 3

    def test_applies_coupon(self, buyer_client, make_variant, make_coupon, order_payload):
        make_coupon(min_order_amount=Decimal("100000"))
        variant = make_variant(stock=5, price=Decimal("100000"))

        response = buyer_client.post(
            URL, order_payload([(variant, 2)], coupon_code="save10"), format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["coupon_code"] == "SAVE10"
        assert Decimal(body["discount"]) == Decimal("20000")
        assert Decimal(body["total"]) == Decimal("210000")

    def test_insufficient_stock_returns_409(self, buyer_client, make_variant, order_payload):
        variant = make_variant(stock=1)

        response = buyer_client.post(URL, order_payload([(variant, 3)]), format="json")

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "InsufficientStock"
        assert body["variant_id"] == str(variant.id)
        assert body["available"] == 1
        assert body["requested"] == 3
        assert not Order.objects.exists()

    def test_unknown_variant_returns_404(self, buyer_client, order_payload):
        class Ghost:
            id = uuid4()

        response = buyer_client.post(URL, order_payload([(Ghost, 1)]), format="json")

        assert response.status_code == 404
        assert response.json()["error"] == "VariantNotFound"

    @pytest.mark.parametrize(
        "coupon_kwargs, error",
        [
            ({"is_active": False}, "CouponExpired"),
            ({"max_usage": 1, "usage_count": 1}, "CouponExhausted"),
            ({"min_order_amount": Decimal("5000000")}, "CouponMinimumNotMet"),
        ],
    )
    def test_coupon_rejections_return_400(
        self, buyer_client, make_variant, make_coupon, order_payload, coupon_kwargs, error
    ):
        make_coupon(**coupon_kwargs)
        variant = make_variant(stock=5)

        response = buyer_client.post(
            URL, order_payload([(variant, 1)], coupon_code="SAVE10"), format="json"
        )

        assert response.status_code == 400
        assert response.json()["error"] == error
        assert _stock(variant) == 5

    def test_unknown_coupon_returns_400(self, buyer_client, make_variant, order_payload):
        variant = make_variant(stock=5)
        response = buyer_client.post(
            URL, order_payload([(variant, 1)], coupon_code="NOPE"), format="json"
        )
        assert response.status_code == 400
        assert response.json()["error"] == "CouponNotFound"

    def test_empty_items_rejected(self, buyer_client, order_payload):
        response = buyer_client.post(URL, order_payload([]), format="json")
        assert response.status_code == 400

    def test_duplicate_variant_lines_rejected(self, buyer_client, make_variant, order_payload):
        variant = make_variant(stock=5)
        response = buyer_client.post(
            URL, order_payload([(variant, 1), (variant, 2)]), format="json"
        )
        assert response.status_code == 400
        assert _stock(variant) == 5

    def test_unit_price_in_payload_is_ignored(self, buyer_client, make_variant, order_payload):
        variant = make_variant(stock=5, price=Decimal("100000"))
        payload = order_payload([(variant, 1)])
        payload["items"][0]["unit_price"] = "1"

        response = buyer_client.post(URL, payload, format="json")

        assert response.status_code == 201
        assert Decimal(response.json()["subtotal"]) == Decimal("100000")

    def test_requires_authentication(self, api_client, make_variant, order_payload):
        variant = make_variant()
        response = api_client.post(URL, order_payload([(variant, 1)]), format="json")
        assert response.status_code == 401


class TestIdempotencyKey:
    def test_replay_returns_original_order(self, buyer_client, make_variant, order_payload):
        variant = make_variant(stock=5)
        payload = order_payload([(variant, 1)])

        first = buyer_client.post(
            URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="cart-42"
        )
        second = buyer_client.post(
            URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="cart-42"
        )

        assert first.status_code == 201
        assert second.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert _stock(variant) == 4

    def test_key_of_another_buyer_conflicts(
        self, buyer_client, other_client, make_variant, order_payload
    ):
        variant = make_variant(stock=5)
        payload = order_payload([(variant, 1)])
        buyer_client.post(URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="cart-42")

        response = other_client.post(
            URL, payload, format="json", HTTP_IDEMPOTENCY_KEY="cart-42"
        )

        assert response.status_code == 409
        assert response.json()["error"] == "IdempotencyKeyReused"
