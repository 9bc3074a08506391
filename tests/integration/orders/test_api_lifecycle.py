"""Integration tests for status transitions, cancellation, payment and statistics."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.orders.models import ReversalFailure

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


@pytest.fixture()
def variant(make_variant):
    return make_variant(stock=5, price=Decimal("100000"))


@pytest.fixture()
def order(place_order, variant):
    return place_order([(variant, 2)])


def _stock(variant) -> int:
    variant.refresh_from_db()
    return variant.stock


def _status(client, order, status, note=""):
    return client.post(
        f"{URL}{order.id}/status/", {"status": status, "note": note}, format="json"
    )


class TestTransitionAPI:
    def test_admin_moves_order_forward(self, admin_client_api, admin_user, order):
        response = _status(admin_client_api, order, "processing", note="packed")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processing"
        assert body["status_history"][-1] == {
            "sequence": 2,
            "old_status": "pending",
            "status": "processing",
            "note": "packed",
            "timestamp": body["status_history"][-1]["timestamp"],
        }
        order.refresh_from_db()
        assert order.status_history.last().actor_id == admin_user.pk

    def test_illegal_transition_returns_400(self, admin_client_api, order):
        response = _status(admin_client_api, order, "delivered")

        assert response.status_code == 400
        assert response.json()["error"] == "IllegalTransition"
        order.refresh_from_db()
        assert order.status == "pending"
        assert order.status_history.count() == 1

    def test_unknown_status_value_returns_400(self, admin_client_api, order):
        assert _status(admin_client_api, order, "archived").status_code == 400

    def test_buyer_cannot_transition(self, buyer_client, order):
        assert _status(buyer_client, order, "processing").status_code == 403

    def test_admin_cancel_through_status_releases_stock(
        self, admin_client_api, order, variant
    ):
        _status(admin_client_api, order, "processing")
        response = _status(admin_client_api, order, "cancelled")

        assert response.status_code == 200
        assert _stock(variant) == 5

    def test_full_lifecycle_with_refund(self, admin_client_api, order, variant):
        for status in ("processing", "shipped", "delivered"):
            assert _status(admin_client_api, order, status).status_code == 200
        assert _stock(variant) == 3

        response = _status(admin_client_api, order, "refunded", note="damaged")

        body = response.json()
        assert body["status"] == "refunded"
        assert body["payment_status"] == "refunded"
        assert [h["status"] for h in body["status_history"]] == [
            "pending",
            "processing",
            "shipped",
            "delivered",
            "refunded",
        ]
        assert _stock(variant) == 5
        assert _status(admin_client_api, order, "pending").status_code == 400


class TestCancelAPI:
    def test_buyer_cancels_pending_order(self, buyer_client, order, variant):
        response = buyer_client.post(
            f"{URL}{order.id}/cancel/", {"reason": "wrong size"}, format="json"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "cancelled"
        assert body["status_history"][-1]["note"] == "wrong size"
        assert _stock(variant) == 5

    def test_buyer_cannot_cancel_processing_order(
        self, buyer_client, admin_client_api, order, variant
    ):
        _status(admin_client_api, order, "processing")

        response = buyer_client.post(f"{URL}{order.id}/cancel/", format="json")

        assert response.status_code == 400
        assert response.json()["error"] == "CancellationNotAllowed"
        assert _stock(variant) == 3

    def test_other_buyer_gets_404(self, other_client, order, variant):
        response = other_client.post(f"{URL}{order.id}/cancel/", format="json")
        assert response.status_code == 404
        assert _stock(variant) == 3

    def test_admin_cancels_shipped_order(self, admin_client_api, order, variant):
        _status(admin_client_api, order, "processing")
        _status(admin_client_api, order, "shipped")

        response = admin_client_api.post(f"{URL}{order.id}/cancel/", format="json")

        assert response.status_code == 200
        assert _stock(variant) == 5
        assert not ReversalFailure.objects.exists()

    def test_second_cancel_is_rejected_without_double_release(
        self, buyer_client, order, variant
    ):
        buyer_client.post(f"{URL}{order.id}/cancel/", format="json")
        response = buyer_client.post(f"{URL}{order.id}/cancel/", format="json")

        assert response.status_code == 400
        assert _stock(variant) == 5


class TestPaymentAPI:
    def test_admin_records_payment(self, admin_client_api, order):
        response = admin_client_api.post(
            f"{URL}{order.id}/payment/", {"payment_status": "paid"}, format="json"
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"

    def test_refunded_is_not_accepted(self, admin_client_api, order):
        response = admin_client_api.post(
            f"{URL}{order.id}/payment/", {"payment_status": "refunded"}, format="json"
        )
        assert response.status_code == 400

    def test_terminal_order_rejects_payment(self, admin_client_api, order):
        admin_client_api.post(f"{URL}{order.id}/cancel/", format="json")
        response = admin_client_api.post(
            f"{URL}{order.id}/payment/", {"payment_status": "paid"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["error"] == "PaymentUpdateNotAllowed"

    def test_buyer_cannot_record_payment(self, buyer_client, order):
        response = buyer_client.post(
            f"{URL}{order.id}/payment/", {"payment_status": "paid"}, format="json"
        )
        assert response.status_code == 403


class TestStatisticsAPI:
    def test_admin_statistics(self, admin_client_api, order):
        for status in ("processing", "shipped", "delivered"):
            _status(admin_client_api, order, status)

        response = admin_client_api.get(f"{URL}statistics/")

        assert response.status_code == 200
        body = response.json()
        assert body["total_orders"] == 1
        assert body["by_status"]["delivered"]["count"] == 1
        assert Decimal(body["total_revenue"]) == Decimal("230000")
        assert body["today"]["orders"] == 1

    def test_buyer_is_forbidden(self, buyer_client):
        assert buyer_client.get(f"{URL}statistics/").status_code == 403
