"""Integration tests for order list / retrieve / by-number."""

from __future__ import annotations

from decimal import Decimal

import pytest

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


@pytest.fixture()
def two_orders(place_order, make_variant, other_buyer):
    variant = make_variant(stock=20, price=Decimal("100000"))
    mine = place_order([(variant, 1)])
    theirs = place_order([(variant, 3)], user=other_buyer)
    return mine, theirs


class TestListOrders:
    def test_buyer_sees_only_own_orders(self, buyer_client, two_orders):
        mine, _ = two_orders

        response = buyer_client.get(URL)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["results"][0]["id"] == str(mine.id)
        assert "items" not in body["results"][0]

    def test_admin_sees_all_orders(self, admin_client_api, two_orders):
        response = admin_client_api.get(URL)
        assert response.json()["count"] == 2

    def test_filter_by_status(self, admin_client_api, two_orders, order_service):
        mine, _ = two_orders
        order_service.cancel_order(mine.id)

        response = admin_client_api.get(URL, {"status": "cancelled"})

        results = response.json()["results"]
        assert [r["id"] for r in results] == [str(mine.id)]

    def test_filter_by_total_range(self, admin_client_api, two_orders):
        _, theirs = two_orders
        response = admin_client_api.get(URL, {"min_total": "200000"})
        assert [r["id"] for r in response.json()["results"]] == [str(theirs.id)]

    def test_filter_by_buyer(self, admin_client_api, two_orders, other_buyer):
        _, theirs = two_orders
        response = admin_client_api.get(URL, {"buyer": other_buyer.pk})
        assert [r["id"] for r in response.json()["results"]] == [str(theirs.id)]

    def test_ordering_by_total(self, admin_client_api, two_orders):
        mine, theirs = two_orders
        response = admin_client_api.get(URL, {"ordering": "-total"})
        assert [r["id"] for r in response.json()["results"]] == [
            str(theirs.id),
            str(mine.id),
        ]

    def test_page_size(self, admin_client_api, two_orders):
        body = admin_client_api.get(URL, {"page_size": 1}).json()
        assert body["count"] == 2
        assert len(body["results"]) == 1
        assert body["next"] is not None

    def test_requires_authentication(self, api_client):
        assert api_client.get(URL).status_code == 401


class TestRetrieveOrder:
    def test_owner_can_retrieve(self, buyer_client, two_orders):
        mine, _ = two_orders
        response = buyer_client.get(f"{URL}{mine.id}/")
        assert response.status_code == 200
        assert response.json()["order_number"] == mine.order_number

    def test_other_buyers_order_is_not_found(self, buyer_client, two_orders):
        _, theirs = two_orders
        response = buyer_client.get(f"{URL}{theirs.id}/")
        assert response.status_code == 404

    def test_admin_can_retrieve_any(self, admin_client_api, two_orders):
        _, theirs = two_orders
        assert admin_client_api.get(f"{URL}{theirs.id}/").status_code == 200

    def test_invalid_id_is_not_found(self, admin_client_api):
        assert admin_client_api.get(f"{URL}not-a-uuid/").status_code == 404


class TestRetrieveByNumber:
    def test_owner_can_retrieve_by_number(self, buyer_client, two_orders):
        mine, _ = two_orders
        response = buyer_client.get(f"{URL}number/{mine.order_number}/")
        assert response.status_code == 200
        assert response.json()["id"] == str(mine.id)

    def test_other_buyers_number_is_not_found(self, buyer_client, two_orders):
        _, theirs = two_orders
        response = buyer_client.get(f"{URL}number/{theirs.order_number}/")
        assert response.status_code == 404

    def test_unknown_number(self, admin_client_api):
        response = admin_client_api.get(f"{URL}number/SP000000000000/")
        assert response.status_code == 404
