"""Query-count guards against N+1 regressions on the order endpoints."""

from __future__ import annotations

import pytest

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


@pytest.fixture()
def many_orders(place_order, make_variant):
    variants = [make_variant(stock=50) for _ in range(3)]
    return [place_order([(v, 1) for v in variants]) for _ in range(6)]


def test_list_query_count_is_flat(admin_client_api, many_orders, django_assert_max_num_queries):
    with django_assert_max_num_queries(4):
        response = admin_client_api.get(URL)
    assert response.json()["count"] == 6


def test_retrieve_query_count(buyer_client, many_orders, django_assert_max_num_queries):
    order = many_orders[0]
    with django_assert_max_num_queries(5):
        response = buyer_client.get(f"{URL}{order.id}/")
    assert len(response.json()["items"]) == 3
