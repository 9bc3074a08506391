"""Integration tests for throttling on the order endpoints."""

from __future__ import annotations

import pytest
from rest_framework.throttling import ScopedRateThrottle

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


def test_order_creation_is_throttled(buyer_client, make_variant, order_payload, monkeypatch):
    monkeypatch.setitem(ScopedRateThrottle.THROTTLE_RATES, "order_creation", "2/minute")
    payload = order_payload([(make_variant(stock=10), 1)])

    for _ in range(2):
        assert buyer_client.post(URL, payload, format="json").status_code == 201

    assert buyer_client.post(URL, payload, format="json").status_code == 429


def test_listing_uses_its_own_scope(buyer_client, make_variant, order_payload, monkeypatch):
    monkeypatch.setitem(ScopedRateThrottle.THROTTLE_RATES, "order_creation", "1/minute")
    buyer_client.post(URL, order_payload([(make_variant(stock=10), 1)]), format="json")

    for _ in range(3):
        assert buyer_client.get(URL).status_code == 200
