"""Unit tests for the order event handlers wired on the event bus."""

from __future__ import annotations

import logging
from uuid import uuid4

import pytest

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderRefunded,
    OrderStatusChanged,
)
from shared.infrastructure.bus import event_bus

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "event, log_event",
    [
        (OrderCreated(aggregate_id=uuid4(), order_number="SP1"), "order.event.created"),
        (
            OrderStatusChanged(aggregate_id=uuid4(), old_status="a", new_status="b"),
            "order.event.status_changed",
        ),
        (OrderCancelled(aggregate_id=uuid4(), reason="r"), "order.event.cancelled"),
        (OrderRefunded(aggregate_id=uuid4()), "order.event.refunded"),
    ],
)
def test_bus_delivers_order_events_to_handlers(event, log_event, caplog):
    with caplog.at_level(logging.INFO):
        event_bus.publish(event)

    messages = [record.getMessage() for record in caplog.records]
    assert any(
        log_event in message and str(event.aggregate_id) in message
        for message in messages
    ), messages


@pytest.mark.parametrize(
    "name", ["OrderCreated", "OrderStatusChanged", "OrderCancelled", "OrderRefunded"]
)
def test_event_types_are_resolvable(name):
    assert event_bus.resolve(name).__name__ == name
