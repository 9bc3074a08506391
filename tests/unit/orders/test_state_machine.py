"""Unit tests for the order transition table and payment side effects."""

from __future__ import annotations

import itertools

import pytest

from modules.orders.constants import (
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.exceptions import IllegalTransition
from modules.orders.state_machine import (
    allowed_transitions,
    can_transition,
    ensure_transition,
    is_terminal,
    payment_status_after,
)

pytestmark = pytest.mark.unit

LEGAL = {
    ("pending", "processing"),
    ("pending", "cancelled"),
    ("processing", "shipped"),
    ("processing", "cancelled"),
    ("shipped", "delivered"),
    ("shipped", "cancelled"),
    ("delivered", "refunded"),
}

ALL_PAIRS = list(itertools.product(OrderStatus.values, repeat=2))


@pytest.mark.parametrize("current, new", ALL_PAIRS)
def test_only_table_transitions_are_legal(current, new):
    assert can_transition(current, new) is ((current, new) in LEGAL)


@pytest.mark.parametrize("current, new", [p for p in ALL_PAIRS if p not in LEGAL])
def test_ensure_transition_rejects_illegal_moves(current, new):
    with pytest.raises(IllegalTransition) as exc_info:
        ensure_transition(current, new)
    assert exc_info.value.from_status == current
    assert exc_info.value.to_status == new


def test_ensure_transition_rejects_unknown_status():
    with pytest.raises(IllegalTransition):
        ensure_transition("pending", "archived")


def test_table_covers_every_status():
    assert set(VALID_TRANSITIONS) == set(OrderStatus.values)


@pytest.mark.parametrize("status", ["cancelled", "refunded"])
def test_terminal_states_have_no_exit(status):
    assert is_terminal(status)
    assert allowed_transitions(status) == frozenset()


def test_delivered_is_not_terminal():
    assert not is_terminal(OrderStatus.DELIVERED)


class TestPaymentStatusAfter:
    def test_cod_is_paid_on_delivery(self):
        assert (
            payment_status_after("delivered", PaymentMethod.COD, PaymentStatus.PENDING)
            == PaymentStatus.PAID
        )

    def test_prepaid_method_keeps_payment_status_on_delivery(self):
        assert (
            payment_status_after("delivered", PaymentMethod.MOMO, PaymentStatus.PENDING)
            == PaymentStatus.PENDING
        )

    def test_refund_marks_payment_refunded(self):
        assert (
            payment_status_after("refunded", PaymentMethod.COD, PaymentStatus.PAID)
            == PaymentStatus.REFUNDED
        )

    def test_cancelling_a_paid_order_refunds_it(self):
        assert (
            payment_status_after("cancelled", PaymentMethod.VNPAY, PaymentStatus.PAID)
            == PaymentStatus.REFUNDED
        )

    def test_cancelling_an_unpaid_order_keeps_status(self):
        assert (
            payment_status_after("cancelled", PaymentMethod.COD, PaymentStatus.PENDING)
            == PaymentStatus.PENDING
        )
