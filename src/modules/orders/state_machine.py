"""Order State Machine rules.

Pure functions over status values; the service applies them while it
holds the order row lock.
"""

from __future__ import annotations

from modules.orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.exceptions import IllegalTransition


def allowed_transitions(current: str) -> frozenset[str]:
    return VALID_TRANSITIONS.get(current, frozenset())


def can_transition(current: str, new_status: str) -> bool:
    return new_status in allowed_transitions(current)


def ensure_transition(current: str, new_status: str) -> None:
    """Raise ``IllegalTransition`` unless *current* -> *new_status* is legal."""
    if new_status not in OrderStatus.values or not can_transition(
        current, new_status
    ):
        raise IllegalTransition(current, new_status)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def payment_status_after(
    new_status: str, payment_method: str, payment_status: str
) -> str:
    """Payment status an order should carry once it enters *new_status*.

    - cash on delivery is collected on delivery;
    - a refund marks the payment refunded;
    - cancelling an already paid order refunds it.
    """
    if new_status == OrderStatus.DELIVERED and payment_method == PaymentMethod.COD:
        return PaymentStatus.PAID
    if new_status == OrderStatus.REFUNDED:
        return PaymentStatus.REFUNDED
    if new_status == OrderStatus.CANCELLED and payment_status == PaymentStatus.PAID:
        return PaymentStatus.REFUNDED
    return payment_status
