"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from typing import List, Sequence


class OrderNotFound(Exception):
    """The requested order does not exist."""


class OrderAccessDenied(Exception):
    """The acting user is neither the buyer nor an admin."""


class IllegalTransition(Exception):
    """The requested status change is not in the transition table.

    Order status and history are left untouched.
    """

    def __init__(self, from_status: str, to_status: str, message: str = "") -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Cannot transition order from {from_status} to {to_status}."
        )


class CancellationNotAllowed(IllegalTransition):
    """Cancellation is not open to this actor in the order's current status."""

    def __init__(self, from_status: str) -> None:
        super().__init__(
            from_status,
            "cancelled",
            f"Order in status {from_status} cannot be cancelled.",
        )


class PaymentUpdateNotAllowed(Exception):
    """Payment status cannot be recorded on this order."""


class IdempotencyKeyReused(Exception):
    """The idempotency key already belongs to another buyer's order."""


class OrderNumberUnavailable(Exception):
    """No free order number was found after the configured retries."""


class HistoryIsAppendOnly(Exception):
    """Status history entries can only be appended, never changed or removed."""


class ReversalPartialFailure(Exception):
    """Some stock releases or the coupon revert failed during a reversal.

    Never raised to the caller of a cancellation: the status change still
    commits and the failed steps are stored for the reconciliation task.
    """

    def __init__(self, order_number: str, failures: Sequence[str]) -> None:
        self.order_number = order_number
        self.failures: List[str] = list(failures)
        super().__init__(
            f"Reversal of order {order_number} left {len(self.failures)} "
            f"step(s) pending: {'; '.join(self.failures)}"
        )
