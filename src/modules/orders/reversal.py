"""Cancellation/Reversal Handler.

Undoes what order placement did to the Stock Ledger and the Coupon
Validator when an order is cancelled or refunded.

- Stock and coupon are each claimed through a flag on the order
  (``stock_released``, ``coupon_reverted``), so a second reversal of the
  same order changes nothing.
- Every release runs in its own savepoint; one failing release does not
  stop the others and does not abort the surrounding status change.
- Failed steps are logged, stored as ``ReversalFailure`` rows and retried
  by ``orders.retry_reversal_failures``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import transaction

from modules.orders.constants import ReversalKind
from modules.orders.exceptions import ReversalPartialFailure

if TYPE_CHECKING:
    from modules.coupons.services import CouponService
    from modules.inventory.services import StockLedger
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


@dataclass
class ReversalStep:
    kind: str
    variant_id: Optional[UUID] = None
    coupon_code: str = ""
    quantity: int = 0
    error: str = ""

    def describe(self) -> str:
        if self.kind == ReversalKind.STOCK_RELEASE:
            return f"release {self.quantity} of variant {self.variant_id}"
        return f"revert coupon {self.coupon_code}"

    def as_record(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "variant_id": self.variant_id,
            "coupon_code": self.coupon_code,
            "quantity": self.quantity,
            "error": self.error,
        }


@dataclass
class ReversalReport:
    order_number: str
    released: List[ReversalStep] = field(default_factory=list)
    coupon_reverted: bool = False
    already_reversed: bool = False
    failures: List[ReversalStep] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_error(self) -> ReversalPartialFailure:
        return ReversalPartialFailure(
            self.order_number, [step.describe() for step in self.failures]
        )


class ReversalHandler:
    def __init__(
        self,
        order_repository: IOrderRepository,
        stock_ledger: StockLedger,
        coupon_service: CouponService,
    ) -> None:
        self._orders = order_repository
        self._ledger = stock_ledger
        self._coupons = coupon_service

    def reverse(self, order: Order) -> ReversalReport:
        """Release every item's stock and revert the coupon, at most once."""
        report = ReversalReport(order_number=order.order_number)
        log = logger.bind(order_id=str(order.id), order_number=order.order_number)

        if self._orders.claim_stock_release(order.id):
            items = sorted(order.items.all(), key=lambda item: str(item.variant_id))
            for item in items:
                step = ReversalStep(
                    kind=ReversalKind.STOCK_RELEASE,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                )
                if self._attempt(step):
                    report.released.append(step)
                else:
                    report.failures.append(step)
        else:
            report.already_reversed = True

        if order.coupon_code and self._orders.claim_coupon_revert(order.id):
            step = ReversalStep(
                kind=ReversalKind.COUPON_REVERT, coupon_code=order.coupon_code
            )
            if self._attempt(step):
                report.coupon_reverted = True
            else:
                report.failures.append(step)

        if report.failures:
            self._orders.add_reversal_failures(
                order, [step.as_record() for step in report.failures]
            )
            log.error(
                "order.reversal_partial_failure",
                error=str(report.as_error()),
                failed_steps=len(report.failures),
            )
        elif report.already_reversed:
            log.info("order.reversal_skipped")
        else:
            log.info(
                "order.reversed",
                released_items=len(report.released),
                coupon_reverted=report.coupon_reverted,
            )
        return report

    def _attempt(self, step: ReversalStep) -> bool:
        try:
            with transaction.atomic():
                self._apply(step)
        except Exception as exc:
            step.error = repr(exc)
            logger.exception("order.reversal_step_failed", step=step.describe())
            return False
        return True

    def _apply(self, step: ReversalStep) -> None:
        if step.kind == ReversalKind.STOCK_RELEASE:
            self._ledger.release(step.variant_id, step.quantity)
        else:
            self._coupons.revert(step.coupon_code)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @transaction.atomic
    def retry_failures(self, limit: int = 100) -> Dict[str, int]:
        """Re-run stored failed steps; resolved ones are marked as such."""
        resolved = 0
        still_failing = 0
        for failure in self._orders.pending_reversal_failures(limit):
            step = ReversalStep(
                kind=failure.kind,
                variant_id=failure.variant_id,
                coupon_code=failure.coupon_code,
                quantity=failure.quantity,
            )
            if self._attempt(step):
                self._orders.resolve_reversal_failure(failure)
                resolved += 1
            else:
                self._orders.bump_reversal_failure(failure, step.error)
                still_failing += 1
        logger.info(
            "order.reversal_retry_finished",
            resolved=resolved,
            still_failing=still_failing,
        )
        return {"resolved": resolved, "still_failing": still_failing}
