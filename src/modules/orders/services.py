"""Order service layer (Use Cases).

Order Builder, Order State Machine and cancellation entry points.

Placement runs as a saga: each stock reservation and the coupon
redemption is its own short conditional write, paired with the action
that undoes it.  If a later step fails (including persisting the order)
the completed steps are compensated in reverse order before the error
reaches the caller, so a failed placement leaves no ledger change.

Transitions run in one transaction: the order row is locked, the move is
checked against the transition table, reservations are reversed when
entering ``cancelled``/``refunded``, and the new status is committed with
a compare-and-set on the status read under the lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional
from uuid import UUID

import structlog
from django.db import IntegrityError, models, transaction
from django.utils import timezone

from modules.coupons.services import CouponService
from modules.inventory.exceptions import VariantNotFound
from modules.inventory.services import StockLedger
from modules.orders.constants import (
    ADMIN_CANCELLABLE_STATES,
    BUYER_CANCELLABLE_STATES,
    RECORDABLE_PAYMENT_STATUSES,
    REVERSING_STATES,
    OrderStatus,
)
from modules.orders.dtos import (
    OrderStatisticsDTO,
    PeriodFigures,
    StatusFigures,
)
from modules.orders.events import OrderCancelled, OrderRefunded, OrderStatusChanged
from modules.orders.exceptions import (
    CancellationNotAllowed,
    IdempotencyKeyReused,
    IllegalTransition,
    OrderAccessDenied,
    OrderNotFound,
    PaymentUpdateNotAllowed,
)
from modules.orders.pricing import OrderTotals, flat_shipping_fee
from modules.orders.reversal import ReversalHandler
from modules.orders.state_machine import ensure_transition, payment_status_after
from modules.orders.tasks import retry_reversal_failures
from shared.domain.saga import Saga

if TYPE_CHECKING:
    from modules.coupons.repositories.interfaces import ICouponRepository
    from modules.inventory.repositories.interfaces import IVariantRepository
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


def is_admin(actor: Any) -> bool:
    """``None`` stands for the system itself."""
    return actor is None or bool(getattr(actor, "is_staff", False))


@dataclass(frozen=True)
class Placement:
    order: Order
    replayed: bool


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP) and builds the
    Stock Ledger, Coupon Validator and Reversal Handler on top of them.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        variant_repository: IVariantRepository,
        coupon_repository: ICouponRepository,
    ) -> None:
        self._order_repo = order_repository
        self._variant_repo = variant_repository
        self._ledger = StockLedger(variant_repository)
        self._coupons = CouponService(coupon_repository)
        self._reversal = ReversalHandler(order_repository, self._ledger, self._coupons)

    # ------------------------------------------------------------------
    # CreateOrder
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Place an order; see ``place_order`` for the errors raised."""
        return self.place_order(dto).order

    def place_order(self, dto: CreateOrderDTO) -> Placement:
        """Place an order, or return the one already placed under its key.

        ``Placement.replayed`` tells the caller which of the two happened.

        Raises:
            VariantNotFound: a line references an unknown variant.
            InsufficientStock: a line asks for more than is on hand.
            CouponNotFound, CouponExpired, CouponExhausted,
            CouponMinimumNotMet: the coupon cannot be applied.
            IdempotencyKeyReused: the key belongs to another buyer's order.
        """
        log = logger.bind(buyer_id=dto.buyer_id)
        log.info("order.creation_started", item_count=len(dto.items))

        if dto.idempotency_key:
            existing = self._replay(dto)
            if existing is not None:
                return Placement(order=existing, replayed=True)

        try:
            order = self._place(dto, log)
        except IntegrityError:
            if dto.idempotency_key:
                existing = self._replay(dto)
                if existing is not None:
                    return Placement(order=existing, replayed=True)
            raise

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=str(order.total),
        )
        return Placement(
            order=self._order_repo.get_by_id(str(order.id)) or order, replayed=False
        )

    def _replay(self, dto: CreateOrderDTO) -> Optional[Order]:
        existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
        if existing is None:
            return None
        if existing.buyer_id != dto.buyer_id:
            raise IdempotencyKeyReused(
                "Idempotency-Key is already used by another order."
            )
        logger.info(
            "order.idempotency_hit",
            order_id=str(existing.id),
            key=dto.idempotency_key,
        )
        return existing

    def _place(self, dto: CreateOrderDTO, log) -> Order:
        # 1. Resolve variants and snapshot prices, in ascending variant id
        #    so concurrent multi-line orders lock rows in the same order.
        variants = self._variant_repo.get_many(item.variant_id for item in dto.items)
        lines = sorted(dto.items, key=lambda item: str(item.variant_id))
        for line in lines:
            if line.variant_id not in variants:
                raise VariantNotFound(line.variant_id)

        snapshots = []
        for line in lines:
            variant = variants[line.variant_id]
            snapshots.append(
                {
                    "variant_id": variant.id,
                    "product_name": variant.display_name,
                    "sku": variant.sku,
                    "size": variant.size,
                    "color": variant.color,
                    "unit_price": variant.unit_price,
                    "quantity": line.quantity,
                }
            )

        totals = OrderTotals.compute(
            ((s["unit_price"], s["quantity"]) for s in snapshots),
            shipping_fee=flat_shipping_fee(),
        )

        with Saga("order.create") as saga:
            # 2. Reserve stock
            for snapshot in snapshots:
                saga.step(
                    partial(
                        self._ledger.reserve,
                        snapshot["variant_id"],
                        snapshot["quantity"],
                    ),
                    compensate=partial(
                        self._ledger.release,
                        snapshot["variant_id"],
                        snapshot["quantity"],
                    ),
                    label=f"reserve:{snapshot['sku']}",
                )

            # 3-4. Validate and consume the coupon
            coupon = None
            if dto.coupon_code:
                redemption = saga.step(
                    partial(self._coupons.redeem, dto.coupon_code, totals.subtotal),
                    compensate=partial(self._coupons.revert, dto.coupon_code),
                    label=f"coupon:{dto.coupon_code}",
                )
                coupon = redemption.coupon
                totals = totals.with_discount(redemption.discount)

            # 5-6. Persist order, items and first history entry
            order = self._order_repo.create(
                {
                    "buyer_id": dto.buyer_id,
                    "payment_method": dto.payment_method,
                    "shipping_full_name": dto.shipping.full_name,
                    "shipping_email": dto.shipping.email,
                    "shipping_phone": dto.shipping.phone,
                    "shipping_address": dto.shipping.address,
                    "shipping_city": dto.shipping.city,
                    "subtotal": totals.subtotal,
                    "discount": totals.discount,
                    "shipping_fee": totals.shipping_fee,
                    "total": totals.total,
                    "coupon": coupon,
                    "coupon_code": coupon.code if coupon else "",
                    "notes": dto.notes,
                    "idempotency_key": dto.idempotency_key,
                    "items": snapshots,
                }
            )

        log.info(
            "order.reservations_committed",
            order_id=str(order.id),
            reserved_lines=len(snapshots),
            coupon=order.coupon_code or None,
        )
        return order

    # ------------------------------------------------------------------
    # TransitionOrder / CancelOrder
    # ------------------------------------------------------------------

    @transaction.atomic
    def transition_order(
        self,
        order_id: UUID,
        new_status: str,
        note: str = "",
        actor: Any = None,
        allowed_from: Optional[Iterable[str]] = None,
    ) -> Order:
        """Move an order to *new_status*.

        Entering ``cancelled`` or ``refunded`` reverses stock and coupon in
        the same transaction.  Reversal step failures are recorded, never
        raised.

        Raises:
            OrderNotFound: order does not exist.
            CancellationNotAllowed: *allowed_from* excludes the current status.
            IllegalTransition: the move is not in the transition table, or
                the status changed underneath the lock.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        current = order.status
        log = logger.bind(
            order_id=str(order.id),
            current_status=current,
            new_status=new_status,
        )

        if allowed_from is not None and current not in set(allowed_from):
            log.warning("order.cancel_not_allowed")
            raise CancellationNotAllowed(current)
        try:
            ensure_transition(current, new_status)
        except IllegalTransition:
            log.warning("order.invalid_transition")
            raise

        if new_status in REVERSING_STATES:
            report = self._reversal.reverse(order)
            if not report.ok:
                transaction.on_commit(retry_reversal_failures.delay)

        payment_status = payment_status_after(
            new_status, order.payment_method, order.payment_status
        )
        if not self._order_repo.compare_and_set_status(
            order.id, current, new_status, payment_status
        ):
            log.warning("order.status_changed_concurrently")
            raise IllegalTransition(current, new_status)

        self._order_repo.append_history(
            order,
            new_status,
            note=note or f"Status changed to {new_status}",
            old_status=current,
            actor=actor,
        )

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id, old_status=current, new_status=new_status
            )
        )
        if new_status == OrderStatus.CANCELLED:
            order.add_domain_event(OrderCancelled(aggregate_id=order.id, reason=note))
        elif new_status == OrderStatus.REFUNDED:
            order.add_domain_event(OrderRefunded(aggregate_id=order.id))
        self._order_repo.record_events(order)

        log.info("order.status_updated", payment_status=payment_status)
        return self._order_repo.get_by_id(str(order.id)) or order

    def cancel_order(self, order_id: UUID, reason: str = "", actor: Any = None) -> Order:
        """Cancel an order.

        Buyers may cancel their own ``pending`` orders; admins (and the
        system, ``actor=None``) may cancel from pending, processing or
        shipped.

        Raises:
            OrderNotFound: order does not exist.
            OrderAccessDenied: the actor is not the buyer nor an admin.
            CancellationNotAllowed: cancellation is closed for this status.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        if is_admin(actor):
            allowed = ADMIN_CANCELLABLE_STATES
        else:
            if order.buyer_id != actor.pk:
                raise OrderAccessDenied("Order belongs to another buyer.")
            allowed = BUYER_CANCELLABLE_STATES

        return self.transition_order(
            order.id,
            OrderStatus.CANCELLED,
            note=reason or "Order cancelled",
            actor=actor,
            allowed_from=allowed,
        )

    @transaction.atomic
    def record_payment_status(
        self, order_id: UUID, payment_status: str, actor: Any = None
    ) -> Order:
        """Record ``paid`` or ``failed`` on an order that is still open.

        Raises:
            OrderNotFound: order does not exist.
            PaymentUpdateNotAllowed: unsupported value or terminal order.
        """
        if payment_status not in RECORDABLE_PAYMENT_STATUSES:
            raise PaymentUpdateNotAllowed(
                f"Payment status must be one of {sorted(RECORDABLE_PAYMENT_STATUSES)}."
            )
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if order.is_terminal:
            raise PaymentUpdateNotAllowed(
                f"Order in status {order.status} does not accept payment updates."
            )

        self._order_repo.set_payment_status(order.id, payment_status)
        logger.info(
            "order.payment_status_recorded",
            order_id=str(order.id),
            old_payment_status=order.payment_status,
            payment_status=payment_status,
            actor_id=getattr(actor, "pk", None),
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _visible_to(self, order: Optional[Order], actor: Any, ref: Any) -> Order:
        # Buyers never learn that someone else's order exists.
        if not order or (not is_admin(actor) and order.buyer_id != actor.pk):
            raise OrderNotFound(f"Order {ref} not found.")
        return order

    def get_order(self, order_id: str, actor: Any = None) -> Order:
        """Raises ``OrderNotFound`` for missing orders and other buyers' orders."""
        return self._visible_to(self._order_repo.get_by_id(order_id), actor, order_id)

    def get_by_number(self, order_number: str, actor: Any = None) -> Order:
        return self._visible_to(
            self._order_repo.get_by_number(order_number), actor, order_number
        )

    def list_orders(
        self, filters: Optional[Dict[str, Any]] = None, actor: Any = None
    ) -> "models.QuerySet[Order]":
        """All orders for admins, the buyer's own orders otherwise."""
        filters = dict(filters or {})
        if not is_admin(actor):
            filters["buyer_id"] = actor.pk
        return self._order_repo.list(filters)

    def get_statistics(self) -> OrderStatisticsDTO:
        breakdown = self._order_repo.status_breakdown()
        now = timezone.localtime()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = start_of_day.replace(day=1)

        overall = self._order_repo.revenue()
        today = self._order_repo.revenue(since=start_of_day)
        month = self._order_repo.revenue(since=start_of_month)

        return OrderStatisticsDTO(
            total_orders=overall["orders"],
            by_status={
                status: StatusFigures(**breakdown.get(status, {}))
                for status in OrderStatus.values
            },
            total_revenue=overall["revenue"],
            today=PeriodFigures(**today),
            this_month=PeriodFigures(**month),
        )
