"""Asynchronous tasks of the orders module."""

from __future__ import annotations

import structlog
from celery import shared_task

from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.services import CouponService
from modules.inventory.repositories.django_repository import VariantDjangoRepository
from modules.inventory.services import StockLedger
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.reversal import ReversalHandler

logger = structlog.get_logger(__name__)

RETRY_BATCH_SIZE = 100


@shared_task(name="orders.retry_reversal_failures")
def retry_reversal_failures(batch_size: int = RETRY_BATCH_SIZE) -> dict:
    """Retry stock releases and coupon reverts that failed during a reversal."""
    handler = ReversalHandler(
        order_repository=OrderDjangoRepository(),
        stock_ledger=StockLedger(VariantDjangoRepository()),
        coupon_service=CouponService(CouponDjangoRepository()),
    )
    return handler.retry_failures(limit=batch_size)
