"""Order domain constants.

Status, payment choices and the legal transition table of the order
state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    COD = "cod", "Cash on delivery"
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    CREDIT_CARD = "credit_card", "Credit card"
    MOMO = "momo", "MoMo"
    ZALOPAY = "zalopay", "ZaloPay"
    VNPAY = "vnpay", "VNPay"


VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

# Entering one of these releases stock and reverts the coupon.
REVERSING_STATES: frozenset[str] = frozenset(
    {OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

BUYER_CANCELLABLE_STATES: frozenset[str] = frozenset({OrderStatus.PENDING})
ADMIN_CANCELLABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED}
)

# Payment outcomes an admin may record by hand.
RECORDABLE_PAYMENT_STATUSES: frozenset[str] = frozenset(
    {PaymentStatus.PAID, PaymentStatus.FAILED}
)

ORDER_NUMBER_MAX_RETRIES = 5


class ReversalKind(models.TextChoices):
    STOCK_RELEASE = "stock_release", "Stock release"
    COUPON_REVERT = "coupon_revert", "Coupon revert"
