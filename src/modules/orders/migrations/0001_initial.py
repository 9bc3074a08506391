from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.db.models.expressions
import uuid6
from django.conf import settings
from django.db import migrations, models

ORDER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("shipped", "Shipped"),
    ("delivered", "Delivered"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
]


def _pk():
    return (
        "id",
        models.UUIDField(
            default=uuid6.uuid7,
            editable=False,
            primary_key=True,
            serialize=False,
        ),
    )


def _money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=12, **kwargs)


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("coupons", "0001_initial"),
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                _pk(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "order_number",
                    models.CharField(editable=False, max_length=20, unique=True),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUS_CHOICES,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[
                            ("cod", "Cash on delivery"),
                            ("bank_transfer", "Bank transfer"),
                            ("credit_card", "Credit card"),
                            ("momo", "MoMo"),
                            ("zalopay", "ZaloPay"),
                            ("vnpay", "VNPay"),
                        ],
                        default="cod",
                        max_length=20,
                    ),
                ),
                ("shipping_full_name", models.CharField(max_length=150)),
                ("shipping_email", models.EmailField(max_length=254)),
                ("shipping_phone", models.CharField(max_length=20)),
                ("shipping_address", models.CharField(max_length=255)),
                ("shipping_city", models.CharField(max_length=100)),
                ("subtotal", _money(default=Decimal("0"))),
                ("discount", _money(default=Decimal("0"))),
                ("shipping_fee", _money(default=Decimal("0"))),
                ("total", _money(default=Decimal("0"))),
                (
                    "coupon_code",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("coupon_reverted", models.BooleanField(default=False)),
                ("stock_released", models.BooleanField(default=False)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True, max_length=255, null=True, unique=True
                    ),
                ),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "coupon",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="coupons.coupon",
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="orders_status_idx"),
                    models.Index(fields=["-created_at"], name="orders_created_idx"),
                    models.Index(
                        fields=["buyer", "-created_at"], name="orders_buyer_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(subtotal__gte=0)
                        & models.Q(discount__gte=0)
                        & models.Q(shipping_fee__gte=0)
                        & models.Q(total__gte=0),
                        name="orders_amounts_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            discount__lte=django.db.models.expressions.F("subtotal")
                        ),
                        name="orders_discount_within_subtotal",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            total=django.db.models.expressions.F("subtotal")
                            - django.db.models.expressions.F("discount")
                            + django.db.models.expressions.F("shipping_fee")
                        ),
                        name="orders_total_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                _pk(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("product_name", models.CharField(max_length=255)),
                ("sku", models.CharField(max_length=64)),
                ("size", models.CharField(max_length=50)),
                ("color", models.CharField(max_length=50)),
                ("unit_price", _money()),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("subtotal", _money(editable=False)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="inventory.productvariant",
                    ),
                ),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gte=1),
                        name="order_items_quantity_positive",
                    ),
                    models.UniqueConstraint(
                        fields=("order", "variant"),
                        name="order_items_unique_variant",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=[
                _pk(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("sequence", models.PositiveIntegerField()),
                (
                    "old_status",
                    models.CharField(
                        blank=True,
                        choices=ORDER_STATUS_CHOICES,
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(choices=ORDER_STATUS_CHOICES, max_length=20),
                ),
                ("note", models.TextField(blank=True, default="")),
                ("timestamp", models.DateTimeField()),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="status_history",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_status_history",
                "ordering": ["order", "sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order", "sequence"),
                        name="osh_order_sequence_unique",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReversalFailure",
            fields=[
                _pk(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("stock_release", "Stock release"),
                            ("coupon_revert", "Coupon revert"),
                        ],
                        max_length=20,
                    ),
                ),
                ("variant_id", models.UUIDField(blank=True, null=True)),
                (
                    "coupon_code",
                    models.CharField(blank=True, default="", max_length=50),
                ),
                ("quantity", models.PositiveIntegerField(default=0)),
                ("error", models.TextField(blank=True, default="")),
                ("attempts", models.PositiveIntegerField(default=1)),
                (
                    "resolved_at",
                    models.DateTimeField(blank=True, default=None, null=True),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reversal_failures",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_reversal_failures",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["resolved_at"], name="orf_resolved_idx"),
                ],
            },
        ),
    ]
