from decimal import Decimal

import django.db.models.expressions
import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True, db_index=True, default=None, null=True
                    ),
                ),
                ("code", models.CharField(max_length=50, unique=True)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("percentage", "Percentage"),
                            ("fixed", "Fixed amount"),
                        ],
                        max_length=20,
                    ),
                ),
                ("value", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "max_discount",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0"), max_digits=12
                    ),
                ),
                (
                    "min_order_amount",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0"), max_digits=12
                    ),
                ),
                ("max_usage", models.PositiveIntegerField(default=0)),
                ("usage_count", models.PositiveIntegerField(default=0)),
                ("start_date", models.DateTimeField()),
                ("end_date", models.DateTimeField()),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "coupons",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["is_active", "end_date"],
                        name="coupons_active_end_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(value__gte=0),
                        name="coupons_value_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(max_usage=0)
                        | models.Q(
                            usage_count__lte=django.db.models.expressions.F(
                                "max_usage"
                            )
                        ),
                        name="coupons_usage_within_cap",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            end_date__gt=django.db.models.expressions.F("start_date")
                        ),
                        name="coupons_window_ordered",
                    ),
                ],
            },
        ),
    ]
