"""Coupon DRF serializers."""

from __future__ import annotations

from rest_framework import serializers

from modules.coupons.models import Coupon, CouponType


class CouponSerializer(serializers.ModelSerializer):
    """Admin read serializer for coupons."""

    is_valid = serializers.BooleanField(read_only=True)

    class Meta:
        model = Coupon
        fields = [
            "id",
            "code",
            "type",
            "value",
            "max_discount",
            "min_order_amount",
            "max_usage",
            "usage_count",
            "start_date",
            "end_date",
            "is_active",
            "is_valid",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CouponWriteSerializer(serializers.Serializer):
    """Shape check for create / partial update payloads.

    Business rules (value range, date order, uniqueness) live in the DTOs
    and the service.
    """

    code = serializers.CharField(max_length=50)
    type = serializers.ChoiceField(choices=CouponType.choices)
    value = serializers.DecimalField(max_digits=12, decimal_places=2)
    max_discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False
    )
    min_order_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False
    )
    max_usage = serializers.IntegerField(min_value=0, required=False)
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    is_active = serializers.BooleanField(required=False)


class CouponValidateQuerySerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    order_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0
    )
