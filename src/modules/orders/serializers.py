"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    variant_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class ShippingDetailsSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20)
    address = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload."""

    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    shipping = ShippingDetailsSerializer()
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.COD
    )
    coupon_code = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=50
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    note = serializers.CharField(required=False, default="", allow_blank=True)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True)


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(
        choices=[PaymentStatus.PAID, PaymentStatus.FAILED]
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "variant_id",
            "product_name",
            "sku",
            "size",
            "color",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "sequence",
            "old_status",
            "status",
            "note",
            "timestamp",
        ]
        read_only_fields = fields


class ShippingOutputSerializer(serializers.Serializer):
    full_name = serializers.CharField(source="shipping_full_name")
    email = serializers.CharField(source="shipping_email")
    phone = serializers.CharField(source="shipping_phone")
    address = serializers.CharField(source="shipping_address")
    city = serializers.CharField(source="shipping_city")


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    shipping = ShippingOutputSerializer(source="*", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "buyer_id",
            "status",
            "payment_status",
            "payment_method",
            "shipping",
            "subtotal",
            "discount",
            "shipping_fee",
            "total",
            "coupon_code",
            "notes",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "buyer_id",
            "status",
            "payment_status",
            "payment_method",
            "total",
            "created_at",
        ]
        read_only_fields = fields
