"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    variant_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class QuoteOrderSerializer(serializers.Serializer):
    """Lines, address and voucher of a price preview."""

    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    address_id = serializers.UUIDField()
    voucher_id = serializers.UUIDField(required=False, allow_null=True, default=None)

    def validate_items(self, value):
        variant_ids = [item["variant_id"] for item in value]
        if len(variant_ids) != len(set(variant_ids)):
            raise serializers.ValidationError(
                "Duplicate variant IDs are not allowed in the same order."
            )
        return value


class CreateOrderSerializer(QuoteOrderSerializer):
    """Validates the order creation request payload."""

    payment_method_id = serializers.UUIDField()
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class ChangeStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class ChangePaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Order line as captured at creation time."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "variant_id",
            "variant_sku",
            "product_name",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "old_payment_status",
            "new_payment_status",
            "actor",
            "user_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with lines, history and delivery address.

    ``delivery_address`` needs ``order_service`` in the serializer context.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    delivery_address = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "payment_status",
            "payment_method_id",
            "payment_method_kind",
            "address_id",
            "address_snapshot",
            "delivery_address",
            "voucher_id",
            "subtotal",
            "discount_amount",
            "total",
            "shipping_fee",
            "final_total",
            "notes",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields

    def get_delivery_address(self, obj: Order) -> dict:
        resolved = self.context["order_service"].resolve_delivery_address(obj)
        return resolved.model_dump(mode="json")


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "status",
            "payment_status",
            "payment_method_kind",
            "final_total",
            "created_at",
        ]
        read_only_fields = fields
