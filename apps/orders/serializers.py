from decimal import Decimal

from rest_framework import serializers

from apps.utils.validators import validate_phone
from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(read_only=True, allow_null=True)
    order_id = serializers.UUIDField(read_only=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'order_id', 'product_id', 'product_title',
            'quantity', 'price_at_purchase', 'subtotal',
        ]


class OrderSerializer(serializers.ModelSerializer):
    order_items = OrderItemSerializer(source='items', many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'customer_name', 'customer_email', 'customer_phone',
            'shipping_address', 'total_price', 'status', 'status_display',
            'admin_notes', 'created_at', 'updated_at', 'order_items',
        ]


class OrderLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    title = serializers.CharField(max_length=255, allow_blank=True)


class OrderCreateSerializer(serializers.Serializer):
    """
    Checkout payload. Validation failures are rejected before any write.
    """
    customer_name = serializers.CharField(max_length=255)
    customer_email = serializers.EmailField()
    customer_phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    shipping_address = serializers.CharField(
        min_length=10,
        error_messages={"min_length": "Shipping address must be detailed"},
    )
    total_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    items = OrderLineInputSerializer(many=True, allow_empty=False)

    def validate_customer_phone(self, value):
        if value:
            validate_phone(value)
        return value


class OrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices, required=False)
    admin_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
