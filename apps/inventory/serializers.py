from rest_framework import serializers
from .models import StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source='product.title', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'created_at', 'product', 'product_title', 'movement_type',
            'quantity_change', 'balance_after',
            'reference', 'performed_by'
        ]
