import uuid

from rest_framework import generics
from rest_framework.exceptions import ValidationError

from apps.accounts.permissions import IsStoreAdmin
from .models import StockMovement
from .serializers import StockMovementSerializer


class StockMovementListAPIView(generics.ListAPIView):
    """
    Admin: most recent stock movements, optionally for one product.
    """
    serializer_class = StockMovementSerializer
    permission_classes = [IsStoreAdmin]
    pagination_class = None

    def get_queryset(self):
        qs = StockMovement.objects.select_related('product').all()
        if product_id := self.request.query_params.get('product'):
            try:
                uuid.UUID(product_id)
            except ValueError:
                raise ValidationError({"product": ["Invalid product id."]})
            qs = qs.filter(product_id=product_id)
        return qs[:100]  # Limit for performance
