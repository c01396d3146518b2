from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.permissions import IsAuthenticatedIdentity, IsStoreAdmin, PublicActionsMixin
from apps.utils.throttle import OrderPlacementThrottle
from .models import Order
from .serializers import (
    OrderCreateSerializer,
    OrderItemSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
)
from .services import OrderService


class OrderViewSet(PublicActionsMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Guest checkout is public; everything else is admin-only except
    ``mine``, which any signed-in customer may call.
    """
    queryset = Order.objects.prefetch_related("items").order_by("-created_at")
    serializer_class = OrderSerializer
    permission_classes = [IsStoreAdmin]
    public_actions = ("create",)
    pagination_class = None

    def get_throttles(self):
        throttles = super().get_throttles()
        if self.action == "create":
            throttles.append(OrderPlacementThrottle())
        return throttles

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.place_order(serializer.validated_data)
        return Response(
            {"message": "Order placed successfully", "order_id": str(order.pk)},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        order = self.get_object()
        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_order(order.pk, serializer.validated_data)
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"], permission_classes=[IsAuthenticatedIdentity])
    def mine(self, request):
        email = getattr(request.user, "email", None)
        if not email:
            return Response([])
        orders = self.get_queryset().filter(customer_email__iexact=email)
        return Response(self.get_serializer(orders, many=True).data)

    @action(detail=True, methods=["get"])
    def items(self, request, pk=None):
        order = self.get_object()
        return Response(OrderItemSerializer(order.items.all(), many=True).data)
