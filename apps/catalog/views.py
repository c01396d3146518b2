from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.permissions import IsStoreAdmin, PublicActionsMixin
from apps.inventory.services import StockService
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer, StockAdjustmentSerializer
from .services import ProductService, RelatedProductService


class ProductViewSet(
    PublicActionsMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Public catalog reads; admin-only writes.
    Every read re-queries the table: no pagination, no caching.
    """
    queryset = Product.objects.with_catalog_fields().order_by("-created_at")
    serializer_class = ProductSerializer
    permission_classes = [IsStoreAdmin]
    public_actions = ("list", "retrieve", "related", "new_arrivals")
    filter_backends = [DjangoFilterBackend]
    filterset_class = ProductFilter
    pagination_class = None

    def get_serializer_context(self):
        context = super().get_serializer_context()
        # One clock reading per response so every is_new flag agrees.
        context["now"] = timezone.now()
        return context

    def perform_create(self, serializer):
        product = serializer.save()
        self._reload(serializer, product)

    def update(self, request, *args, **kwargs):
        product = self.get_object()
        serializer = self.get_serializer(product, data=request.data)
        serializer.is_valid(raise_exception=True)
        product = serializer.save()
        self._reload(serializer, product)
        return Response(serializer.data)

    def destroy(self, request, *args, **kwargs):
        ProductService.delete_product(self.get_object())
        return Response({"message": "Product deleted successfully"})

    @action(detail=True, methods=["get"])
    def related(self, request, pk=None):
        limit = RelatedProductService.parse_limit(request.query_params.get("limit"))
        products = RelatedProductService.related_products(pk, limit=limit)
        serializer = self.get_serializer(products, many=True)
        return Response(serializer.data)

    @action(detail=False, methods=["get"], url_path="new-arrivals")
    def new_arrivals(self, request):
        products = Product.objects.with_catalog_fields().new_arrivals()
        serializer = self.get_serializer(products, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=["patch"])
    def stock(self, request, pk=None):
        product = self.get_object()
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        balance = StockService.adjust(
            product.pk,
            serializer.validated_data["adjustment"],
            performed_by=str(request.user),
        )
        return Response({"message": "Stock updated successfully", "stock": balance})

    @staticmethod
    def _reload(serializer, product):
        # Re-read with annotations so the response carries effective_price.
        serializer.instance = Product.objects.with_catalog_fields().get(pk=product.pk)


class CategoryViewSet(
    PublicActionsMixin,
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Category.objects.order_by("name")
    serializer_class = CategorySerializer
    permission_classes = [IsStoreAdmin]
    public_actions = ("list", "products")
    pagination_class = None

    def destroy(self, request, *args, **kwargs):
        self.get_object().delete()
        return Response({"message": "Category deleted successfully"}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"])
    def products(self, request, pk=None):
        category = self.get_object()
        products = Product.objects.with_catalog_fields().filter(categories=category).order_by("-created_at")
        serializer = ProductSerializer(
            products, many=True, context={**self.get_serializer_context(), "now": timezone.now()}
        )
        return Response(serializer.data)
