# apps/catalog/serializers.py
from decimal import Decimal

from rest_framework import serializers

from apps.utils.validators import validate_image_urls
from .models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    slug = serializers.SlugField(max_length=255, required=False, allow_blank=True)

    class Meta:
        model = Category
        fields = ["id", "name", "slug", "description", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_slug(self, value):
        if value and Category.objects.filter(slug=value).exclude(
            pk=getattr(self.instance, "pk", None)
        ).exists():
            raise serializers.ValidationError("A category with this slug already exists.")
        return value


class ProductSerializer(serializers.ModelSerializer):
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    discount_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.01"), required=False, allow_null=True
    )
    stock = serializers.IntegerField(min_value=0, required=False)
    images = serializers.ListField(
        child=serializers.CharField(max_length=2048),
        validators=[validate_image_urls],
    )
    category_ids = serializers.PrimaryKeyRelatedField(
        source="categories",
        many=True,
        queryset=Category.objects.all(),
        required=False,
    )
    effective_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    is_new = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "title",
            "description",
            "price",
            "discount_price",
            "effective_price",
            "stock",
            "images",
            "is_featured",
            "mark_as_new",
            "is_new",
            "category_ids",
            "material",
            "origin",
            "manufacturer",
            "weight",
            "care_instructions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {
            "title": {"min_length": 3},
        }

    def get_is_new(self, obj) -> bool:
        return obj.is_new_arrival(now=self.context.get("now"))

    def validate(self, attrs):
        price = attrs.get("price", getattr(self.instance, "price", None))
        discount = attrs.get("discount_price")
        if discount is not None and price is not None and discount > price:
            raise serializers.ValidationError(
                {"discount_price": "Discount price cannot exceed the regular price."}
            )
        return attrs


class StockAdjustmentSerializer(serializers.Serializer):
    adjustment = serializers.IntegerField()

    def to_internal_value(self, data):
        value = data.get("adjustment") if hasattr(data, "get") else None
        # Booleans and numeric strings are not accepted as a delta.
        if isinstance(value, bool) or not isinstance(value, int):
            raise serializers.ValidationError({"adjustment": ["Adjustment must be a number"]})
        return super().to_internal_value(data)
