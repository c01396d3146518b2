# apps/catalog/filters.py
from django.db.models import Q
from django_filters import rest_framework as filters

from .models import Category, Product


class ProductFilter(filters.FilterSet):
    """
    Collection-page browsing: category, price band, availability, search
    and sort order. Omitting every parameter returns the full catalog,
    newest first.
    """
    AVAILABILITY_CHOICES = (
        ("in-stock", "In stock"),
        ("out-of-stock", "Out of stock"),
    )
    SORT_CHOICES = (
        ("newest", "Newest"),
        ("price-asc", "Price: Low to High"),
        ("price-desc", "Price: High to Low"),
        ("name-asc", "Name: A to Z"),
    )
    SORT_FIELDS = {
        "newest": ("-created_at",),
        "price-asc": ("effective_price_value", "-created_at"),
        "price-desc": ("-effective_price_value", "-created_at"),
        "name-asc": ("title",),
    }

    category = filters.ModelMultipleChoiceFilter(
        field_name="categories",
        queryset=Category.objects.all(),
        distinct=True,
    )
    min_price = filters.NumberFilter(field_name="effective_price_value", lookup_expr="gte")
    max_price = filters.NumberFilter(field_name="effective_price_value", lookup_expr="lte")
    availability = filters.MultipleChoiceFilter(
        choices=AVAILABILITY_CHOICES,
        method="filter_availability",
    )
    featured = filters.BooleanFilter(field_name="is_featured")
    search = filters.CharFilter(method="filter_search")
    ordering = filters.ChoiceFilter(choices=SORT_CHOICES, method="filter_ordering")

    class Meta:
        model = Product
        fields = ["category", "min_price", "max_price", "availability", "featured", "search", "ordering"]

    def filter_availability(self, queryset, name, value):
        wanted = set(value or [])
        if not wanted or wanted == {"in-stock", "out-of-stock"}:
            return queryset
        if "in-stock" in wanted:
            return queryset.filter(stock__gt=0)
        return queryset.filter(stock__lte=0)

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(title__icontains=value) | Q(description__icontains=value))

    def filter_ordering(self, queryset, name, value):
        return queryset.order_by(*self.SORT_FIELDS.get(value, self.SORT_FIELDS["newest"]))
