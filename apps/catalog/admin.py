# apps/catalog/admin.py
from django.contrib import admin
from .models import Category, Product, ProductCategory


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    ordering = ("name",)


class ProductCategoryInline(admin.TabularInline):
    model = ProductCategory
    extra = 1
    autocomplete_fields = ("category",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "price",
        "discount_price",
        "stock",
        "is_featured",
        "mark_as_new",
        "created_at",
    )
    search_fields = ("title", "description", "material", "origin")
    list_filter = ("categories", "is_featured", "mark_as_new")
    list_editable = ("price", "discount_price", "is_featured", "mark_as_new")
    # Stock changes go through the API so they land in the movement ledger.
    readonly_fields = ("stock", "created_at", "updated_at")
    inlines = [ProductCategoryInline]
