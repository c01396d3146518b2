# apps/catalog/models.py
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.text import slugify

from apps.utils.models import TimestampedModel


class Category(models.Model):
    """
    Flat product grouping (e.g. Handkerchiefs, Table Linen).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "categories"
        verbose_name_plural = "Categories"
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.name) or "category"
            slug_candidate = base_slug
            counter = 1

            while Category.objects.filter(slug=slug_candidate).exclude(pk=self.pk).exists():
                slug_candidate = f"{base_slug}-{counter}"
                counter += 1

            self.slug = slug_candidate
        super().save(*args, **kwargs)


class ProductQuerySet(models.QuerySet):
    def with_catalog_fields(self):
        """
        Annotates the price customers actually pay and prefetches category links
        so serializing a list costs two queries.
        """
        return self.annotate(
            effective_price_value=Coalesce("discount_price", "price")
        ).prefetch_related("categories")

    def created_since(self, since):
        return self.filter(models.Q(mark_as_new=True) | models.Q(created_at__gt=since))

    def new_arrivals(self, now=None):
        return self.created_since(Product.new_since(now)).order_by("-created_at")


class Product(TimestampedModel):
    """
    Sellable handcrafted item. ``stock`` is the single shared counter that
    checkout decrements; it is never allowed below zero.
    """
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    price = models.DecimalField(max_digits=10, decimal_places=2)
    discount_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    stock = models.IntegerField(default=0)

    images = models.JSONField(default=list, blank=True, help_text="Ordered list of image URLs")
    is_featured = models.BooleanField(default=False)
    mark_as_new = models.BooleanField(
        default=False,
        help_text="Show the NEW badge regardless of creation date",
    )

    # Craft metadata
    material = models.CharField(max_length=255, blank=True, default="")
    origin = models.CharField(max_length=255, blank=True, default="")
    manufacturer = models.CharField(max_length=255, blank=True, default="")
    weight = models.CharField(max_length=100, blank=True, default="")
    care_instructions = models.TextField(blank=True, default="")

    categories = models.ManyToManyField(
        Category,
        through="ProductCategory",
        related_name="products",
        blank=True,
    )

    objects = ProductQuerySet.as_manager()

    class Meta:
        db_table = "products"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_featured"], name="products_featured_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="product_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="product_price_positive",
            ),
        ]

    def __str__(self):
        return self.title

    @staticmethod
    def new_since(now=None):
        now = now or timezone.now()
        return now - timedelta(days=settings.NEW_PRODUCT_WINDOW_DAYS)

    @property
    def effective_price(self):
        annotated = getattr(self, "effective_price_value", None)
        if annotated is not None:
            return annotated
        return self.discount_price if self.discount_price is not None else self.price

    def is_new_arrival(self, now=None) -> bool:
        """
        NEW badge: explicit flag, or created strictly inside the window
        (a product exactly NEW_PRODUCT_WINDOW_DAYS old is no longer new).
        """
        if self.mark_as_new:
            return True
        if self.created_at is None:
            return False
        return self.created_at > self.new_since(now)


class ProductCategory(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="category_links")
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name="product_links")

    class Meta:
        db_table = "product_categories"
        constraints = [
            models.UniqueConstraint(
                fields=["product", "category"],
                name="uniq_product_category",
            )
        ]

    def __str__(self):
        return f"{self.product_id} -> {self.category_id}"
